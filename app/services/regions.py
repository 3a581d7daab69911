"""Geographic region lookup for pricing"""
import math
from typing import Dict, Iterable, List

from shapely.geometry import Point, Polygon

from app.core.exceptions import NotFound
from app.schemas.pricing import CircleGeometry, PolygonGeometry, PriceRegion

EARTH_RADIUS_METERS = 6371000.0


def haversine_meters(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def to_polygon(geometry: PolygonGeometry) -> Polygon:
    """First ring is the shell, the rest are holes; (lon, lat) order"""
    return Polygon(geometry.rings[0], geometry.rings[1:])


def circle_contains(geometry: CircleGeometry, lon: float, lat: float) -> bool:
    center_lon, center_lat = geometry.center
    # boundary inclusive
    return haversine_meters(lon, lat, center_lon, center_lat) <= geometry.radius_meters


class RegionIndex:

    def __init__(self, regions: Iterable[PriceRegion]):
        self._regions: Dict[int, PriceRegion] = {region.id: region for region in regions}
        self._active = sorted(
            (region for region in self._regions.values() if region.is_active),
            key=lambda region: region.id,
        )
        self._polygons: Dict[int, Polygon] = {
            region.id: to_polygon(region.geometry)
            for region in self._active
            if region.geometry.shape == "polygon"
        }

    def contains(self, region: PriceRegion, lon: float, lat: float) -> bool:
        if region.geometry.shape == "circle":
            return circle_contains(region.geometry, lon, lat)
        # covers() keeps points on the edge, matching the inclusive circle boundary
        return self._polygons[region.id].covers(Point(lon, lat))

    def find_containing(self, lon: float, lat: float) -> List[PriceRegion]:
        return [region for region in self._active if self.contains(region, lon, lat)]

    def find_by_id(self, region_id: int) -> PriceRegion:
        region = self._regions.get(region_id)
        if region is None:
            raise NotFound("Price region", region_id)
        return region
