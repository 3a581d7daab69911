import pytest
from pydantic import ValidationError

from app.core.exceptions import NotFound
from app.schemas.pricing import CircleGeometry, PolygonGeometry, PriceRegion
from app.services.regions import RegionIndex, haversine_meters

CENTER = (55.3644, 25.2532)
SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]
HOLE = [(4.0, 4.0), (6.0, 4.0), (6.0, 6.0), (4.0, 6.0)]


def circle(region_id, radius, center=CENTER, active=True):
    return PriceRegion(
        id=region_id,
        name=f"Circle {region_id}",
        geometry=CircleGeometry(center=center, radius_meters=radius),
        is_active=active,
    )


def polygon(region_id, rings, active=True):
    return PriceRegion(
        id=region_id,
        name=f"Polygon {region_id}",
        geometry=PolygonGeometry(rings=rings),
        is_active=active,
    )


class TestHaversine:

    def test_zero_distance(self):
        assert haversine_meters(*CENTER, *CENTER) == 0.0

    def test_one_degree_latitude(self):
        # ~111.2 km per degree of latitude
        distance = haversine_meters(0.0, 0.0, 0.0, 1.0)
        assert 111000 < distance < 111400

    def test_symmetric(self):
        a = haversine_meters(55.0, 25.0, 55.3, 25.2)
        b = haversine_meters(55.3, 25.2, 55.0, 25.0)
        assert a == pytest.approx(b)


class TestCircleContainment:

    def test_center_is_inside(self):
        index = RegionIndex([circle(1, 1000)])
        assert [r.id for r in index.find_containing(*CENTER)] == [1]

    def test_point_inside_radius(self):
        index = RegionIndex([circle(1, 5000)])
        assert index.find_containing(55.3650, 25.2540)

    def test_point_beyond_radius_excluded(self):
        index = RegionIndex([circle(1, 5000)])
        assert index.find_containing(55.5, 25.4) == []

    def test_point_exactly_on_radius_is_included(self):
        point = (55.40, 25.26)
        radius = haversine_meters(*point, *CENTER)
        index = RegionIndex([circle(1, radius)])
        assert [r.id for r in index.find_containing(*point)] == [1]

    def test_point_just_past_radius_is_excluded(self):
        point = (55.40, 25.26)
        radius = haversine_meters(*point, *CENTER) - 0.01
        index = RegionIndex([circle(1, radius)])
        assert index.find_containing(*point) == []


class TestPolygonContainment:

    def test_point_inside(self):
        index = RegionIndex([polygon(1, [SQUARE])])
        assert len(index.find_containing(5.0, 2.0)) == 1

    def test_point_outside(self):
        index = RegionIndex([polygon(1, [SQUARE])])
        assert index.find_containing(11.0, 5.0) == []
        assert index.find_containing(5.0, -0.5) == []

    def test_point_in_hole_is_outside(self):
        index = RegionIndex([polygon(1, [SQUARE, HOLE])])
        assert index.find_containing(5.0, 5.0) == []
        assert len(index.find_containing(2.0, 2.0)) == 1

    def test_concave_polygon(self):
        # U shape open to the top
        ring = [(0, 0), (6, 0), (6, 6), (4, 6), (4, 2), (2, 2), (2, 6), (0, 6)]
        index = RegionIndex([polygon(1, [ring])])
        assert len(index.find_containing(1.0, 4.0)) == 1
        assert index.find_containing(3.0, 4.0) == []

    def test_point_on_edge_is_included(self):
        index = RegionIndex([polygon(1, [SQUARE])])
        assert len(index.find_containing(10.0, 5.0)) == 1
        assert len(index.find_containing(0.0, 0.0)) == 1

    def test_ring_is_closed_on_load(self):
        geometry = PolygonGeometry(rings=[SQUARE])
        assert geometry.rings[0][0] == geometry.rings[0][-1]
        assert len(geometry.rings[0]) == len(SQUARE) + 1

    def test_already_closed_ring_unchanged(self):
        closed = SQUARE + [SQUARE[0]]
        geometry = PolygonGeometry(rings=[closed])
        assert len(geometry.rings[0]) == len(closed)

    @pytest.mark.parametrize("rings", [
        [],
        [[(0.0, 0.0), (1.0, 1.0)]],
        [[(0.0, 0.0), (1.0, 1.0), (0.0, 0.0)]],
    ])
    def test_malformed_polygon_rejected(self, rings):
        with pytest.raises(ValidationError):
            PolygonGeometry(rings=rings)

    def test_non_positive_radius_rejected(self):
        with pytest.raises(ValidationError):
            CircleGeometry(center=CENTER, radius_meters=0)


class TestRegionIndex:

    def test_inactive_regions_ignored(self):
        index = RegionIndex([circle(1, 5000, active=False)])
        assert index.find_containing(*CENTER) == []

    def test_overlapping_regions_sorted_by_id(self):
        index = RegionIndex([circle(7, 5000), circle(3, 10000), circle(5, 2000)])
        assert [r.id for r in index.find_containing(*CENTER)] == [3, 5, 7]

    def test_mixed_shapes(self):
        index = RegionIndex([
            circle(1, 5000, center=(5.0, 5.0)),
            polygon(2, [SQUARE]),
        ])
        assert [r.id for r in index.find_containing(5.0, 5.0)] == [1, 2]

    def test_find_by_id(self):
        index = RegionIndex([circle(1, 5000), circle(2, 5000, active=False)])
        assert index.find_by_id(1).id == 1
        # inactive regions are still addressable by id
        assert index.find_by_id(2).is_active is False

    def test_find_by_id_missing(self):
        index = RegionIndex([circle(1, 5000)])
        with pytest.raises(NotFound):
            index.find_by_id(99)

    def test_geometry_discriminated_by_shape(self):
        region = PriceRegion.model_validate({
            "id": 1,
            "name": "From JSON",
            "geometry": {"shape": "polygon", "rings": [[[0, 0], [1, 0], [1, 1]]]},
        })
        assert isinstance(region.geometry, PolygonGeometry)
