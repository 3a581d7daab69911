from enum import Enum


class VehicleClass(str, Enum):
    ECONOMY = "economy"
    COMFORT = "comfort"
    PREMIUM = "premium"
    VAN = "van"
    LUXURY = "luxury"

    def __str__(self):
        return self.value


class RegionShape(str, Enum):
    CIRCLE = "circle"
    POLYGON = "polygon"

    def __str__(self):
        return self.value


class SurchargeType(str, Enum):
    CUTOFF_TIME = "cutoff_time"
    TIME_LEFT = "time_left"
    DATETIME = "datetime"

    def __str__(self):
        return self.value


class SurchargeApplication(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"

    def __str__(self):
        return self.value


class PricingMethod(str, Enum):
    FIXED = "fixed"
    DISTANCE_BASED = "distance_based"
    DEFAULT = "default"

    def __str__(self):
        return self.value


class Extra(str, Enum):
    CHILD_SEAT = "child_seat"
    BOOSTER_SEAT = "booster_seat"
    MEET_AND_GREET = "meet_and_greet"
    EXTRA_STOP = "extra_stop"
    WHEELCHAIR = "wheelchair"

    def __str__(self):
        return self.value


class ConsumeResult(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    INVALID = "invalid"

    def __str__(self):
        return self.value
