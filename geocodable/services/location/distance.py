"""
Distance Calculations for Location Services

Spherical law of cosines for great-circle distance between two lat/lng points.
Used by proximity searches and for display of distances between records.
"""

import math
from typing import Union

from geocodable.schemas_location import Units

GEO_KMS_PER_MILE = 1.609
GEO_NMS_PER_MILE = 0.868976242
GEO_EARTH_RADIUS_IN_MILES = 3963.19
GEO_EARTH_RADIUS_IN_KMS = GEO_EARTH_RADIUS_IN_MILES * GEO_KMS_PER_MILE
GEO_EARTH_RADIUS_IN_NMS = GEO_EARTH_RADIUS_IN_MILES * GEO_NMS_PER_MILE
GEO_DEFAULT_UNITS = Units.MILES

SPHERICAL_UNIT_MULTIPLIERS = {
    Units.KMS: GEO_EARTH_RADIUS_IN_KMS,
    Units.NMS: GEO_EARTH_RADIUS_IN_NMS,
    Units.MILES: GEO_EARTH_RADIUS_IN_MILES,
}


def units_sphere_multiplier(units: Union[Units, str, None]) -> float:
    """Earth radius in the given units. Unknown units fall back to miles."""
    try:
        return SPHERICAL_UNIT_MULTIPLIERS[Units(units)]
    except ValueError:
        return GEO_EARTH_RADIUS_IN_MILES


def deg2rad(degrees: float) -> float:
    return float(degrees) / 180.0 * math.pi


def rad2deg(rad: float) -> float:
    return float(rad) * 180.0 / math.pi


def lat_lng(obj) -> tuple:
    """
    Strip an object down to its (lat, lng) pair for comparison.
    Accepts anything with latitude/longitude attributes or a 2-tuple.
    """
    if isinstance(obj, (tuple, list)) and len(obj) == 2:
        return (float(obj[0]), float(obj[1]))
    try:
        return (float(obj.latitude), float(obj.longitude))
    except (AttributeError, TypeError) as e:
        raise ValueError(
            f"lat or lng couldn't be read from {obj!r} - make sure it has latitude & longitude attributes"
        ) from e


def sphere_distance_between(a, b, units: Union[Units, str] = GEO_DEFAULT_UNITS) -> float:
    """
    Great-circle distance between two points via the spherical law of cosines.

    Identical points return 0.0 without touching the trig functions. If rounding
    pushes the acos argument outside [-1, 1] the distance is reported as 0.0.
    """
    lat1, lng1 = lat_lng(a)
    lat2, lng2 = lat_lng(b)
    if (lat1, lng1) == (lat2, lng2):
        return 0.0

    try:
        return units_sphere_multiplier(units) * math.acos(
            math.sin(deg2rad(lat1)) * math.sin(deg2rad(lat2)) +
            math.cos(deg2rad(lat1)) * math.cos(deg2rad(lat2)) *
            math.cos(deg2rad(lng2) - deg2rad(lng1))
        )
    except ValueError:
        return 0.0


def spherical_distance_to(a, b, units: Union[Units, str] = GEO_DEFAULT_UNITS) -> str:
    """Distance formatted for display, e.g. '12.34'"""
    return "%0.2f" % sphere_distance_between(a, b, units)
