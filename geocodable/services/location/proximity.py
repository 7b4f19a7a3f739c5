"""
Proximity Service for Location Services

Finds sibling records within a radius of a geocoded record. The spherical
law of cosines from distance.py is built as a SQLAlchemy expression so the
database does the filtering; rows are never pulled into Python just to be
measured. Origin values are bound parameters, never formatted into SQL.

The acos argument is clamped to [-1, 1] in SQL (least/greatest), the
database-side equivalent of the 0.0 fallback in sphere_distance_between.
"""

import logging
import math
from typing import List, Optional, Tuple, Union

from sqlalchemy import func, literal, select
from sqlalchemy.orm import Session

from geocodable.schemas_location import Units
from geocodable.services.location.distance import (
    GEO_DEFAULT_UNITS,
    deg2rad,
    lat_lng,
    units_sphere_multiplier,
)

logger = logging.getLogger(__name__)


def _column_radians(column):
    # Same arithmetic as deg2rad() so SQL and Python agree on boundary rows
    return column / 180.0 * math.pi


def distance_expression(model, latitude: float, longitude: float,
                        units: Union[Units, str] = GEO_DEFAULT_UNITS):
    """SQL expression for the great-circle distance from (latitude, longitude) to each row"""
    lat1 = deg2rad(latitude)
    lng1 = deg2rad(longitude)
    lat2 = _column_radians(model.latitude)
    lng2 = _column_radians(model.longitude)

    cosine = (
        literal(math.sin(lat1)) * func.sin(lat2) +
        literal(math.cos(lat1)) * func.cos(lat2) *
        func.cos(lng2 - literal(lng1))
    )
    clamped = func.least(1.0, func.greatest(-1.0, cosine))
    return func.acos(clamped) * units_sphere_multiplier(units)


def _within_distance_stmt(origin, distance: float, units, order_by_distance: bool):
    if not getattr(origin, 'geocoded', False):
        raise ValueError(f"{origin!r} must be geocoded before searching around it")

    model = type(origin)
    latitude, longitude = lat_lng(origin)
    dist = distance_expression(model, latitude, longitude, units or GEO_DEFAULT_UNITS)

    stmt = select(model, dist.label("distance")).where(model.geocoded_clause(), dist <= distance)
    if getattr(origin, 'id', None) is not None:
        stmt = stmt.where(model.id != origin.id)
    if order_by_distance:
        stmt = stmt.order_by(dist)
    return stmt


def find_within_distance_with_distance(db: Session, origin, distance: float,
                                       units: Optional[Union[Units, str]] = None,
                                       order_by_distance: bool = False) -> List[Tuple[object, float]]:
    """(record, distance) pairs for sibling records within distance of origin (inclusive)"""
    stmt = _within_distance_stmt(origin, distance, units, order_by_distance)
    rows = db.execute(stmt).all()
    logger.debug(f"{len(rows)} records within {distance} {units or GEO_DEFAULT_UNITS} of {origin!r}")
    return [(row[0], row.distance) for row in rows]


def find_within_distance(db: Session, origin, distance: float,
                         units: Optional[Union[Units, str]] = None,
                         order_by_distance: bool = False) -> list:
    """Sibling records within distance of origin (inclusive)"""
    return [record for record, _ in find_within_distance_with_distance(
        db, origin, distance, units, order_by_distance)]
