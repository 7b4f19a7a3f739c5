"""
SQLAlchemy models for geocodable

Tables:
    - Event: Example geocodable record (any model mixing in GeocodableMixin works)
    - Zip: Reference zip code centroids, read-only for the resolver
    - Setting: Typed key/value configuration (category 'geocoding')

A model participates in the geocoding cascade by mixing in GeocodableMixin,
which contributes the zip, location, location_key, latitude and longitude
columns. location_key is kept in sync with location so exact text matches
can be answered with an indexed equality lookup.
"""

from sqlalchemy import Column, Integer, String, Text, Float, and_, or_
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from geocodable.database import Base


# =============================================================================
# GEOCODABLE MIXIN
# =============================================================================

class GeocodableMixin:
    """
    Columns and helpers shared by every geocodable model.

    A record is "geocoded" once both latitude and longitude are set.
    Latitude and longitude are only ever written together (set_lat_lng).
    """

    zip = Column(String(10), index=True)
    location = Column(Text)
    location_key = Column(Text, index=True)     # normalize_location(location)
    latitude = Column(Float)
    longitude = Column(Float)

    @validates("location")
    def _sync_location_key(self, key, value):
        from geocodable.services.location.local_match import normalize_location

        self.location_key = normalize_location(value) if value is not None else None
        return value

    @property
    def geocoded(self):
        return self.latitude is not None and self.longitude is not None

    @property
    def geo_coords(self):
        return [self.latitude, self.longitude]

    def set_lat_lng(self, latitude, longitude):
        self.latitude = latitude
        self.longitude = longitude

    @classmethod
    def geocoded_clause(cls):
        return and_(cls.latitude.isnot(None), cls.longitude.isnot(None))

    @classmethod
    def ungeocoded_clause(cls):
        return and_(cls.latitude.is_(None), cls.longitude.is_(None))

    @classmethod
    def geocodable_clause(cls):
        return or_(
            and_(cls.location.isnot(None), cls.location != ''),
            and_(cls.zip.isnot(None), cls.zip != ''),
        )


# =============================================================================
# EVENTS
# =============================================================================

class Event(GeocodableMixin, Base):
    """User-submitted event with a free-text location and/or a zip code"""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    title = Column(String(200))
    address_1 = Column(String(200))
    address_2 = Column(String(200))
    city = Column(String(100))
    created_at = Column(TIMESTAMP(timezone=True), default=func.current_timestamp())

    def __repr__(self):
        return f"<Event(id={self.id}, zip={self.zip!r}, location={self.location!r}, lat={self.latitude}, lng={self.longitude})>"


# =============================================================================
# ZIP REFERENCE DATA
# =============================================================================

class Zip(Base):
    """Zip code centroid reference data (5-digit, zero-padded)"""
    __tablename__ = "zips"

    id = Column(Integer, primary_key=True)
    zip_code = Column(String(5), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    city = Column(String(100))
    state = Column(String(2))

    @property
    def location_label(self):
        """Display location for the zip, e.g. 'Beverly Hills, CA'"""
        return ", ".join(part for part in (self.city, self.state) if part)

    def __repr__(self):
        return f"<Zip(zip_code='{self.zip_code}', lat={self.latitude}, lng={self.longitude})>"


# =============================================================================
# SETTINGS
# =============================================================================

class Setting(Base):
    """Typed configuration value (value_type: string, number, boolean, json)"""
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    category = Column(String(50), nullable=False)
    key = Column(String(100), nullable=False)
    value = Column(Text)
    value_type = Column(String(20), default='string')
    description = Column(Text)
