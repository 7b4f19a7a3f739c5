"""
Geocode Resolver - the resolution cascade

Strategy (each tier only runs when the previous one came up empty):
    1. Indirect  - local data only, no API call
                   location blank      -> zips table (exact / prefix)
                   zip blank           -> geocoded records with the same location text
                   both present        -> location text, then zips table
    2. API       - external geocoder with the record's full location string
    3. Zip relax - iterative zip wildcard match (if allow_zip_wildcards)
    4. Give up   - record stays ungeocoded

Every call returns its own Resolution (state, source, API status,
ineligibility reason). A Resolution is truthy when coordinates were set.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from geocodable.models import Zip
from geocodable.schemas_location import GeocodingResult, GeocodingStatus, ResolutionState
from geocodable.settings_helper import GeocodingConfig, load_geocoding_config
from geocodable.services.location.geocoding import (
    GeocodingClient,
    get_geocoding_client,
    parse_geocoding_error,
)
from geocodable.services.location.local_match import (
    LocalMatcher,
    location_blank,
    zip_complete,
)

logger = logging.getLogger(__name__)

GEOCODING_REQUIRED_ATTRIBUTES = ('zip', 'location', 'latitude', 'longitude')
GEOCODING_INDIRECT_ATTRIBUTES = ('zip', 'location')
LOCATION_TITLE_ATTRIBUTES = ('address_1', 'address_2', 'city', 'zip')

RESOLVED_STATES = {
    ResolutionState.RESOLVED_LOCALLY,
    ResolutionState.RESOLVED_BY_API,
    ResolutionState.RESOLVED_BY_APPROXIMATE_ZIP,
}

# model class -> bool, filled once per model
_capability_cache: dict = {}


@dataclass
class Resolution:
    """Outcome of one resolve() call"""
    state: ResolutionState
    source: Optional[str] = None                    # 'location', 'zip', 'api', 'zip_wildcard'
    api_status: Optional[GeocodingStatus] = None    # Set whenever the API tier ran
    reason: Optional[str] = None                    # Why the record was ineligible

    @property
    def resolved(self) -> bool:
        return self.state in RESOLVED_STATES

    def __bool__(self) -> bool:
        return self.resolved


# =============================================================================
# CAPABILITY CHECKS
# =============================================================================

def _column_names(model) -> set:
    mapper = inspect(model, raiseerr=False)
    if mapper is None:
        return set()
    return set(mapper.columns.keys())


def supports_geocoding(model) -> bool:
    """Does the model map zip, location, latitude and longitude columns?"""
    if model not in _capability_cache:
        _capability_cache[model] = set(GEOCODING_REQUIRED_ATTRIBUTES) <= _column_names(model)
    return _capability_cache[model]


def location_title_attributes(model) -> list:
    """Columns used to build a location string when the location is blank"""
    columns = _column_names(model)
    return [a for a in LOCATION_TITLE_ATTRIBUTES if a in columns]


def _label(record) -> str:
    return f"{type(record).__name__}#{getattr(record, 'id', None)}"


def geo_info(record) -> str:
    """A string representing the record's geocoding state, for debugging"""
    parts = []
    for attr in GEOCODING_REQUIRED_ATTRIBUTES:
        value = getattr(record, attr, None)
        value = '' if value is None else str(value)
        parts.append(f"{attr}: {value if value.strip() else 'empty'}")
    return f"GeoInfo for {_label(record)}: " + ", ".join(parts)


# =============================================================================
# RESOLVER
# =============================================================================

class GeocodeResolver:
    """Resolves coordinates for records of one geocodable model"""

    def __init__(self, db: Session, model, client: Optional[GeocodingClient] = None,
                 config: Optional[GeocodingConfig] = None):
        self.db = db
        self.model = model
        self.client = client
        self.config = config or GeocodingConfig()
        self.matcher = LocalMatcher(db, model)
        self.supported = supports_geocoding(model)
        self.title_attributes = location_title_attributes(model)
        self._has_city = 'city' in _column_names(model)
        if not self.supported:
            logger.warning(f"{model.__name__} lacks {GEOCODING_REQUIRED_ATTRIBUTES} - geocoding disabled")

    @classmethod
    def from_settings(cls, db: Session, model) -> "GeocodeResolver":
        """Resolver configured from the settings table (API tier needs a key)"""
        config = load_geocoding_config(db)
        return cls(db, model, client=get_geocoding_client(config), config=config)

    # ── Record helpers ─────────────────────────────────────────────────

    def full_location(self, record) -> str:
        """Location text, or the title attributes joined when it's blank"""
        if not location_blank(record.location):
            return record.location
        values = [getattr(record, a, None) for a in self.title_attributes]
        return ", ".join(str(v) for v in values if v not in (None, ''))

    def location_display(self, record) -> Optional[str]:
        """Location text, or the "City, ST" label of the record's zip when it's blank"""
        if not location_blank(record.location):
            return record.location
        zip_code = self.matcher.zip_match(record.zip)
        if zip_code is None:
            return None
        return zip_code.location_label or None

    def has_geocodable_attributes(self, record) -> bool:
        return any(
            getattr(record, a, None) is not None and str(getattr(record, a)).strip()
            for a in GEOCODING_INDIRECT_ATTRIBUTES
        )

    def ineligible_reason(self, record) -> Optional[str]:
        """
        Why the record can't be geocoded, or None if it can
        (right attributes, not geocoded yet, has a location or zip,
        and the location isn't on the ignore list).
        """
        if not self.supported:
            return 'unsupported'
        if record.geocoded:
            return 'already_geocoded'
        if not self.has_geocodable_attributes(record):
            return 'no_geocodable_attributes'
        if self.config.is_ignored(record.location):
            return 'location_ignored'
        return None

    def geocodable(self, record) -> bool:
        return self.ineligible_reason(record) is None

    # ── Inheriting geodata ─────────────────────────────────────────────

    def inherit_geodata_from_zip(self, record, zip_code: Zip):
        if not isinstance(zip_code, Zip):
            raise TypeError(f"{zip_code!r} must be a Zip")
        record.set_lat_lng(zip_code.latitude, zip_code.longitude)
        if zip_complete(record.zip):
            record.zip = zip_code.zip_code
        if zip_code.location_label:
            record.location = zip_code.location_label
        return record

    def inherit_geodata_from_results(self, record, results: GeocodingResult):
        first = results.first
        record.set_lat_lng(first.latitude, first.longitude)
        if self._has_city and first.admin_area:
            record.city = first.admin_area
        return first

    def inherit_geodata_from(self, record, source) -> bool:
        """Copy as much geodata from source as possible"""
        logger.debug(f"Setting geoattributes from {source!r}")
        if source is None:
            return False
        if isinstance(source, Zip):
            self.inherit_geodata_from_zip(record, source)
        elif isinstance(source, self.model):
            record.set_lat_lng(source.latitude, source.longitude)
        elif isinstance(source, GeocodingResult):
            self.inherit_geodata_from_results(record, source)
        else:
            raise TypeError(f"Can't inherit geodata from {type(source).__name__}")
        return True

    # ── Tiers ──────────────────────────────────────────────────────────

    def _location_cached(self, record) -> bool:
        logger.debug(f"Attempting to geocode from previously located records with the same location {self.full_location(record)}")
        return self.inherit_geodata_from(record, self.matcher.find_by_location_text(self.full_location(record)))

    def _zip_matched(self, record) -> bool:
        return self.inherit_geodata_from(record, self.matcher.zip_match(record.zip))

    def geocode_indirectly(self, record) -> Optional[str]:
        """
        Geocode from the zip or location using local data only.
        Returns the source used ('location' or 'zip') or None.
        """
        logger.debug(f"Attempting to geocode {geo_info(record)} indirectly")
        if location_blank(record.location):
            logger.debug("Location is blank")
            return 'zip' if self._zip_matched(record) else None
        elif not (record.zip or '').strip():
            logger.debug("Zip is blank")
            return 'location' if self._location_cached(record) else None
        else:
            logger.debug("Zip and location are intact")
            if self._location_cached(record):
                return 'location'
            return 'zip' if self._zip_matched(record) else None

    def geocode_with_api(self, record, location_string: Optional[str] = None) -> Optional[GeocodingStatus]:
        """
        Geocode through the external provider. Returns the provider status,
        or None when no provider is configured.
        """
        if self.client is None:
            logger.debug("No geocoding provider configured - skipping API tier")
            return None

        query = location_string or self.full_location(record)
        try:
            results = self.client.geocode(query)
        except Exception as e:
            logger.error(f"Geocoding provider failed for {geo_info(record)}: {e}", exc_info=True)
            return GeocodingStatus.SERVER_ERROR

        if results.success:
            self.inherit_geodata_from(record, results)
            return GeocodingStatus.SUCCESS

        status = results.status
        if status == GeocodingStatus.SUCCESS:
            # OK with nothing usable in it
            status = GeocodingStatus.UNKNOWN_ADDRESS
        error = parse_geocoding_error(results)
        logger.error(f"Geocoding didn't work {error!r} for {geo_info(record)}")
        return status

    def geocode_approximately(self, record) -> bool:
        """Last resort: nearest zip by iterative prefix, coordinates only"""
        match = self.matcher.iterative_zip_match(record.zip, allow_wildcards=self.config.allow_zip_wildcards)
        if match is None:
            return False
        record.set_lat_lng(match.latitude, match.longitude)
        return True

    # ── Cascade ────────────────────────────────────────────────────────

    def resolve(self, record, location_string: Optional[str] = None) -> Resolution:
        """
        Run the cascade for one record. Mutates the record in place;
        the caller persists it.
        """
        logger.debug(f"Geocoding {geo_info(record)}")
        reason = self.ineligible_reason(record)
        if reason:
            logger.debug(f"{geo_info(record)} is not geocodable ({reason})")
            return Resolution(ResolutionState.INELIGIBLE, reason=reason)

        source = self.geocode_indirectly(record)
        if source:
            logger.info(f"Geocoded {_label(record)} from local {source} data")
            return Resolution(ResolutionState.RESOLVED_LOCALLY, source=source)

        api_status = self.geocode_with_api(record, location_string)
        if api_status == GeocodingStatus.SUCCESS:
            logger.info(f"Geocoded {_label(record)} with the API")
            return Resolution(ResolutionState.RESOLVED_BY_API, source='api', api_status=api_status)

        if self.geocode_approximately(record):
            logger.info(f"Geocoded {_label(record)} from a similar zip")
            return Resolution(ResolutionState.RESOLVED_BY_APPROXIMATE_ZIP, source='zip_wildcard',
                              api_status=api_status)

        logger.info(f"Could not geocode {geo_info(record)}")
        return Resolution(ResolutionState.UNRESOLVED, api_status=api_status)
