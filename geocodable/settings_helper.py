"""
Settings Helper - Read geocoding settings from the database

Settings live in the 'settings' table as (category, key, value, value_type)
rows. Geocoding reads category 'geocoding':

    allow_zip_wildcards   boolean  Allow approximate zip matches as a last resort
    default_units         string   miles | kms | nms
    ignore                json     List of location strings never to geocode
    google_api_key        string   Google Geocoding API key (API tier disabled if blank)
    timeout               number   Provider request timeout in seconds
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from geocodable.models import Setting
from geocodable.schemas_location import Units

logger = logging.getLogger(__name__)

GEOCODING_CATEGORY = 'geocoding'

GEO_ALLOW_ZIP_WILDCARDS = True
GEO_DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class GeocodingConfig:
    """Effective geocoding configuration, loaded once per resolver"""
    allow_zip_wildcards: bool = GEO_ALLOW_ZIP_WILDCARDS
    default_units: Units = Units.MILES
    ignore: FrozenSet[str] = field(default_factory=frozenset)
    google_api_key: Optional[str] = None
    timeout: float = GEO_DEFAULT_TIMEOUT

    def is_ignored(self, location: Optional[str]) -> bool:
        return location is not None and location in self.ignore


def _parse_value(value: str, value_type: str) -> Any:
    """Parse string value to appropriate type"""
    if value is None:
        return None

    if value_type == 'number':
        try:
            if '.' in value:
                return float(value)
            return int(value)
        except ValueError:
            return value
    elif value_type == 'boolean':
        return value.lower() in ('true', '1', 'yes')
    elif value_type == 'json':
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def get_setting_value(db: Session, category: str, key: str, default: Any = None) -> Any:
    """Get a setting value with type conversion"""
    row = db.execute(
        select(Setting.value, Setting.value_type)
        .where(Setting.category == category, Setting.key == key)
    ).first()

    if not row:
        return default

    return _parse_value(row[0], row[1])


def set_setting_value(db: Session, category: str, key: str, value: Any, value_type: str = 'string') -> Setting:
    """Insert or update a setting. Caller commits."""
    if value_type == 'json':
        raw = json.dumps(value)
    elif value_type == 'boolean':
        raw = 'true' if value else 'false'
    else:
        raw = None if value is None else str(value)

    setting = db.execute(
        select(Setting).where(Setting.category == category, Setting.key == key)
    ).scalar_one_or_none()
    if setting is None:
        setting = Setting(category=category, key=key)
        db.add(setting)
    setting.value = raw
    setting.value_type = value_type
    return setting


def _coerce_units(value: Any) -> Units:
    try:
        return Units(str(value).lower())
    except ValueError:
        logger.warning(f"Unknown geocoding units {value!r}, using miles")
        return Units.MILES


def load_geocoding_config(db: Session) -> GeocodingConfig:
    """Build the geocoding configuration from the settings table"""
    allow_wildcards = get_setting_value(db, GEOCODING_CATEGORY, 'allow_zip_wildcards', GEO_ALLOW_ZIP_WILDCARDS)
    units = get_setting_value(db, GEOCODING_CATEGORY, 'default_units', Units.MILES.value)
    ignore = get_setting_value(db, GEOCODING_CATEGORY, 'ignore', [])
    api_key = get_setting_value(db, GEOCODING_CATEGORY, 'google_api_key')
    timeout = get_setting_value(db, GEOCODING_CATEGORY, 'timeout', GEO_DEFAULT_TIMEOUT)

    if isinstance(allow_wildcards, str):
        allow_wildcards = allow_wildcards.lower() in ('true', '1', 'yes')
    if not isinstance(ignore, list):
        logger.warning(f"Geocoding ignore list is not a JSON list: {ignore!r}")
        ignore = []
    if not isinstance(timeout, (int, float)):
        timeout = GEO_DEFAULT_TIMEOUT

    return GeocodingConfig(
        allow_zip_wildcards=bool(allow_wildcards),
        default_units=_coerce_units(units),
        ignore=frozenset(str(loc) for loc in ignore),
        google_api_key=api_key or None,
        timeout=float(timeout),
    )
