"""
Pydantic Schemas for Location Services
Covers: coordinates, provider results, resolution outcomes,
        proximity queries and the location API.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum


class Units(str, Enum):
    MILES = "miles"
    KMS = "kms"
    NMS = "nms"


class GeocodingStatus(str, Enum):
    SUCCESS = "GEO_SUCCESS"
    MISSING_ADDRESS = "GEO_MISSING_ADDRESS"
    UNKNOWN_ADDRESS = "GEO_UNKNOWN_ADDRESS"
    UNAVAILABLE_ADDRESS = "GEO_UNAVAILABLE_ADDRESS"
    BAD_KEY = "GEO_BAD_KEY"
    TOO_MANY_QUERIES = "GEO_TOO_MANY_QUERIES"
    SERVER_ERROR = "GEO_SERVER_ERROR"
    UNKNOWN = "UNKNOWN"


class ResolutionState(str, Enum):
    INELIGIBLE = "ineligible"
    RESOLVED_LOCALLY = "resolved_locally"
    RESOLVED_BY_API = "resolved_by_api"
    RESOLVED_BY_APPROXIMATE_ZIP = "resolved_by_approximate_zip"
    UNRESOLVED = "unresolved"


# =============================================================================
# COORDINATES & PROVIDER RESULTS
# =============================================================================

class GeoPoint(BaseModel):
    latitude: float
    longitude: float


class GeocodingMatch(BaseModel):
    """One candidate returned by the geocoding provider"""
    latitude: float
    longitude: float
    matched_address: Optional[str] = None
    admin_area: Optional[str] = None            # Sub-administrative area (city/locality)


class GeocodingResult(BaseModel):
    """Provider response: a status plus zero or more candidates, best first"""
    status: GeocodingStatus
    matches: List[GeocodingMatch] = []

    @property
    def success(self) -> bool:
        return self.status == GeocodingStatus.SUCCESS and bool(self.matches)

    @property
    def first(self) -> Optional[GeocodingMatch]:
        return self.matches[0] if self.matches else None


# =============================================================================
# LOCATION API
# =============================================================================

class GeocodeRequest(BaseModel):
    location: str


class GeocodeResponse(BaseModel):
    status: GeocodingStatus
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    matched_address: Optional[str] = None
    admin_area: Optional[str] = None
    all_matches: int = 0


class ResolveResponse(BaseModel):
    id: int
    resolved: bool
    state: ResolutionState
    source: Optional[str] = None
    api_status: Optional[GeocodingStatus] = None
    reason: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    zip: Optional[str] = None
    location: Optional[str] = None


class NearbyEvent(BaseModel):
    id: int
    title: Optional[str] = None
    location: Optional[str] = None
    zip: Optional[str] = None
    latitude: float
    longitude: float
    distance: float


class NearbyResponse(BaseModel):
    origin_id: int
    units: Units
    radius: float
    events: List[NearbyEvent] = []


class BackfillRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1)


class GeocodingConfigResponse(BaseModel):
    allow_zip_wildcards: bool
    default_units: Units
    ignore: List[str] = []
    api_enabled: bool
    timeout: float
