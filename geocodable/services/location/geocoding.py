"""
Geocoding Provider for Location Services

Google Geocoding API (rooftop precision where available, requires API key).

The provider is the expensive tier of the resolution cascade: metered and
rate limited. Every response is classified into a GeocodingStatus so the
resolver can log why a lookup failed and carry on to the next tier. Nothing
in here raises for a failed lookup - timeouts, HTTP errors and malformed
payloads all come back as a GeocodingResult with a non-success status.

Any object with a geocode(query) -> GeocodingResult method can stand in for
GoogleGeocodingClient (see GeocodingClient).
"""

import logging
from typing import Optional, Protocol

import httpx

from geocodable.schemas_location import GeocodingMatch, GeocodingResult, GeocodingStatus

logger = logging.getLogger(__name__)

# Google Geocoding API
GOOGLE_BASE = "https://maps.googleapis.com/maps/api/geocode/json"
GOOGLE_TIMEOUT = 10

GOOGLE_STATUS_MAP = {
    "OK": GeocodingStatus.SUCCESS,
    "ZERO_RESULTS": GeocodingStatus.UNKNOWN_ADDRESS,
    "INVALID_REQUEST": GeocodingStatus.MISSING_ADDRESS,
    "REQUEST_DENIED": GeocodingStatus.BAD_KEY,
    "OVER_QUERY_LIMIT": GeocodingStatus.TOO_MANY_QUERIES,
    "OVER_DAILY_LIMIT": GeocodingStatus.TOO_MANY_QUERIES,
    "UNKNOWN_ERROR": GeocodingStatus.SERVER_ERROR,
}

HTTP_STATUS_MAP = {
    400: GeocodingStatus.MISSING_ADDRESS,
    403: GeocodingStatus.BAD_KEY,
    429: GeocodingStatus.TOO_MANY_QUERIES,
}


class GeocodingClient(Protocol):
    def geocode(self, query: str) -> GeocodingResult: ...


def parse_geocoding_error(result: GeocodingResult) -> str:
    """Name of the failure classification, e.g. 'GEO_TOO_MANY_QUERIES'"""
    return GeocodingStatus(result.status).value


def classify_google_status(status: Optional[str]) -> GeocodingStatus:
    return GOOGLE_STATUS_MAP.get(status or "", GeocodingStatus.UNKNOWN)


def classify_http_status(status_code: int) -> GeocodingStatus:
    if status_code >= 500:
        return GeocodingStatus.SERVER_ERROR
    return HTTP_STATUS_MAP.get(status_code, GeocodingStatus.UNKNOWN)


class GoogleGeocodingClient:
    """Forward geocoding against the Google Geocoding API"""

    def __init__(self, api_key: str, timeout: float = GOOGLE_TIMEOUT, client: Optional[httpx.Client] = None):
        self._api_key = api_key
        self._timeout = timeout
        self._client = client      # Shared client; None opens one per lookup

    def _get(self, params: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.get(GOOGLE_BASE, params=params)
        with httpx.Client(timeout=self._timeout) as client:
            return client.get(GOOGLE_BASE, params=params)

    def geocode(self, query: str) -> GeocodingResult:
        if not query or not query.strip():
            return GeocodingResult(status=GeocodingStatus.MISSING_ADDRESS)

        params = {
            "address": query.strip(),
            "key": self._api_key,
        }

        try:
            response = self._get(params)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            logger.warning(f"Google geocoder timeout for: {query}")
            return GeocodingResult(status=GeocodingStatus.SERVER_ERROR)
        except httpx.HTTPStatusError as e:
            logger.error(f"Google geocoder HTTP {e.response.status_code} for '{query}'")
            return GeocodingResult(status=classify_http_status(e.response.status_code))
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Google geocoder error for '{query}': {e}")
            return GeocodingResult(status=GeocodingStatus.SERVER_ERROR)

        if not isinstance(data, dict):
            logger.error(f"Google geocoder returned unexpected payload for '{query}'")
            return GeocodingResult(status=GeocodingStatus.SERVER_ERROR)

        status = classify_google_status(data.get("status"))
        if status != GeocodingStatus.SUCCESS:
            logger.info(f"Google: status '{data.get('status')}' for '{query}'")
            return GeocodingResult(status=status)

        matches = []
        for r in data.get("results", []):
            loc = r.get("geometry", {}).get("location", {})
            if loc.get("lat") is None or loc.get("lng") is None:
                continue

            components = {}
            for comp in r.get("address_components", []):
                for t in comp.get("types", []):
                    components.setdefault(t, comp)

            admin_area = (
                components.get("locality", {}).get("long_name")
                or components.get("administrative_area_level_2", {}).get("long_name")
            )
            matches.append(GeocodingMatch(
                latitude=loc["lat"],
                longitude=loc["lng"],
                matched_address=r.get("formatted_address"),
                admin_area=admin_area,
            ))

        if not matches:
            logger.info(f"Google: no results for '{query}'")
            return GeocodingResult(status=GeocodingStatus.UNKNOWN_ADDRESS)

        logger.debug(f"Google: {len(matches)} results for '{query}', first -> {matches[0]!r}")
        return GeocodingResult(status=GeocodingStatus.SUCCESS, matches=matches)

    def close(self) -> None:
        """Close a shared client passed in by the caller"""
        if self._client is not None:
            self._client.close()


def get_geocoding_client(config) -> Optional[GoogleGeocodingClient]:
    """Provider for the given GeocodingConfig, or None when no API key is set"""
    if not config.google_api_key:
        return None
    return GoogleGeocodingClient(api_key=config.google_api_key, timeout=config.timeout)
