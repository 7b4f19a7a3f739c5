"""Shared test data factories. Realistic US defaults, all overridable."""

from geocodable.models import Event, Zip
from geocodable.schemas_location import GeocodingMatch, GeocodingResult, GeocodingStatus


def make_event(db, **overrides) -> Event:
    defaults = {
        "title": "Community cleanup",
        "address_1": None,
        "address_2": None,
        "city": None,
        "zip": None,
        "location": None,
        "latitude": None,
        "longitude": None,
    }
    event = Event(**{**defaults, **overrides})
    db.add(event)
    db.commit()
    return event


def make_zip(db, zip_code: str, latitude: float, longitude: float, city: str = None, state: str = None) -> Zip:
    entry = Zip(zip_code=zip_code, latitude=latitude, longitude=longitude, city=city, state=state)
    db.add(entry)
    db.commit()
    return entry


class FakeGeocodingClient:
    """Stands in for the Google client; records every query it receives."""

    def __init__(self, result: GeocodingResult = None):
        self.result = result or GeocodingResult(status=GeocodingStatus.UNKNOWN_ADDRESS)
        self.queries = []

    def geocode(self, query):
        self.queries.append(query)
        return self.result


def success_result(latitude: float, longitude: float, admin_area: str = None) -> GeocodingResult:
    return GeocodingResult(
        status=GeocodingStatus.SUCCESS,
        matches=[GeocodingMatch(latitude=latitude, longitude=longitude,
                                matched_address="somewhere", admin_area=admin_area)],
    )
