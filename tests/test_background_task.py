"""Tests for the geocoding backfill."""

from unittest.mock import MagicMock

import httpx

from geocodable.models import Event
from geocodable.schemas_location import ResolutionState
from geocodable.services.location.background_task import geocode_all, main
from geocodable.services.location.resolver import GeocodeResolver, Resolution
from geocodable.settings_helper import GEOCODING_CATEGORY, set_setting_value
from tests.factories import FakeGeocodingClient, make_event, make_zip, success_result


class TestGeocodeAll:
    def test_resolves_only_eligible_records(self, db, fake_client):
        make_zip(db, "02134", 42.35, -71.13, "Allston", "MA")
        by_zip = make_event(db, zip="02134")
        unknown = make_event(db, location="Atlantis")
        done = make_event(db, zip="02134", latitude=1.0, longitude=2.0)
        bare = make_event(db, title="No location at all")

        counts = geocode_all(db, Event, resolver=GeocodeResolver(db, Event, client=fake_client))

        assert counts == {"resolved_locally": 1, "unresolved": 1}
        db.refresh(by_zip)
        assert (by_zip.latitude, by_zip.longitude) == (42.35, -71.13)
        assert unknown.latitude is None
        assert (done.latitude, done.longitude) == (1.0, 2.0)
        assert bare.latitude is None
        assert fake_client.queries == ["Atlantis"]

    def test_results_are_committed(self, db):
        client = FakeGeocodingClient(success_result(37.77, -122.42))
        event = make_event(db, location="Ferry Building")

        geocode_all(db, Event, resolver=GeocodeResolver(db, Event, client=client))
        db.expire_all()

        assert db.get(Event, event.id).latitude == 37.77

    def test_dry_run_saves_nothing(self, db):
        make_zip(db, "02134", 42.35, -71.13)
        event = make_event(db, zip="02134")

        counts = geocode_all(db, Event, resolver=GeocodeResolver(db, Event), dry_run=True)

        assert counts == {"resolved_locally": 1}
        db.expire_all()
        assert db.get(Event, event.id).latitude is None

    def test_limit(self, db, fake_client):
        for name in ("A", "B", "C"):
            make_event(db, location=name)

        counts = geocode_all(db, Event, resolver=GeocodeResolver(db, Event, client=fake_client), limit=2)

        assert counts == {"unresolved": 2}
        assert fake_client.queries == ["A", "B"]

    def test_builds_resolver_from_settings(self, db):
        make_zip(db, "02134", 42.35, -71.13)
        make_event(db, zip="02134")

        assert geocode_all(db, Event) == {"resolved_locally": 1}

    def test_failed_record_does_not_stop_the_batch(self, db):
        first = make_event(db, location="A")
        make_event(db, location="B")
        resolver = MagicMock(spec=GeocodeResolver)
        resolver.resolve.side_effect = [RuntimeError("boom"), Resolution(ResolutionState.UNRESOLVED)]

        counts = geocode_all(db, Event, resolver=resolver)

        assert counts == {"failed": 1, "unresolved": 1}
        assert resolver.resolve.call_count == 2
        assert db.get(Event, first.id).latitude is None

    def test_api_clients_are_closed(self, db, monkeypatch):
        set_setting_value(db, GEOCODING_CATEGORY, "google_api_key", "test-key")
        db.commit()
        make_event(db, location="Ferry Building")

        response = MagicMock(spec=httpx.Response)
        response.json.return_value = {
            "status": "OK",
            "results": [{"geometry": {"location": {"lat": 37.7955, "lng": -122.3937}}}],
        }
        http_client = MagicMock()
        http_client.__enter__.return_value = http_client
        http_client.__exit__.return_value = False
        http_client.get.return_value = response
        client_cls = MagicMock(return_value=http_client)
        monkeypatch.setattr(httpx, "Client", client_cls)

        counts = geocode_all(db, Event)

        assert counts == {"resolved_by_api": 1}
        assert client_cls.call_count == 1
        http_client.__exit__.assert_called_once()


class TestMain:
    def test_prints_counts(self, monkeypatch, capsys):
        calls = {}

        def fake_geocode_all(db, model, limit=None, dry_run=False, delay=0.0):
            calls.update(model=model, limit=limit, dry_run=dry_run, delay=delay)
            return {"resolved_locally": 3}

        monkeypatch.setattr(
            "geocodable.services.location.background_task.geocode_all", fake_geocode_all
        )
        monkeypatch.setattr("geocodable.database.SessionLocal", lambda: _ClosableSession())

        assert main(["--limit", "5", "--dry-run"]) == 0
        assert calls == {"model": Event, "limit": 5, "dry_run": True, "delay": 0.0}
        assert "resolved_locally" in capsys.readouterr().out


class _ClosableSession:
    closed = False

    def close(self):
        self.closed = True
