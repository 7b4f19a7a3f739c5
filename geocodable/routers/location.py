"""
Location Services Router

Endpoints for geocoding events and searching around them.

Endpoints:
    POST /api/location/geocode                 - Look up a raw location string with the provider (debugging)
    POST /api/location/events/{id}/geocode     - Run the resolution cascade for an event (updates DB)
    GET  /api/location/events/{id}/nearby      - Events within a radius of an event
    POST /api/location/backfill                - Geocode the backlog in the background
    GET  /api/location/config                  - Effective geocoding config (no secrets)
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from geocodable.database import get_db
from geocodable.models import Event
from geocodable.schemas_location import (
    BackfillRequest,
    GeocodeRequest,
    GeocodeResponse,
    GeocodingConfigResponse,
    NearbyEvent,
    NearbyResponse,
    ResolveResponse,
    Units,
)
from geocodable.settings_helper import load_geocoding_config

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/geocode", response_model=GeocodeResponse)
async def geocode_location_endpoint(
    request: GeocodeRequest,
    db: Session = Depends(get_db),
):
    """
    Look up a raw location string with the geocoding provider.
    Skips local data and does not save anything - useful for checking
    what the provider makes of a troublesome location.
    """
    from geocodable.services.location.geocoding import get_geocoding_client

    client = get_geocoding_client(load_geocoding_config(db))
    if client is None:
        raise HTTPException(status_code=503, detail="Geocoding API key not configured")

    try:
        result = client.geocode(request.location)
    finally:
        client.close()

    first = result.first
    return GeocodeResponse(
        status=result.status,
        latitude=first.latitude if first else None,
        longitude=first.longitude if first else None,
        matched_address=first.matched_address if first else None,
        admin_area=first.admin_area if first else None,
        all_matches=len(result.matches),
    )


@router.post("/events/{event_id}/geocode", response_model=ResolveResponse)
async def geocode_event_endpoint(
    event_id: int,
    location: Optional[str] = Query(None, description="Geocode this string instead of the event's location"),
    db: Session = Depends(get_db),
):
    """
    Run the resolution cascade for one event and save the result.
    Already-geocoded events come back unchanged with state 'ineligible'.
    """
    from geocodable.services.location.resolver import GeocodeResolver

    event = _get_event(db, event_id)
    resolver = GeocodeResolver.from_settings(db, Event)
    resolution = resolver.resolve(event, location)
    if resolution:
        db.commit()
        db.refresh(event)

    return ResolveResponse(
        id=event.id,
        resolved=resolution.resolved,
        state=resolution.state,
        source=resolution.source,
        api_status=resolution.api_status,
        reason=resolution.reason,
        latitude=event.latitude,
        longitude=event.longitude,
        zip=event.zip,
        location=event.location,
    )


@router.get("/events/{event_id}/nearby", response_model=NearbyResponse)
async def nearby_events_endpoint(
    event_id: int,
    distance: float = Query(..., gt=0),
    units: Optional[Units] = None,
    db: Session = Depends(get_db),
):
    """Events within `distance` of the given event, closest first"""
    from geocodable.services.location.proximity import find_within_distance_with_distance

    event = _get_event(db, event_id)
    if not event.geocoded:
        raise HTTPException(status_code=400, detail="Event is not geocoded")

    units = units or load_geocoding_config(db).default_units
    matches = find_within_distance_with_distance(db, event, distance, units, order_by_distance=True)

    return NearbyResponse(
        origin_id=event.id,
        units=units,
        radius=distance,
        events=[
            NearbyEvent(
                id=e.id,
                title=e.title,
                location=e.location,
                zip=e.zip,
                latitude=e.latitude,
                longitude=e.longitude,
                distance=round(d, 2),
            )
            for e, d in matches
        ],
    )


@router.post("/backfill")
async def backfill_endpoint(
    background_tasks: BackgroundTasks,
    request: Optional[BackfillRequest] = None,
):
    """Queue geocoding of every ungeocoded event that has a location or zip"""
    from geocodable.services.location.background_task import process_backfill

    limit = request.limit if request else None
    background_tasks.add_task(process_backfill, limit)
    logger.info(f"Queued geocoding backfill (limit={limit})")
    return {"status": "queued", "limit": limit}


@router.get("/config", response_model=GeocodingConfigResponse)
async def get_location_config(db: Session = Depends(get_db)):
    config = load_geocoding_config(db)
    return GeocodingConfigResponse(
        allow_zip_wildcards=config.allow_zip_wildcards,
        default_units=config.default_units,
        ignore=sorted(config.ignore),
        api_enabled=bool(config.google_api_key),
        timeout=config.timeout,
    )
