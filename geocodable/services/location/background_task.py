"""
Location Background Task - Geocode backlog of ungeocoded records

Fires as a FastAPI BackgroundTask from POST /api/location/backfill, or runs
from the command line:

    python -m geocodable.services.location.background_task
    python -m geocodable.services.location.background_task --limit 100 --delay 0.2
    python -m geocodable.services.location.background_task --dry-run

Logic:
    1. Select records with no lat/lng that have a location or zip
    2. Run each through the resolution cascade
    3. Commit each resolved record on its own

A failure on one record is logged and rolled back; the batch carries on.
--delay spaces out records that reached the API tier, since the provider
allows a fixed request rate.

Database: Creates its own session via SessionLocal() since background tasks
run outside the request lifecycle.
"""

import argparse
import logging
import time
from collections import Counter
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from geocodable.services.location.resolver import GeocodeResolver

logger = logging.getLogger(__name__)


def geocode_all(db: Session, model, resolver: Optional[GeocodeResolver] = None,
                limit: Optional[int] = None, dry_run: bool = False, delay: float = 0.0) -> dict:
    """
    Resolve every ungeocoded, geocodable record of the model.
    Returns counts per resolution state.
    """
    resolver = resolver or GeocodeResolver.from_settings(db, model)

    stmt = (
        select(model.id)
        .where(model.ungeocoded_clause(), model.geocodable_clause())
        .order_by(model.id)
    )
    if limit:
        stmt = stmt.limit(limit)
    ids = db.execute(stmt).scalars().all()
    logger.info(f"Geocoding {len(ids)} {model.__name__} records{' (dry run)' if dry_run else ''}")

    counts = Counter()
    for record_id in ids:
        record = db.get(model, record_id)
        try:
            resolution = resolver.resolve(record)
            if dry_run:
                db.rollback()
            else:
                db.commit()
        except Exception as e:
            logger.error(f"Geocoding failed for {model.__name__}#{record_id}: {e}", exc_info=True)
            db.rollback()
            counts['failed'] += 1
            continue

        counts[resolution.state.value] += 1
        if delay and resolution.api_status is not None:
            time.sleep(delay)

    logger.info(f"Geocoding finished: {dict(counts)}")
    return dict(counts)


def process_backfill(limit: Optional[int] = None):
    """
    Background task: geocode the Event backlog with its own DB session.
    """
    from geocodable.database import SessionLocal
    from geocodable.models import Event

    db = SessionLocal()
    try:
        geocode_all(db, Event, limit=limit)
    except Exception as e:
        logger.error(f"Geocoding backfill failed: {e}", exc_info=True)
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Geocode events that have a location or zip but no coordinates'
    )
    parser.add_argument(
        '--limit',
        type=int,
        help='Maximum number of records to process'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Run the cascade without saving results'
    )
    parser.add_argument(
        '--delay',
        type=float,
        default=0.0,
        help='Seconds to wait after each record that called the geocoding API'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log every cascade step'
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    from geocodable.database import SessionLocal
    from geocodable.models import Event

    db = SessionLocal()
    try:
        counts = geocode_all(db, Event, limit=args.limit, dry_run=args.dry_run, delay=args.delay)
    finally:
        db.close()

    for state, count in sorted(counts.items()):
        print(f"{state:32} {count}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
