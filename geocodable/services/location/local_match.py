"""
Local Matching for Location Services

Finds coordinates for a record from data we already have, so the metered
geocoding API is only called when nothing local fits:

    1. Location text - another record with the same (normalized) location
       text that is already geocoded. When several exist, the most common
       lat/lng pair among them wins.
    2. Zip code     - the zips reference table, exact match for a complete
       5-digit zip, prefix match for a partial one.
    3. Zip wildcard - last resort: knock digits off the end of the zip until
       something in the zips table starts with what's left (min 2 digits).
       Zip digits are roughly bound to geography (90210 is closer to 90245
       than to 19123), so the match is approximate but usually nearby.
"""

import logging
import re
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from geocodable.models import Zip

logger = logging.getLogger(__name__)

ZIP_LENGTH = 5
MIN_ZIP_PREFIX = 2

_LOCATION_STRIP_RE = re.compile(r'[^A-Za-z0-9 ,\-]+')
_SIGNIFICANT_STRIP_RE = re.compile(r'[^A-Za-z0-9]+')
_MAJOR_ZIP_RE = re.compile(r'\s*(\d{0,5})')


# =============================================================================
# TEXT & ZIP NORMALIZATION
# =============================================================================

def normalize_location(text: Optional[str]) -> str:
    """Keep letters, digits, spaces, commas and hyphens only"""
    return _LOCATION_STRIP_RE.sub('', text or '').strip()


def location_blank(text: Optional[str]) -> bool:
    """Does the location contain nothing but spaces and punctuation?"""
    return not _SIGNIFICANT_STRIP_RE.sub('', text or '')


def major_zip(zip_code: Optional[str]) -> str:
    """Leading digits of the zip, at most 5 ('02134-1234' -> '02134')"""
    return _MAJOR_ZIP_RE.match(zip_code or '').group(1)


def zip_complete(zip_code: Optional[str]) -> bool:
    return len(major_zip(zip_code)) == ZIP_LENGTH


def zip_for_search(zip_code: Optional[str]) -> str:
    """Exact zip when complete, otherwise a LIKE prefix ('021' -> '021%')"""
    primary = major_zip(zip_code)
    return primary if len(primary) == ZIP_LENGTH else primary + '%'


# =============================================================================
# LOCAL MATCHER
# =============================================================================

class LocalMatcher:
    """Queries already-geocoded records and the zips table for coordinates"""

    def __init__(self, db: Session, model):
        self.db = db
        self.model = model

    def find_by_location_text(self, text: Optional[str]):
        """
        Geocoded record whose normalized location equals the given text.

        Candidates are grouped by lat/lng and the most frequent pair wins;
        ties go to the pair seen first (lowest id).
        """
        key = normalize_location(text)
        if not key:
            return None

        model = self.model
        first_id = func.min(model.id).label("first_id")
        hits = func.count().label("hits")
        stmt = (
            select(first_id, hits)
            .where(model.location_key == key, model.geocoded_clause())
            .group_by(model.latitude, model.longitude)
            .order_by(hits.desc(), first_id)
            .limit(1)
        )
        best = self.db.execute(stmt).first()
        if best is None:
            logger.debug(f"No geocoded records share location '{key}'")
            return None

        match = self.db.get(model, best.first_id)
        logger.debug(f"Location based match {match!r} ({best.hits} records agree)")
        return match

    def find_by_zip(self, search_zip: Optional[str]) -> Optional[Zip]:
        """First zip whose code is LIKE search_zip (exact, or prefix with '%')"""
        if not search_zip:
            return None
        logger.debug(f"Looking for zip code {search_zip} to derive geo attributes from")
        zip_code = self.db.execute(
            select(Zip).where(Zip.zip_code.like(search_zip)).order_by(Zip.id).limit(1)
        ).scalars().first()
        if zip_code:
            logger.debug(f"Zip match found {zip_code!r}")
        return zip_code

    def zip_match(self, zip_code: Optional[str]) -> Optional[Zip]:
        """Exact/prefix zip lookup for the record's own zip (no relaxation)"""
        if len(major_zip(zip_code)) < MIN_ZIP_PREFIX:
            return None
        return self.find_by_zip(zip_for_search(zip_code))

    def iterative_zip_match(self, zip_code: Optional[str], allow_wildcards: bool = True,
                            iterative: bool = True) -> Optional[Zip]:
        """
        Start with the full zip and truncate one digit at a time until a zip in
        the reference table starts with what's left. Gives up once fewer than
        2 digits remain, e.g. 90210 -> 9021% -> 902% -> 90%.
        """
        logger.debug("Attempting last ditch zip match based on the first few digits of the zip")
        match = self.zip_match(zip_code)
        search_zip = major_zip(zip_code)
        while match is None and allow_wildcards and iterative and len(search_zip) > MIN_ZIP_PREFIX:
            search_zip = search_zip[:-1]
            match = self.find_by_zip(search_zip + '%')
        return match
