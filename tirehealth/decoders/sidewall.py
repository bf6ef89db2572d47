"""
Sidewall text decoders.

Parses the tire size/service description (e.g. "225/45R17 94W XL") and
the DOT code (e.g. "DOT 3DXX XXXX 2419"). Text that does not parse
yields the empty sentinel with confidence 0.
"""

import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from tirehealth.models.signals import DotCodeInfo, TireSizeInfo

logger = logging.getLogger(__name__)

# Optional P/LT prefix, 225/45 R 17, then an optional service description
# "94W" or "(94W)". Dual load indices ("121/118S") keep the first.
SIZE_PATTERN = re.compile(
    r"(?:P|LT)?\s*(?P<width>\d{3})\s*/\s*(?P<aspect>\d{2,3})\s*"
    r"(?P<construction>ZR|R|D|B)\s*(?P<rim>\d{2})(?:\.\d)?"
    r"(?:\s*\(?(?P<load>\d{2,3})(?:/\d{2,3})?\s*(?P<speed>[A-Z])\)?(?![A-Z0-9]))?",
    re.IGNORECASE,
)

# Trailing marks recognized after the service description
KNOWN_MARKS = ("XL", "RF", "SL", "RFT", "ROF", "SSR", "M+S", "3PMSF", "MS")

# Date code is the last group: 4 digits WWYY (3 digits means pre-2000)
DOT_DATE_PATTERN = re.compile(r"^\d{3,4}$")


def _clamp_confidence(confidence: float) -> float:
    if not math.isfinite(confidence):
        return 0.0
    return max(0.0, min(1.0, confidence))


def decode_tire_size(raw_text: Optional[str], confidence: float = 0.0) -> TireSizeInfo:
    """
    Decode a sidewall size marking.

    Args:
        raw_text: OCR text, e.g. "225/45R17 94W XL"
        confidence: OCR confidence for the text

    Returns:
        TireSizeInfo, or the empty sentinel if the text has no size
    """
    if not raw_text or not raw_text.strip():
        return TireSizeInfo.empty()

    text = " ".join(raw_text.upper().split())
    match = SIZE_PATTERN.search(text)
    if match is None:
        logger.debug("No tire size found in %r", raw_text)
        return TireSizeInfo(raw_text=raw_text)

    rest = text[match.end():].split()
    marks = [token for token in rest if token in KNOWN_MARKS]

    return TireSizeInfo(
        raw_text=raw_text,
        width=int(match.group("width")),
        aspect_ratio=int(match.group("aspect")),
        construction=match.group("construction"),
        rim_diameter=int(match.group("rim")),
        load_index=int(match.group("load")) if match.group("load") else 0,
        speed_rating=match.group("speed") or "",
        confidence=_clamp_confidence(confidence),
        additional_marks=marks,
    )


def _as_date(now: Union[date, datetime, None]) -> date:
    if now is None:
        return datetime.now(timezone.utc).date()
    if isinstance(now, datetime):
        return now.date()
    return now


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (0 if end precedes start)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


def decode_dot_code(
    raw_text: Optional[str],
    confidence: float = 0.0,
    now: Union[date, datetime, None] = None,
) -> DotCodeInfo:
    """
    Decode a DOT code into plant/size/brand codes and manufacture date.

    The last group is the WWYY date code; week 1 of the ISO year is used
    as the manufacture date when computing age.

    Args:
        raw_text: OCR text, e.g. "DOT 3DXX XXXX 2419"
        confidence: OCR confidence for the text
        now: Reference date for the age computation (defaults to today, UTC)

    Returns:
        DotCodeInfo, or the empty sentinel for unparseable or impossible codes
    """
    if not raw_text or not raw_text.strip():
        return DotCodeInfo.empty()

    tokens = raw_text.upper().replace("DOT", " ").split()
    if not tokens or not DOT_DATE_PATTERN.match(tokens[-1]):
        logger.debug("No DOT date code in %r", raw_text)
        return DotCodeInfo.empty()

    date_code = tokens[-1]
    if len(date_code) == 3:
        logger.debug("Pre-2000 DOT code %r is not supported", raw_text)
        return DotCodeInfo.empty()

    week = int(date_code[:2])
    year = 2000 + int(date_code[2:])
    try:
        made = date.fromisocalendar(year, week, 1)
    except ValueError:
        logger.debug("Invalid DOT week %d in %r", week, raw_text)
        return DotCodeInfo.empty()

    today = _as_date(now)
    if made > today:
        logger.debug("DOT date %s is in the future", made)
        return DotCodeInfo.empty()

    identifier = "".join(tokens[:-1])

    return DotCodeInfo(
        full_dot_code=" ".join(raw_text.upper().split()),
        plant_code=identifier[:2],
        size_code=identifier[2:4],
        brand_code=identifier[4:],
        manufacture_week=week,
        manufacture_year=year,
        age_in_months=months_between(made, today),
        confidence=_clamp_confidence(confidence),
    )
