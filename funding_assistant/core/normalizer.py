"""
Normalization utilities for Danish and EU funding data.

Handles:
- Danish and English date formats (15. marts 2025, 15-03-2025, March 15, 2025)
- Amounts with magnitude suffixes and EUR conversion (5 mio. kr., €500.000)
- Contact extraction, sector and call-type classification
"""

import re
from datetime import datetime
from typing import Iterable, Optional

import structlog
from dateutil import parser as date_parser

from .models import CallType

logger = structlog.get_logger(__name__)


# Approximate EUR -> DKK rate used when a source quotes euros
EUR_TO_DKK = 7.5

# Awards at or below this amount count against the de-minimis ceiling
DE_MINIMIS_THRESHOLD = 2_000_000

DANISH_MONTHS = {
    "januar": 1, "jan": 1, "februar": 2, "feb": 2, "marts": 3, "mar": 3,
    "april": 4, "apr": 4, "maj": 5, "juni": 6, "jun": 6, "juli": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sep": 9, "sept": 9,
    "oktober": 10, "okt": 10, "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

ENGLISH_MONTHS = {
    "january": 1, "february": 2, "march": 3, "may": 5, "june": 6,
    "july": 7, "october": 10, "oct": 10,
}

MONTHS = {**DANISH_MONTHS, **ENGLISH_MONTHS}

_NUM = r"(\d{1,2})"
_YEAR = r"(\d{4})"
_MONTH_NAME = r"([^\W\d_]+)\.?"

# Fills the parts a free-form date leaves out ("2027" is 1 January 2027)
FALLBACK_DEFAULT = datetime(2000, 1, 1)

# Ordered: first full match wins. Each entry is (pattern, group order).
DATE_FORMATS = [
    (rf"{_NUM}\.\s*{_MONTH_NAME}\s+{_YEAR}", "dmy"),      # 15. marts 2025
    (rf"{_NUM}-{_NUM}-{_YEAR}", "dmy"),                    # 15-03-2025
    (rf"{_YEAR}-{_NUM}-{_NUM}", "ymd"),                    # 2025-03-15
    (rf"{_NUM}/{_NUM}/{_YEAR}", "dmy"),                    # 15/03/2025
    (rf"{_MONTH_NAME}\s+{_NUM},?\s+{_YEAR}", "mdy"),       # March 15, 2025
    (rf"{_NUM}\s+{_MONTH_NAME}\s+{_YEAR}", "dmy"),         # 15 marts 2025
    (rf"{_NUM}\.\s*{_NUM}\.\s*{_YEAR}", "dmy"),            # 15.03.2025
]

DEADLINE_LABELS = ["deadline", "ansøgningsfrist", "frist", "senest"]

_DEADLINE_DATE = r"(\d{1,2}\.?\s*[^\W\d_]+\.?\s*\d{4}|\d{1,2}[-/.]\d{1,2}[-/.]\d{4}|\d{4}-\d{2}-\d{2})"

SECTOR_SYNONYMS = {
    "biotech": "biotech",
    "biotechnology": "biotech",
    "bioteknologi": "biotech",
    "medtech": "medtech",
    "medical technology": "medtech",
    "medicoteknik": "medtech",
    "pharma": "pharma",
    "pharmaceutical": "pharma",
    "medicinal": "pharma",
    "digital health": "digital_health",
    "e-health": "digital_health",
    "e-sundhed": "digital_health",
    "digital sundhed": "digital_health",
    "welfare": "welfare_tech",
    "welfare tech": "welfare_tech",
    "velfærdsteknologi": "welfare_tech",
    "health": "health",
    "sundhed": "health",
    "life science": "life_science",
    "life sciences": "life_science",
}

# Keyword scan used on free text, in output order
SECTOR_KEYWORDS = [
    ("biotech", ["biotech", "bio-", "bioteknologi"]),
    ("medtech", ["medtech", "medicinsk", "medicoteknik"]),
    ("pharma", ["pharma", "medicinal", "lægemiddel"]),
    ("digital_health", ["digital health", "e-sundhed", "digital sundhed"]),
    ("welfare_tech", ["welfare", "velfærd"]),
]

LIFE_SCIENCE_SECTORS = ["biotech", "medtech", "pharma", "digital_health"]

# Checked in this order; the first hit decides, default is GRANT
CALL_TYPE_KEYWORDS = [
    (CallType.GRANT, ["tilskud", "grant"]),
    (CallType.LOAN, ["lån", "loan"]),
    (CallType.EQUITY, ["equity", "investment"]),
    (CallType.VOUCHER, ["voucher"]),
    (CallType.PRIZE, ["prize", "pris"]),
]

AUDIENCE_KEYWORDS = [
    ("startup", ["startup", "iværksætter"]),
    ("sme", ["små og mellemstore", "smv", "sme"]),
    ("large_enterprise", ["store virksomheder", "large enterprise"]),
    ("research", ["forskn", "universitet", "research"]),
]

AMOUNT_PATTERNS = [
    r"op til (\d+(?:[.,]\d+)?)\s*(?:mio|mill)",
    r"maksimalt (\d+(?:[.,]\d+)?)\s*(?:mio|mill)",
    r"(\d+(?:[.,]\d+)?)\s*(?:mio|mill)[\s.]*kr",
]


def dedupe(items: Iterable[str]) -> list[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def _build_date(groups: tuple, order: str) -> Optional[datetime]:
    parts = dict(zip(order, groups))
    month = parts["m"]
    if not month.isdigit():
        month = MONTHS.get(month.lower().rstrip("."))
        if month is None:
            return None
    try:
        return datetime(int(parts["y"]), int(month), int(parts["d"]))
    except ValueError:
        return None


def parse_date(text: str) -> Optional[datetime]:
    """
    Parse a Danish, English or ISO date string.

    Supported formats (tried in order):
    - "15. marts 2025" (day. month_name year)
    - "15-03-2025"
    - "2025-03-15"
    - "15/03/2025"
    - "March 15, 2025"
    - "15 marts 2025"
    - "15.03.2025"

    Anything else goes through dateutil with day-first precedence.

    Args:
        text: String containing a date

    Returns:
        Naive datetime at midnight or None if nothing matches
    """
    if not text:
        return None

    cleaned = re.sub(r"\s+", " ", text).strip(" .,")

    for pattern, order in DATE_FORMATS:
        match = re.fullmatch(pattern, cleaned, re.IGNORECASE)
        if match:
            parsed = _build_date(match.groups(), order)
            if parsed:
                return parsed

    try:
        # Missing parts default to January 1st, never to today
        parsed = date_parser.parse(cleaned, dayfirst=True, default=FALLBACK_DEFAULT)
        return parsed.replace(tzinfo=None, hour=0, minute=0, second=0, microsecond=0)
    except (ValueError, OverflowError):
        pass

    logger.warning("unparsable_date", text=text)
    return None


def _to_number(token: str) -> Optional[float]:
    """Convert a numeric token using Danish separators unless clearly English."""
    token = token.replace(" ", "")
    if token.count(",") > 1 or ("," in token and "." in token and token.rfind(",") < token.rfind(".")):
        token = token.replace(",", "")
    else:
        token = token.replace(".", "").replace(",", ".")
    try:
        return float(token)
    except ValueError:
        return None


def is_eur(text: str) -> bool:
    return bool(re.search(r"€|\beur(?:o|os)?\b", text, re.IGNORECASE))


def parse_amount(text: str, eur_rate: float = EUR_TO_DKK) -> Optional[int]:
    """
    Parse a currency amount into whole DKK.

    Supported formats:
    - "5 mio. kr." -> 5000000
    - "2,5 mill. DKK" -> 2500000
    - "€500.000" -> 3750000 (converted at eur_rate)
    - "EUR 2.5 mio" -> 18750000
    - "500.000 kr." -> 500000

    Args:
        text: String containing an amount
        eur_rate: EUR to DKK conversion factor

    Returns:
        Integer amount in DKK or None if no number is found
    """
    if not text:
        return None

    cleaned = re.sub(r"\s+", " ", text.replace(" ", " ")).strip().lower()
    rate = eur_rate if is_eur(cleaned) else 1.0

    match = re.search(r"(\d+(?:[.,]\d+)?)\s*(?:mia|mrd)", cleaned)
    if match:
        return round(float(match.group(1).replace(",", ".")) * 1_000_000_000 * rate)

    match = re.search(r"(\d+(?:[.,]\d+)?)\s*(?:mio|mill)", cleaned)
    if match:
        return round(float(match.group(1).replace(",", ".")) * 1_000_000 * rate)

    match = re.search(r"\d+(?:(?:[.,]|\s(?=\d{3}\b))\d+)*", cleaned)
    if match:
        value = _to_number(match.group(0))
        if value is not None:
            return round(value * rate)

    logger.warning("unparsable_amount", text=text)
    return None


def extract_amounts(text: str, eur_rate: float = EUR_TO_DKK) -> tuple[Optional[int], Optional[int]]:
    """
    Scan body text for "op til / maksimalt / N mio. kr." amounts.

    Returns:
        (min, max); min is only set when more than one amount was found
    """
    if not text:
        return None, None

    # Keyed by number position so "op til 5 mio. kr." counts once
    found = {}
    for pattern in AMOUNT_PATTERNS:
        for match in re.finditer(pattern, text, re.IGNORECASE):
            amount = parse_amount(match.group(0), eur_rate=eur_rate)
            if amount:
                found[match.start(1)] = amount

    amounts = list(found.values())
    if not amounts:
        return None, None

    return (min(amounts) if len(amounts) > 1 else None), max(amounts)


def extract_deadline(text: str, labels: Optional[list[str]] = None) -> Optional[datetime]:
    """
    Find a deadline-labelled date in free text.

    Args:
        text: Text to search
        labels: Labels to look for, in priority order

    Returns:
        Parsed deadline or None
    """
    if not text:
        return None

    for label in labels or DEADLINE_LABELS:
        pattern = rf"{re.escape(label)}.*?{_DEADLINE_DATE}"
        match = re.search(pattern, text, re.IGNORECASE | re.DOTALL)
        if match:
            deadline = parse_date(match.group(1))
            if deadline:
                return deadline

    return None


def extract_email(text: str) -> Optional[str]:
    """
    Extract email address from text.

    Returns:
        First found email or None
    """
    if not text:
        return None

    match = re.search(r"[\w\.-]+@[\w\.-]+\.\w+", text)
    return match.group(0) if match else None


def extract_phone(text: str) -> Optional[str]:
    """Extract Danish phone number (optional +45, eight digits in pairs)."""
    if not text:
        return None

    match = re.search(r"(?:\+45\s?)?(?:\d{2}\s?){4}", text)
    return match.group(0).strip() if match else None


def normalize_sector(text: str) -> str:
    """Map a sector synonym to its canonical tag; unknown input passes through lower-cased."""
    normalized = (text or "").lower().strip()
    return SECTOR_SYNONYMS.get(normalized, normalized)


def determine_call_type(text: str) -> CallType:
    """
    Classify funding mechanism by keyword.

    Grant keywords win over loan, loan over equity, and so on;
    text with no keyword at all is a grant.
    """
    lowered = (text or "").lower()
    for call_type, keywords in CALL_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return call_type
    return CallType.GRANT


def detect_sectors(text: str, default: Optional[list[str]] = None) -> list[str]:
    """Keyword scan for sector tags, falling back to the life-science set."""
    lowered = (text or "").lower()
    sectors = [
        sector for sector, keywords in SECTOR_KEYWORDS
        if any(keyword in lowered for keyword in keywords)
    ]
    if not sectors:
        return list(default if default is not None else LIFE_SCIENCE_SECTORS)
    return sectors


def detect_target_audience(text: str, default: Optional[list[str]] = None) -> list[str]:
    """Keyword scan for audience tags; SME mentions imply startups too."""
    lowered = (text or "").lower()
    audience = []
    for tag, keywords in AUDIENCE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            if tag == "sme":
                audience.append("startup")
            audience.append(tag)
    audience = dedupe(audience)
    if not audience:
        return list(default if default is not None else ["startup", "sme"])
    return audience


def infer_de_minimis(max_amount: Optional[int], threshold: int = DE_MINIMIS_THRESHOLD) -> bool:
    """Small awards count against the de-minimis ceiling."""
    return max_amount is not None and max_amount <= threshold


def normalize_title(title: str) -> str:
    """Collapse whitespace and strip."""
    if not title:
        return ""
    return re.sub(r"\s+", " ", title).strip()


def cleanup_text(text: str) -> str:
    """
    Clean up text extracted from HTML.

    Collapses runs of spaces, keeps paragraph breaks, decodes
    the common entities left behind by sloppy markup.
    """
    if not text:
        return ""

    cleaned = text.replace("&nbsp;", " ").replace(" ", " ").replace("&amp;", "&")
    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"\n\s*\n+", "\n\n", cleaned)
    return cleaned.strip()


def format_amount(amount: Optional[int]) -> str:
    """Danish display form: 5000000 -> "5.000.000"."""
    if amount is None:
        return ""
    return f"{amount:,}".replace(",", ".")


def format_date_da(value: Optional[datetime]) -> str:
    """Danish display form: 15.3.2025."""
    if value is None:
        return ""
    return f"{value.day}.{value.month}.{value.year}"
