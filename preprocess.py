import re
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

logger = logging.getLogger(__name__)

MAX_LIKELY_AMOUNT = 1_000_000

# Tried in order before the manual day/month/year fallbacks
DATE_FORMATS = [
    '%Y-%m-%d',     # yyyy-MM-dd
    '%d-%m-%Y',     # dd-MM-yyyy
    '%d/%m/%Y',     # dd/MM/yyyy
    '%d %b %Y',     # dd MMM yyyy
    '%b %d, %Y',    # MMM d, yyyy
]

DATE_IN_TEXT_PATTERN = re.compile(
    r'\b(\d{1,2}[/-]\d{1,2}[/-]\d{2,4}'
    r'|\d{4}-\d{1,2}-\d{1,2}'
    r'|[A-Za-z]{3,}\s+\d{1,2},\s*\d{4})\b'
)

_AMOUNT_JUNK = re.compile(r'[^0-9.,\-]')
_NON_ALNUM = re.compile(r'[^a-z0-9]+')


def clean_amount(raw, max_likely_amount: int = MAX_LIKELY_AMOUNT) -> Optional[Decimal]:
    """
    Parse a raw token into an exact amount.

    Commas are always thousands separators. Bare integers whose magnitude
    exceeds ``max_likely_amount`` are rejected, since statement balances and
    account numbers tend to show up as such tokens.

    Args:
        raw: Token taken from a cell or a block of statement text

    Returns:
        Decimal amount, or None when the token is unresolvable
    """
    if raw is None:
        return None

    cleaned = _AMOUNT_JUNK.sub('', str(raw)).strip()
    if not cleaned:
        return None
    cleaned = cleaned.replace(',', '')

    try:
        if '.' in cleaned:
            value = Decimal(cleaned)
            if not value.is_finite():
                return None
            # "1500000." has no decimal places, so it is still a bare integer
            if value.as_tuple().exponent == 0 and abs(int(value)) > max_likely_amount:
                return None
            return value

        value = int(re.sub(r'[^0-9\-]', '', cleaned))
        if abs(value) > max_likely_amount:
            logger.debug(f"Rejected implausible amount token: {raw}")
            return None
        return Decimal(value)
    except (InvalidOperation, ValueError):
        return None


def normalize_date(raw) -> Optional[date]:
    """
    Resolve a date-like string under the accepted statement formats.

    Day-first readings win for ambiguous numeric dates. Two-digit years on
    slash dates are taken to be in the 2000s.

    Args:
        raw: Date string, possibly quoted

    Returns:
        The calendar date, or None when no reading works
    """
    if raw is None:
        return None

    raw = str(raw).replace('"', '').strip()
    if not raw:
        return None

    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue

    try:
        if '/' in raw:
            parts = raw.split('/')
            if len(parts) == 3:
                day, month, year = (int(p) for p in parts)
                if year < 100:
                    year += 2000
                return date(year, month, day)
        elif '-' in raw:
            parts = raw.split('-')
            if len(parts) == 3:
                a, b, c = (int(p) for p in parts)
                if a > 31:
                    return date(a, b, c)
                return date(c, b, a)
    except (ValueError, OverflowError):
        pass

    logger.debug(f"Could not normalize date: {raw}")
    return None


def find_date_in_text(text: str) -> Optional[date]:
    """Locate the first date-shaped substring in a block of text and resolve it."""
    if not text:
        return None
    match = DATE_IN_TEXT_PATTERN.search(text)
    if match:
        return normalize_date(match.group(1))
    return None


def normalize_key(text) -> str:
    """Lower-case, collapse non-alphanumeric runs to single spaces, trim."""
    if text is None:
        return ""
    return _NON_ALNUM.sub(' ', str(text).lower()).strip()


def truncate(text: Optional[str], max_length: int) -> Optional[str]:
    if text is None:
        return None
    return text if len(text) <= max_length else text[:max_length]
