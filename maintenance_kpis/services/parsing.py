"""
Parsing helpers for the loosely typed data coming out of AppSheet and
Google Sheets.

Nothing in this module raises on bad input: an unparseable value becomes
``None`` (dates, priorities) or ``0`` (usage minutes) and the caller decides
what that means for the metric at hand.
"""

import math
import re
import unicodedata
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as date_parser

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}')
DAY_FIRST_PATTERN = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})')
YEAR_TOKEN_PATTERN = re.compile(r'(?<!\d)\d{4}(?!\d)')
LEADING_INT_PATTERN = re.compile(r'^\s*([+-]?\d+)')
LEADING_FLOAT_PATTERN = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_date(value: Any) -> Optional[datetime]:
    """
    Normalize a date string from either provider.

    Accepts ``YYYY-MM-DD`` (optionally with a time part), ``D/M/YYYY``
    (day first) and, as a last resort, anything dateutil understands.
    Returns None for empty input or anything that is not a real date.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _to_local_naive(value)

    text = str(value).strip()
    if not text:
        return None

    if ISO_DATE_PATTERN.match(text):
        try:
            if len(text) == 10:
                return datetime.strptime(text, '%Y-%m-%d')
            return _to_local_naive(datetime.fromisoformat(text.replace('Z', '+00:00')))
        except ValueError:
            return None

    match = DAY_FIRST_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    # dateutil fills missing parts from today, so "March" or "10:00" would
    # land in the current month. Only fall back when a year is written out.
    if not YEAR_TOKEN_PATTERN.search(text):
        return None
    try:
        return _to_local_naive(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def parse_csv_line(line: str) -> List[str]:
    """Split one CSV line, honouring quotes and doubled-quote escapes."""
    fields = []
    current = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif ch == ',' and not in_quotes:
            fields.append(''.join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    fields.append(''.join(current).strip())
    return fields


def get_field(record: Dict[str, Any], aliases: Iterable[str], default: Any = '') -> Any:
    """Return the first present, non-empty value among ``aliases``."""
    for alias in aliases:
        value = record.get(alias)
        if value is not None and value != '':
            return value
    return default


def parse_priority(value: Any) -> Optional[int]:
    """Read the leading integer of a priority cell ("2", "2.0", " 3 - Alta")."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else int(value)
    match = LEADING_INT_PATTERN.match(str(value))
    return int(match.group(1)) if match else None


def parse_minutes(value: Any) -> float:
    """
    Read an elapsed-minutes cell.

    Anything unreadable, non-finite ("1e999") or negative counts as 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        minutes = float(value)
    else:
        match = LEADING_FLOAT_PATTERN.match(str(value))
        if not match:
            return 0.0
        minutes = float(match.group(1))
    if not math.isfinite(minutes) or minutes < 0:
        return 0.0
    return minutes


def normalize_header(header: str) -> str:
    """Lowercase, drop accents and keep only [a-z0-9] ("Máquina" -> "maquina")."""
    decomposed = unicodedata.normalize('NFKD', (header or '').strip().lower())
    text = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r'[^a-z0-9]', '', text)


def in_period(value: Optional[datetime], year: Optional[int] = None, month: Optional[int] = None) -> bool:
    """True when ``value`` falls in the (year, month) window; unset parts match anything."""
    if value is None:
        return False
    if year and value.year != int(year):
        return False
    if month and value.month != int(month):
        return False
    return True


def round1(value: float) -> float:
    """Round half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10
