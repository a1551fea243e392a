"""
Month tab naming and the date parsing that feeds it.

Every transaction lives in the tab of its own calendar month ("Mar 2025").
All "now" values are taken in the ledger's fixed UTC+7 zone.
"""
import re
from datetime import date, datetime, timedelta, timezone

from ledger.config import UTC_OFFSET_HOURS
from ledger.models import MonthYear

LEDGER_TZ = timezone(timedelta(hours=UTC_OFFSET_HOURS))
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

# English and Indonesian month names users may type
MONTH_SYNONYMS = {
    "jan": 1, "januari": 1, "january": 1,
    "feb": 2, "februari": 2, "february": 2,
    "mar": 3, "maret": 3, "march": 3,
    "apr": 4, "april": 4,
    "mei": 5, "may": 5,
    "jun": 6, "juni": 6, "june": 6,
    "jul": 7, "juli": 7, "july": 7,
    "ags": 8, "agu": 8, "agust": 8, "agustus": 8, "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "okt": 10, "oktober": 10, "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "des": 12, "desember": 12, "dec": 12, "december": 12,
}

NUMERIC_MONTH_YEAR = re.compile(r"^(\d{1,2})[/-](\d{2,4})$")
NAMED_MONTH_YEAR = re.compile(r"^([^\W\d_]+)\s+(\d{2,4})$")
LEADING_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\b\s*(.*)$", re.DOTALL)
TIMESTAMP_PREFIX = re.compile(r"^(\d{4})-(\d{1,2})")
STORED_TIMESTAMP = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[ T](\d{2}):(\d{2})(?::(\d{2}))?)?$")

# Google Sheets serial dates count days from this epoch
SHEETS_EPOCH = datetime(1899, 12, 30)


def now_local() -> datetime:
    return datetime.now(LEDGER_TZ)


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(LEDGER_TZ)
    return moment.strftime(TIMESTAMP_FORMAT)


def _expand_year(year: int) -> int:
    return year + 2000 if year < 100 else year


def name_for_month(month: int, year: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


def label_for_month(month: int, year: int) -> str:
    """Long heading form, e.g. 'March 2025'."""
    return f"{MONTH_NAMES[month - 1]} {year}"


def month_of(timestamp: str | datetime) -> MonthYear:
    if isinstance(timestamp, datetime):
        local = timestamp.astimezone(LEDGER_TZ) if timestamp.tzinfo else timestamp
        return MonthYear(local.month, local.year)
    m = TIMESTAMP_PREFIX.match(str(timestamp).strip())
    if not m:
        raise ValueError(f"Not a ledger timestamp: {timestamp!r}")
    return MonthYear(int(m.group(2)), int(m.group(1)))


def name_for_timestamp(timestamp: str | datetime) -> str:
    """Tab name for the month embedded in the timestamp (not for 'now')."""
    month, year = month_of(timestamp)
    return name_for_month(month, year)


def current_name(now: datetime | None = None) -> str:
    return name_for_timestamp(now or now_local())


def is_future(timestamp: str | datetime, now: datetime | None = None) -> bool:
    """True if the timestamp's month is strictly after the current month."""
    month, year = month_of(timestamp)
    cur_month, cur_year = month_of(now or now_local())
    return (year, month) > (cur_year, cur_month)


def parse_month_year(text: str) -> MonthYear | None:
    """
    Parses a user-supplied month reference.

    Accepts mm/yy, mm-yy, mm/yyyy, mm-yyyy and "<month name> <year>" with
    English or Indonesian names. Returns None when nothing matches.
    """
    if not text:
        return None
    raw = text.strip().lower()

    m = NUMERIC_MONTH_YEAR.match(raw)
    if m:
        month = int(m.group(1))
        year = _expand_year(int(m.group(2)))
        if 1 <= month <= 12:
            return MonthYear(month, year)
        return None

    m = NAMED_MONTH_YEAR.match(raw)
    if m:
        name = m.group(1)
        month = MONTH_SYNONYMS.get(name) or MONTH_SYNONYMS.get(name[:3])
        if month:
            return MonthYear(month, _expand_year(int(m.group(2))))

    return None


def parse_leading_date(text: str, now: datetime | None = None) -> tuple[str, str]:
    """
    Splits an optional leading dd/mm/yy[yy] or dd-mm-yy[yy] date off `text`.

    Returns (timestamp, rest). A found date keeps the current wall-clock time
    so entries of the same day stay in the order they were typed. Without a
    valid date the timestamp is now and the text is returned unchanged.
    """
    now = now or now_local()
    if now.tzinfo is not None:
        now = now.astimezone(LEDGER_TZ)
    text = (text or "").strip()

    m = LEADING_DATE.match(text)
    if not m:
        return format_timestamp(now), text

    day, month, year = int(m.group(1)), int(m.group(2)), _expand_year(int(m.group(3)))
    try:
        found = date(year, month, day)
    except ValueError:
        # e.g. 31/04: treat as no date at all
        return format_timestamp(now), text

    moment = datetime.combine(found, now.time().replace(microsecond=0, tzinfo=None))
    return moment.strftime(TIMESTAMP_FORMAT), m.group(4).strip()


def format_timestamp_for_display(value) -> str:
    """Renders a stored Date cell (serial number or text) for people."""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        moment = SHEETS_EPOCH + timedelta(days=float(value))
        moment = moment.replace(microsecond=0) + timedelta(seconds=round(moment.microsecond / 1e6))
        return _display(moment)

    s = str(value if value is not None else "").strip()
    if not s:
        return "-"
    m = STORED_TIMESTAMP.match(s)
    if m:
        y, mo, d, h, mi, se = (int(g) if g else 0 for g in m.groups())
        try:
            return _display(datetime(y, mo, d, h, mi, se))
        except ValueError:
            return s
    return s


def _display(moment: datetime) -> str:
    return (
        f"{moment.day:02d} {MONTH_ABBREVIATIONS[moment.month - 1]} {moment.year}, "
        f"{moment:%H:%M:%S}"
    )
