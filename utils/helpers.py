# utils/helpers.py
import hashlib
import logging
import re
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)

PORTAL_DATE_FORMAT = "%d.%m.%Y"


def today_str() -> str:
    """Today's date in the portal format (dd.mm.yyyy)."""
    return date.today().strftime(PORTAL_DATE_FORMAT)


def parse_portal_date(value: str) -> date:
    """Parses dd.mm.yyyy (or dd.mm.yy). Raises ValueError on anything else."""
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Empty date")
    value = value.strip()
    for fmt in (PORTAL_DATE_FORMAT, "%d.%m.%y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid portal date: {value!r}")


def format_portal_date(value: date) -> str:
    return value.strftime(PORTAL_DATE_FORMAT)


def inc_date(value: str, days: int = 1) -> str:
    """Shifts a dd.mm.yyyy date by a number of days."""
    return format_portal_date(parse_portal_date(value) + timedelta(days=days))


def week_start(value: str) -> str:
    """Monday of the week containing the given dd.mm.yyyy date."""
    day = parse_portal_date(value)
    return format_portal_date(day - timedelta(days=day.weekday()))


def md5_hex(text: str, encoding: str = "utf-8") -> str:
    return hashlib.md5(text.encode(encoding)).hexdigest()


def portal_password_hash(salt: str, password: str) -> str:
    """Salted challenge hash the NetSchool login form expects: md5(salt + md5(password))."""
    # The portal hashes the password in the page's own charset.
    return md5_hex(salt + md5_hex(password, encoding="cp1251"))


def clean_string(text) -> str:
    if not isinstance(text, str):
        return ""
    return " ".join(text.strip().split())


def extract_js_call_args(text: str, func_name: str) -> list[str] | None:
    """Extracts the argument list of the first ``func_name(...)`` call in inline JS."""
    if not isinstance(text, str) or not text:
        return None
    match = re.search(rf"{re.escape(func_name)}\s*\(([^)]*)\)", text)
    if not match:
        logger.debug(f"No call to {func_name}() found in: {text[:80]!r}")
        return None
    return [arg.strip().strip("'\"") for arg in match.group(1).split(",") if arg.strip()]
