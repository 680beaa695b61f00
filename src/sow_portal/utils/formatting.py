"""Display formatting for deal amounts, dates, file sizes and names."""

from __future__ import annotations

from datetime import date, datetime

NOT_AVAILABLE = "N/A"

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg"})
DOCUMENT_EXTENSIONS = frozenset({"pdf", "doc", "docx", "txt", "md"})
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def _parse_datetime(value: str | date | datetime | None) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value: str | date | datetime | None) -> str:
    """``Jan 5, 2025``; ``N/A`` when missing, ``Invalid Date`` when unparsable."""
    if not value:
        return NOT_AVAILABLE
    parsed = _parse_datetime(value)
    if parsed is None:
        return "Invalid Date"
    return f"{parsed:%b} {parsed.day}, {parsed.year}"


def format_datetime(value: str | date | datetime | None) -> str:
    if not value:
        return NOT_AVAILABLE
    parsed = _parse_datetime(value)
    if parsed is None:
        return "Invalid Date"
    return f"{format_date(parsed)}, {parsed:%I:%M %p}"


def format_currency(amount: float | None, currency: str = "USD") -> str:
    if amount is None:
        return NOT_AVAILABLE
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.2f}"
    if currency == "USD":
        return f"{sign}${body}"
    return f"{sign}{currency} {body}"


def format_number(value: float | None) -> str:
    if value is None:
        return NOT_AVAILABLE
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"


def format_file_size(size: int | None) -> str:
    """Human-readable size in 1024 steps, rounded to two decimals."""
    if not size:
        return "0 Bytes"
    index = 0
    while size >= 1024 ** (index + 1) and index < len(_SIZE_UNITS) - 1:
        index += 1
    value = round(size / 1024**index, 2)
    return f"{value:g} {_SIZE_UNITS[index]}"


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[:length] + "..."


def get_initials(name: str | None) -> str:
    if not name:
        return "?"
    return "".join(part[0] for part in name.split(" ") if part).upper()[:2]


def get_file_extension(filename: str) -> str:
    parts = filename.split(".")
    return parts[-1].lower() if len(parts) > 1 and parts[-1] else ""


def is_image_file(filename: str) -> bool:
    return get_file_extension(filename) in IMAGE_EXTENSIONS


def is_document_file(filename: str) -> bool:
    return get_file_extension(filename) in DOCUMENT_EXTENSIONS
