"""Bodies of the time tools.

Each tool takes its (already validated and defaulted) arguments plus the
current instant as an aware UTC datetime, and returns content blocks. Local
renderings use the process timezone unless a ``tz`` is supplied.
"""

import os
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, TypeAlias
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mcp_time_server.types import ContentBlock, TextContent

ToolHandler: TypeAlias = Callable[[Mapping[str, Any], datetime], list[ContentBlock]]


def local_timezone() -> tzinfo | None:
    """Resolve the process timezone to an IANA zone.

    Reads ``TZ`` first, then the ``/etc/localtime`` link. Returns None when the
    zone cannot be named, in which case callers fall back to the fixed offset
    reported by the C library.
    """
    key = os.environ.get("TZ", "").lstrip(":")
    if not key:
        _, found, key = os.path.realpath("/etc/localtime").partition("zoneinfo/")
        if not found:
            return None
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _to_local(now: datetime, tz: tzinfo | None) -> datetime:
    tz = tz if tz is not None else local_timezone()
    return now.astimezone(tz) if tz is not None else now.astimezone()


def format_utc_offset(offset: timedelta | None) -> str:
    """Render a UTC offset as ``+HH:MM`` / ``-HH:MM``."""
    total_minutes = int((offset or timedelta()).total_seconds()) // 60
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def format_iso(now: datetime) -> str:
    utc = now.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_local(local: datetime) -> str:
    # e.g. "Mon Oct 19 2026 14:00:00 GMT+0200 (CEST)"
    return local.strftime("%a %b %d %Y %H:%M:%S GMT%z") + f" ({local.tzname()})"


def format_utc(now: datetime) -> str:
    # RFC 1123, e.g. "Mon, 19 Oct 2026 12:00:00 GMT"
    return now.astimezone(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")


def get_current_time(arguments: Mapping[str, Any], now: datetime, tz: tzinfo | None = None) -> list[ContentBlock]:
    fmt = arguments.get("format", "iso")
    if fmt == "unix":
        text = str(int(now.timestamp()))
    elif fmt == "local":
        text = format_local(_to_local(now, tz))
    elif fmt == "iso":
        text = format_iso(now)
    else:
        raise ValueError(f"unsupported format {fmt!r}")
    return [TextContent(text=text)]


def get_timezone_info(arguments: Mapping[str, Any], now: datetime, tz: tzinfo | None = None) -> list[ContentBlock]:
    local = _to_local(now, tz)
    lines = [
        f"Timezone: {getattr(local.tzinfo, 'key', None) or local.tzname()}",
        f"UTC Offset: {format_utc_offset(local.utcoffset())}",
        f"Current local time: {format_local(local)}",
        f"Current UTC time: {format_utc(now)}",
    ]
    return [TextContent(text="\n".join(lines))]


DEFAULT_HANDLERS: Mapping[str, ToolHandler] = {
    "get_current_time": get_current_time,
    "get_timezone_info": get_timezone_info,
}
