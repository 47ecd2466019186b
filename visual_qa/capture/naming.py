"""Screenshot filenames: ``{page}-{viewport}-{unixMillis}.png``."""

from __future__ import annotations

import re
from typing import Iterable, Optional

_FILENAME_RE = re.compile(r"^(?P<prefix>.+)-(?P<millis>\d+)\.png$")


def build_filename(page: str, viewport: str, millis: int) -> str:
    return f"{page}-{viewport}-{millis}.png"


def parse_filename(
    filename: str, viewport_names: Iterable[str] = ()
) -> Optional[tuple[str, str, int]]:
    """Split a screenshot filename into (page, viewport, millis).

    Page and viewport names may themselves contain hyphens, so known
    viewport names are matched against the end of the prefix (longest
    first). Without a match the second hyphen-delimited segment is used.
    """
    match = _FILENAME_RE.match(filename)
    if not match:
        return None
    prefix = match.group("prefix")
    millis = int(match.group("millis"))

    for name in sorted(viewport_names, key=len, reverse=True):
        suffix = f"-{name}"
        if prefix.endswith(suffix) and len(prefix) > len(suffix):
            return prefix[: -len(suffix)], name, millis

    parts = prefix.split("-")
    if len(parts) < 2:
        return None
    return parts[0], parts[1], millis


def viewport_from_filename(filename: str, viewport_names: Iterable[str] = ()) -> str:
    parsed = parse_filename(filename, viewport_names)
    return parsed[1] if parsed else "unknown"
