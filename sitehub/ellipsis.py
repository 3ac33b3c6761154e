"""Text lengths used to shorten entries depending on the client viewport."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

VIEWPORT_COOKIE = "viewport"
MOBILE_MAX_WIDTH = 390

_INT = re.compile(r"[+-]?\d+")


@dataclass(frozen=True)
class EllipsisValues:
    """Maximum lengths of paths, bookmark names and folder names."""

    path_len: int
    node_len: int
    folder_len: int


STD_ELLIPSIS = EllipsisValues(path_len=50, node_len=60, folder_len=50)
MOBILE_ELLIPSIS = EllipsisValues(path_len=5, node_len=30, folder_len=20)


def _to_int(text: str) -> int:
    return int(text) if _INT.fullmatch(text) else 0


def parse_viewport(value: str | None) -> tuple[int, int]:
    """Parse a ``width:height`` value; unparsable parts become 0."""
    if not value:
        return 0, 0
    parts = value.split(":")
    if len(parts) != 2:
        return 0, 0
    return _to_int(parts[0]), _to_int(parts[1])


def get_ellipsis_values(cookies: Mapping[str, str]) -> EllipsisValues:
    """Choose the ellipsis lengths from the viewport cookie."""
    width, _ = parse_viewport(cookies.get(VIEWPORT_COOKIE))
    if width == 0:
        return STD_ELLIPSIS
    if width <= MOBILE_MAX_WIDTH:
        return MOBILE_ELLIPSIS
    return STD_ELLIPSIS