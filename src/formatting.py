# src/formatting.py
"""Pure text helpers shared by the aggregator and the card builders."""
from __future__ import annotations

import math
import re
from xml.sax.saxutils import escape

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}

# Code points XML 1.0 does not allow anywhere in a document, escaped or not
_XML_INVALID = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")

KB = 1024
MB = 1024 * 1024


def escape_xml(value: object) -> str:
    """
    Escape ``& < > " '`` so ``value`` can sit in SVG text or attributes.

    Control characters and other code points XML cannot carry are dropped.
    """
    if value is None:
        return ""
    return escape(_XML_INVALID.sub("", str(value)), _XML_ENTITIES)


def _finite(value: object) -> float:
    try:
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


def fmt_number(value: object) -> str:
    """``1234567 -> '1,234,567'``; missing values print as ``0``."""
    return f"{int(_finite(value)):,}"


def human_bytes(value: object) -> str:
    b = _finite(value)
    if b >= MB:
        return f"{b / MB:.1f} MB"
    if b >= KB:
        return f"{b / KB:.1f} KB"
    return f"{int(b)} B"


def fmt_minutes(minutes: object) -> str:
    total = max(0, int(_finite(minutes)))
    h, m = divmod(total, 60)
    if h <= 0:
        return f"{m}m"
    if m == 0:
        return f"{h}h"
    return f"{h}h {m}m"


def fmt_seconds(seconds: object) -> str:
    return fmt_minutes(round_half_up(_finite(seconds) / 60))


def fmt_percent(value: object) -> str:
    return f"{_finite(value):.2f}%"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
