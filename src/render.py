# src/render.py
"""
SVG card renderer.

One engine draws every card: ``render_card`` picks the layout from the spec's
``kind`` and the palette from the ``Theme``. Geometry is computed here in
Python; the Jinja2 templates only place pre-computed values. Every value
printed by a template goes through ``escape_xml`` (the environment's
``finalize`` hook), so caller text can never break out of the markup.
"""
from __future__ import annotations

import math
from typing import Any, Callable, Dict, Mapping, Union

from jinja2 import DictLoader, Environment, StrictUndefined
from pydantic import TypeAdapter, ValidationError

from errors import InvalidInputError
from formatting import escape_xml, fmt_percent, round_half_up
from models import BarsCardSpec, CardSpec, Grade, GridCardSpec, GridItem, MetricRow, Theme

WIDTH = 900
PADDING = 28
HEADER_H = 124
FOOTER_MARGIN = 30
FONT = "ui-sans-serif, system-ui"

# Bars
ROW_H = 34
RANK_W = 46
NAME_X = PADDING + RANK_W
BAR_X = 380
VALUE_GAP = 16
PCT_COL_W = 82  # reserved for the percent label, bars never reach into it
BAR_W = WIDTH - BAR_X - PADDING - PCT_COL_W
BAR_H = 10
BARS_DIVIDER_Y = 98

# Grid
GRID_COLS = 3
TILE_H = 74
TILE_GAP = 14
TILE_W = (WIDTH - PADDING * 2 - TILE_GAP * (GRID_COLS - 1)) // GRID_COLS
GRID_DIVIDER_Y = 108

# Grade ring
RING_R = 26
RING_STROKE = 7
RING_CX = WIDTH - PADDING - 46
RING_CY = 58

GITHUB_THEME = Theme(
    name="professional",
    bg1="#0B1220",
    bg2="#111827",
    title="#E5E7EB",
    text="#E5E7EB",
    muted="#94A3B8",
    bar_bg="#1F2937",
    stroke="#334155",
    bars=("#0EA5E9", "#22C55E", "#A78BFA", "#F59E0B", "#38BDF8", "#14B8A6", "#EAB308"),
)

WAKATIME_THEME = Theme(
    name="radical",
    bg1="#141321",
    bg2="#1a1b27",
    title="#ff4d6d",
    text="#e4e4e7",
    muted="#9aa4bf",
    bar_bg="#2a2b3d",
    stroke="#334155",
    bars=("#ff4d6d", "#f1fa8c", "#8be9fd", "#50fa7b", "#bd93f9", "#ffb86c", "#ff79c6"),
    glow_opacity=0.08,
    other_color="#ff4d6d",
    dim_tiny_rows=True,
)

_SVG_OPEN = """\
<?xml version="1.0" encoding="UTF-8"?>
<svg width="{{ width }}" height="{{ height }}" viewBox="0 0 {{ width }} {{ height }}" \
xmlns="http://www.w3.org/2000/svg" role="img" aria-label="{{ title }}">
  <defs>
    <linearGradient id="bgGrad" x1="0" y1="0" x2="1" y2="1">
      <stop offset="0%" stop-color="{{ theme.bg1 }}"/>
      <stop offset="100%" stop-color="{{ theme.bg2 }}"/>
    </linearGradient>
    <filter id="shadow" x="-20%" y="-20%" width="140%" height="140%">
      <feDropShadow dx="0" dy="10" stdDeviation="18" flood-color="#000000" flood-opacity="0.35"/>
    </filter>
    <filter id="barGlow" x="-20%" y="-50%" width="140%" height="200%">
      <feDropShadow dx="0" dy="0" stdDeviation="2" flood-color="#ffffff" flood-opacity="{{ theme.glow_opacity }}"/>
      <feDropShadow dx="0" dy="4" stdDeviation="6" flood-color="#000000" flood-opacity="0.22"/>
    </filter>
  </defs>
  <rect x="0" y="0" width="{{ width }}" height="{{ height }}" rx="18" ry="18" fill="url(#bgGrad)" filter="url(#shadow)"/>
  <text x="{{ padding }}" y="46" fill="{{ theme.title }}" font-size="22" font-weight="900" font-family="{{ font }}">{{ title }}</text>
  <text x="{{ padding }}" y="72" fill="{{ theme.muted }}" font-size="12" font-weight="650" font-family="{{ font }}">{{ subtitle_left }}</text>
"""

_BARS = """\
{% include "open.svg.j2" %}
  <text x="{{ right }}" y="46" text-anchor="end" fill="{{ theme.text }}" font-size="14" font-weight="900" font-family="{{ font }}">{{ total_text }}</text>
  <text x="{{ right }}" y="72" text-anchor="end" fill="{{ theme.muted }}" font-size="12" font-weight="650" font-family="{{ font }}">{{ top_text }}</text>
  <line x1="{{ padding }}" y1="{{ divider_y }}" x2="{{ right }}" y2="{{ divider_y }}" stroke="{{ theme.stroke }}" stroke-width="1" opacity="0.75"/>
{% for row in rows %}
  <g>
    <circle cx="{{ row.dot_cx }}" cy="{{ row.dot_cy }}" r="5" fill="{{ row.color }}" opacity="{{ row.opacity }}"/>
    <text x="{{ padding }}" y="{{ row.y }}" fill="{{ theme.muted }}" font-size="12" font-weight="750" font-family="{{ font }}">{{ row.rank }}</text>
    <text x="{{ name_x }}" y="{{ row.y }}" fill="{{ row.name_color }}" opacity="{{ row.name_opacity }}" font-size="14" font-weight="650" font-family="{{ font }}">{{ row.name }}</text>
    <text x="{{ value_x }}" y="{{ row.y }}" text-anchor="end" fill="{{ theme.muted }}" font-size="13" font-weight="650" font-family="{{ font }}">{{ row.value_text }}</text>
    <rect x="{{ bar_x }}" y="{{ row.bar_y }}" rx="6" ry="6" width="{{ bar_w }}" height="{{ bar_h }}" fill="{{ theme.bar_bg }}" opacity="0.95"/>
    <rect x="{{ bar_x }}" y="{{ row.bar_y }}" rx="6" ry="6" width="{{ row.fill_w }}" height="{{ bar_h }}" fill="{{ row.color }}" opacity="{{ row.opacity }}" filter="url(#barGlow)"/>
    <text x="{{ right }}" y="{{ row.y }}" text-anchor="end" fill="{{ theme.muted }}" font-size="13" font-weight="700" font-family="{{ font }}">{{ row.pct_text }}</text>
  </g>
{% endfor %}
</svg>
"""

_GRID = """\
{% include "open.svg.j2" %}
  <text x="{{ padding }}" y="94" fill="{{ theme.muted }}" font-size="12" font-weight="650" font-family="{{ font }}">{{ total_text }}</text>
  <text x="{{ top_x }}" y="94" text-anchor="end" fill="{{ theme.muted }}" font-size="12" font-weight="650" font-family="{{ font }}">{{ top_text }}</text>
{% if ring %}
  <g>
    <circle cx="{{ ring.cx }}" cy="{{ ring.cy }}" r="{{ ring.r }}" fill="none" stroke="{{ theme.stroke }}" stroke-width="{{ ring.stroke }}" opacity="0.65"/>
    <circle cx="{{ ring.cx }}" cy="{{ ring.cy }}" r="{{ ring.r }}" fill="none" stroke="{{ ring.color }}" stroke-width="{{ ring.stroke }}" stroke-linecap="round" stroke-dasharray="{{ ring.dash }} {{ ring.gap }}" transform="rotate(-90 {{ ring.cx }} {{ ring.cy }})" filter="url(#barGlow)"/>
    <text x="{{ ring.cx }}" y="{{ ring.letter_y }}" text-anchor="middle" fill="{{ theme.text }}" font-size="22" font-weight="900" font-family="{{ font }}">{{ ring.letter }}</text>
    <text x="{{ ring.cx }}" y="{{ ring.pct_y }}" text-anchor="middle" fill="{{ theme.muted }}" font-size="11" font-weight="700" font-family="{{ font }}">{{ ring.pct_text }}</text>
  </g>
{% endif %}
  <line x1="{{ padding }}" y1="{{ divider_y }}" x2="{{ right }}" y2="{{ divider_y }}" stroke="{{ theme.stroke }}" stroke-width="1" opacity="0.75"/>
{% for tile in tiles %}
  <g>
    <rect x="{{ tile.x }}" y="{{ tile.y }}" rx="14" ry="14" width="{{ tile_w }}" height="{{ tile_h }}" fill="{{ theme.bar_bg }}" opacity="0.92"/>
    <rect x="{{ tile.x }}" y="{{ tile.y }}" rx="14" ry="14" width="6" height="{{ tile_h }}" fill="{{ tile.accent }}" opacity="0.95"/>
    <text x="{{ tile.text_x }}" y="{{ tile.label_y }}" fill="{{ theme.muted }}" font-size="12" font-weight="700" font-family="{{ font }}">{{ tile.label }}</text>
    <text x="{{ tile.text_x }}" y="{{ tile.value_y }}" fill="{{ theme.text }}" font-size="22" font-weight="900" font-family="{{ font }}">{{ tile.value }}</text>
  </g>
{% endfor %}
</svg>
"""

_ENV = Environment(
    loader=DictLoader({"open.svg.j2": _SVG_OPEN, "bars.svg.j2": _BARS, "grid.svg.j2": _GRID}),
    autoescape=False,
    finalize=escape_xml,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)

_CARD_SPEC: TypeAdapter = TypeAdapter(CardSpec)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def bar_fill_width(percent: float, bar_width: int = BAR_W) -> int:
    """Filled width for ``percent``; always within ``[0, bar_width]``."""
    if not math.isfinite(percent):
        return 0
    return round_half_up(bar_width * clamp(percent / 100.0, 0.0, 1.0))


def bars_card_height(row_count: int) -> int:
    return HEADER_H + row_count * ROW_H + FOOTER_MARGIN


def grid_card_height(item_count: int) -> int:
    return HEADER_H + math.ceil(item_count / GRID_COLS) * (TILE_H + TILE_GAP) + FOOTER_MARGIN


def accent(theme: Theme, index: int) -> str:
    return theme.bars[index % len(theme.bars)]


def ring_color(letter: str, theme: Theme) -> str:
    index = {"S": 1, "A": 0, "B": 2, "C": 3}.get(letter)
    if index is None:
        return theme.muted
    return accent(theme, index)


def _base_context(spec: Union[BarsCardSpec, GridCardSpec], theme: Theme, height: int) -> Dict[str, Any]:
    return {
        "width": WIDTH,
        "height": height,
        "padding": PADDING,
        "right": WIDTH - PADDING,
        "font": FONT,
        "theme": theme,
        "title": spec.title,
        "subtitle_left": spec.subtitle_left,
        "total_text": spec.total_text,
        "top_text": spec.top_text,
    }


def _bar_row(index: int, row: MetricRow, theme: Theme) -> Dict[str, Any]:
    y = HEADER_H + index * ROW_H
    is_other = theme.other_color is not None and row.name == "Other"
    is_tiny = theme.dim_tiny_rows and row.percent < 1
    return {
        "y": y,
        "rank": f"#{index + 1}",
        "dot_cx": PADDING + 28,
        "dot_cy": y - 6,
        "bar_y": y - 12,
        "color": theme.other_color if is_other else accent(theme, index),
        "opacity": "0.85" if is_other else "0.95",
        "name": row.name,
        "name_color": theme.tiny_text if is_tiny else theme.text,
        "name_opacity": "0.92" if is_tiny else "1",
        "value_text": row.value_text,
        "fill_w": bar_fill_width(row.percent),
        "pct_text": fmt_percent(row.percent),
    }


def render_bars_card(spec: BarsCardSpec, theme: Theme) -> str:
    ctx = _base_context(spec, theme, bars_card_height(len(spec.rows)))
    ctx.update(
        divider_y=BARS_DIVIDER_Y,
        name_x=NAME_X,
        value_x=BAR_X - VALUE_GAP,
        bar_x=BAR_X,
        bar_w=BAR_W,
        bar_h=BAR_H,
        rows=[_bar_row(i, row, theme) for i, row in enumerate(spec.rows)],
    )
    return _ENV.get_template("bars.svg.j2").render(ctx)


def _grid_tile(index: int, item: GridItem, theme: Theme) -> Dict[str, Any]:
    row, col = divmod(index, GRID_COLS)
    x = PADDING + col * (TILE_W + TILE_GAP)
    y = HEADER_H + row * (TILE_H + TILE_GAP)
    return {
        "x": x,
        "y": y,
        "text_x": x + 18,
        "label_y": y + 28,
        "value_y": y + 54,
        "accent": accent(theme, index),
        "label": item.label,
        "value": item.value,
    }


def _ring(grade: Grade, theme: Theme) -> Dict[str, Any]:
    pct = int(clamp(grade.pct, 0, 100))
    circumference = 2 * math.pi * RING_R
    dash = circumference * pct / 100
    return {
        "cx": RING_CX,
        "cy": RING_CY,
        "r": RING_R,
        "stroke": RING_STROKE,
        "color": ring_color(grade.letter, theme),
        "dash": f"{dash:.3f}",
        "gap": f"{circumference - dash:.3f}",
        "letter": grade.letter,
        "letter_y": RING_CY + 7,
        "pct_y": RING_CY + 28,
        "pct_text": f"{pct}%",
    }


def render_grid_card(spec: GridCardSpec, theme: Theme) -> str:
    ctx = _base_context(spec, theme, grid_card_height(len(spec.items)))
    ctx.update(
        divider_y=GRID_DIVIDER_Y,
        top_x=WIDTH - PADDING - 110,
        tile_w=TILE_W,
        tile_h=TILE_H,
        tiles=[_grid_tile(i, item, theme) for i, item in enumerate(spec.items)],
        ring=_ring(spec.grade, theme) if spec.grade is not None else None,
    )
    return _ENV.get_template("grid.svg.j2").render(ctx)


RENDERERS: Dict[str, Callable[[Any, Theme], str]] = {
    "bars": render_bars_card,
    "grid": render_grid_card,
}


def render_card(spec: Union[BarsCardSpec, GridCardSpec, Mapping[str, Any]], theme: Theme) -> str:
    """Render ``spec`` with ``theme``; plain mappings are validated against ``CardSpec`` first."""
    if not isinstance(spec, (BarsCardSpec, GridCardSpec)):
        try:
            spec = _CARD_SPEC.validate_python(spec)
        except ValidationError as exc:
            raise InvalidInputError(f"invalid card spec: {exc}") from exc
    return RENDERERS[spec.kind](spec, theme)
