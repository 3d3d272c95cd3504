from __future__ import annotations

from typing import Any, Dict, List

import altair as alt

alt.data_transformers.disable_max_rows()

DEFAULT_COLOR = "#6B7280"

CATEGORY_COLORS: Dict[str, str] = {
    "Web": "#3B82F6",
    "Mobile": "#8B5CF6",
    "Backend": "#06B6D4",
    "Frontend": "#10B981",
    "DevOps": "#F59E0B",
    "AI/ML": "#EC4899",
    "Data": "#6366F1",
    "Security": "#EF4444",
    "Cloud": "#14B8A6",
    "General": DEFAULT_COLOR,
    "Design": "#F97316",
    "Testing": "#84CC16",
    "IoT": "#A855F7",
    "Game": "#F43F5E",
}

LANGUAGE_COLORS: Dict[str, str] = {
    "JavaScript": "#F7DF1E",
    "TypeScript": "#3178C6",
    "PHP": "#777BB4",
    "Ruby": "#CC342D",
}

# Heatmap shades, index = intensity band.
BAND_COLORS: List[str] = ["#F3F4F6", "#BFDBFE", "#93C5FD", "#60A5FA", "#3B82F6", "#2563EB"]

def category_color(category: str) -> str:
    return CATEGORY_COLORS.get(category, CATEGORY_COLORS["General"])

def hex_to_rgb(color: str) -> List[int]:
    """`#RRGGBB` to the `[r, g, b]` triple deck.gl layers expect."""
    value = color.lstrip("#")
    return [int(value[i : i + 2], 16) for i in (0, 2, 4)]

def color_scale(labels: List[str], palette: Dict[str, str]) -> alt.Scale:
    return alt.Scale(domain=labels, range=[palette.get(label, DEFAULT_COLOR) for label in labels])

def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()
