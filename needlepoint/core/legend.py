from __future__ import annotations

from collections import Counter
from typing import List

from ..models.pattern import Pattern


def build_legend(pattern: Pattern, *, include_unused: bool = False) -> List[dict]:
    """Return the palette enriched with stitch counts across all layers."""

    counts: Counter[str] = Counter(stitch.colorId for stitch in pattern.all_stitches())
    total = sum(counts.values()) or 1

    legend: List[dict] = []
    for color in pattern.colorPalette:
        count = counts.pop(color.id, 0)
        if not count and not include_unused:
            continue
        entry = color.model_dump(exclude_none=True)
        entry["count"] = count
        entry["percent"] = round(count / total * 100, 2)
        legend.append(entry)

    # Stitches whose colour left the palette are still reported.
    for color_id, count in counts.items():
        legend.append(
            {
                "id": color_id,
                "name": None,
                "count": count,
                "percent": round(count / total * 100, 2),
            }
        )

    legend.sort(key=lambda row: row["count"], reverse=True)
    return legend
