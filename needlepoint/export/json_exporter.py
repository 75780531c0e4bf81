import json

from ..core.legend import build_legend
from ..models.pattern import Pattern


def export_json(pattern: Pattern, *, with_legend: bool = False) -> str:
    data = pattern.to_dict()
    if with_legend:
        data["legend"] = build_legend(pattern)
    return json.dumps(data, ensure_ascii=False, indent=2)
