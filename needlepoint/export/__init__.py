"""Export helpers for needlepoint patterns."""

from .json_exporter import export_json

__all__ = ["export_json"]
