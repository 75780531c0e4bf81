import json
import logging
from pathlib import Path
from typing import Optional

from ..models.pattern import Pattern
from ..settings import DATA_DIR

logger = logging.getLogger(__name__)


class FSStorage:
    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or DATA_DIR)
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (root / path).resolve()
        if target == root or not target.is_relative_to(root):
            logger.warning("Rejected storage path outside %s: %r", root, path)
            raise ValueError(f"Path {path!r} is outside the storage root")
        return target

    def save_bytes(self, path: str, data: bytes):
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def save_json(self, path: str, obj):
        self.save_bytes(path, json.dumps(obj, ensure_ascii=False, indent=2).encode("utf-8"))

    def load_json(self, path: str):
        return json.loads(self._resolve(path).read_text(encoding="utf-8"))

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def save_pattern(self, path: str, pattern: Pattern) -> str:
        self.save_json(path, pattern.to_dict())
        logger.info("Saved pattern %s to %s", pattern.fileId, path)
        return str(self._resolve(path))

    def load_pattern(self, path: str) -> Pattern:
        return Pattern.model_validate(self.load_json(path))
