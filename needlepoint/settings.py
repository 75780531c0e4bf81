import os
from pathlib import Path

DATA_DIR = os.getenv("DATA_DIR", str(Path(__file__).resolve().parent / "data"))
MAX_HISTORY_SIZE = int(os.getenv("MAX_HISTORY_SIZE", "50"))
DEFAULT_CELL_SIZE = float(os.getenv("DEFAULT_CELL_SIZE", "20"))
DEFAULT_MESH_COUNT = int(os.getenv("DEFAULT_MESH_COUNT", "14"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
