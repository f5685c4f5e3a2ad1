from .json_utils import safe_json, safe_json_dumps
from .paths import DATA_DIR, DB_PATH, LOG_DIR
from .runtime import get_runtime_info

__all__ = [
    "DATA_DIR",
    "DB_PATH",
    "LOG_DIR",
    "get_runtime_info",
    "safe_json",
    "safe_json_dumps",
]
