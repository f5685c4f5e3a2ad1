import os
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent.parent

def _is_container_runtime():
    if os.path.exists("/.dockerenv"):
        return True
    return os.path.isdir("/data")


def _default_root_paths():
    if _is_container_runtime():
        return {
            "data": Path("/data"),
            "logs": Path("/logs"),
        }
    base = PROJECT_ROOT / "data"
    return {
        "data": base,
        "logs": base / "logs",
    }


_DEFAULTS = _default_root_paths()

DATA_DIR = Path(os.environ.get("MEDIA_EXPLORER_DATA_DIR", _DEFAULTS["data"])).resolve()
LOG_DIR = Path(os.environ.get("MEDIA_EXPLORER_LOG_DIR", _DEFAULTS["logs"])).resolve()
DB_PATH = Path(os.environ.get("MEDIA_EXPLORER_DB_PATH", DATA_DIR / "database" / "catalog.sqlite")).resolve()


def ensure_dir(path):
    if path:
        os.makedirs(path, exist_ok=True)
