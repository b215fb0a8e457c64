"""
Module: backend/utils/config_handler.py
Unified comment style: module docstring + minimal inline notes.
"""
import json, logging, os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = os.getenv("CONFIG_DIR") or os.getenv("DATA_DIR")

if DEFAULT_CONFIG_DIR:
    DATA_DIR = Path(DEFAULT_CONFIG_DIR)
else:
    current_dir = Path(__file__).parent.parent
    DATA_DIR = current_dir / "data"

try:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
except PermissionError:
    import tempfile
    DATA_DIR = Path(tempfile.gettempdir()) / "moderation_data"
    DATA_DIR.mkdir(exist_ok=True)
    logger.warning("Using temporary directory for config: %s", DATA_DIR)

CONFIG_PATH = DATA_DIR / "config.json"

DEFAULT_DATA: Dict[str, Any] = {
    "default_page_size": int(os.getenv("DEFAULT_PAGE_SIZE", "20")),
    "max_page_size": int(os.getenv("MAX_PAGE_SIZE", "100")),
    "allow_admin_self_registration": True,
}


def load_config() -> Dict[str, Any]:
    if not CONFIG_PATH.exists():
        data = DEFAULT_DATA.copy()
        save_config(data)
        return data
    try:
        data: Dict[str, Any] = json.loads(CONFIG_PATH.read_text("utf-8"))
    except (OSError, ValueError):
        logger.warning("Unreadable config at %s, falling back to defaults", CONFIG_PATH)
        data = DEFAULT_DATA.copy()
    changed = False
    for k, v in DEFAULT_DATA.items():
        if k not in data:
            data[k] = v
            changed = True
    if changed:
        save_config(data)
    return data


def save_config(data: Dict[str, Any]) -> None:
    CONFIG_PATH.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def update_config(**changes: Any) -> Dict[str, Any]:
    data = load_config()
    for k, v in changes.items():
        if k not in DEFAULT_DATA:
            raise KeyError(f"unknown config key: {k}")
        data[k] = v
    save_config(data)
    return data


def page_limits() -> tuple[int, int]:
    """(default_page_size, max_page_size) with sane floors."""
    cfg = load_config()
    max_size = max(int(cfg.get("max_page_size") or 100), 1)
    default = min(max(int(cfg.get("default_page_size") or 20), 1), max_size)
    return default, max_size
