"""
cdcscope/config.py
JSON config persisted to cdcscope_config.json in the project root.
Unknown keys are kept; missing keys fall back to DEFAULT_CONFIG.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "cdcscope_config.json"

DEFAULT_CONFIG = {
    "dump_path": None,
    "tower_csv": None,
    "db_path": "cdcscope.db",
    "json_output": None,
    "fallback_bucket": "Global-Events",
    "fold_order": "dump",           # dump | timestamp
    "api_host": "127.0.0.1",
    "api_port": 8765,
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / CONFIG_FILENAME


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from cdcscope_config.json. Returns defaults if missing or unreadable."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value is not an object")
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to cdcscope_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path
