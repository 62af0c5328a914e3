"""Configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_CONFIG_PATH = Path("configs") / "config.yaml"


def load_config(path: Path | str) -> Dict[str, Any]:
    with Path(path).open("r", encoding="utf-8") as handle:
        cfg = yaml.safe_load(handle) or {}
    if not isinstance(cfg, dict):
        raise ValueError("Configuration must be a mapping.")
    return cfg


def records_paths(cfg: Dict[str, Any]) -> Dict[str, Path]:
    records_cfg = cfg.get("records") or {}
    return {
        "students": Path(records_cfg.get("students_path") or Path("data") / "students.csv"),
        "payments": Path(records_cfg.get("payments_path") or Path("data") / "payments.csv"),
    }
