"""Configuration helpers for the broken internal links engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml


@dataclass(frozen=True)
class EngineConfig:
    """Typed wrapper around the engine configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    @property
    def interval_days(self) -> int:
        return int(self.raw.get("interval_days", 30))

    @property
    def pages_per_batch(self) -> int:
        return int(self.raw.get("pages_per_batch", 30))

    @property
    def link_check_batch_size(self) -> int:
        return int(self.raw.get("link_check_batch_size", 10))

    @property
    def mystique_batch_size(self) -> int:
        return int(self.raw.get("mystique_batch_size", 100))

    @property
    def fetch_max_retries(self) -> int:
        return int(self.raw.get("fetch_max_retries", 1))

    @property
    def fetch_max_workers(self) -> int:
        return int(self.raw.get("fetch_max_workers", 8))

    @property
    def probe_timeout(self) -> float:
        return float(self.raw.get("probe_timeout", 10))

    @property
    def high_priority_threshold(self) -> float:
        return float(self.raw.get("priority", {}).get("high", 1500))

    @property
    def medium_priority_threshold(self) -> float:
        return float(self.raw.get("priority", {}).get("medium", 500))

    @property
    def alternative_url_denylist(self) -> List[str]:
        return [ext.lower() for ext in self.raw.get("alternative_url_denylist", [])]

    @property
    def top_pages_source(self) -> str:
        return self.raw.get("top_pages", {}).get("source", "ahrefs")

    @property
    def top_pages_geo(self) -> str:
        return self.raw.get("top_pages", {}).get("geo", "global")


DEFAULTS: Dict[str, Any] = {
    "interval_days": 30,
    "pages_per_batch": 30,
    "link_check_batch_size": 10,
    "mystique_batch_size": 100,
    "fetch_max_retries": 1,
    "fetch_max_workers": 8,
    "probe_timeout": 10,
    "priority": {
        "high": 1500,
        "medium": 500,
    },
    "alternative_url_denylist": [".pdf", ".xlsx", ".pptx", ".docx"],
    "top_pages": {
        "source": "ahrefs",
        "geo": "global",
    },
}


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return EngineConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
