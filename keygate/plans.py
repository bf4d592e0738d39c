from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from threading import RLock
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Union

from .errors import PlanConfigError

logger = logging.getLogger(__name__)

FREE_PLAN_KEY = "1-month"

DEFAULT_PLAN_DURATIONS_MS: Mapping[str, int] = MappingProxyType(
    {FREE_PLAN_KEY: 30 * 24 * 60 * 60 * 1000}
)


class PlanCatalog:
    """Plan-duration table: plan key -> duration in milliseconds."""

    def __init__(
        self,
        durations_ms: Optional[Mapping[str, int]] = None,
        *,
        config_path: Optional[Union[str, Path]] = None,
    ) -> None:
        self._lock = RLock()
        self._config_path = Path(config_path) if config_path else None
        self._durations: Mapping[str, int]
        if self._config_path is not None:
            self.reload()
        else:
            self._durations = _parse_durations(
                durations_ms if durations_ms is not None else DEFAULT_PLAN_DURATIONS_MS
            )

    def reload(self) -> None:
        """Re-read the plan file. No-op for catalogs built from a mapping."""
        if self._config_path is None:
            return
        parsed = _parse_durations(_read_plans_file(self._config_path))
        with self._lock:
            self._durations = parsed
        logger.info(
            "Loaded plan catalog",
            extra={"config_path": str(self._config_path), "plans": sorted(parsed)},
        )

    def duration(self, plan_key: str) -> timedelta:
        with self._lock:
            duration_ms = self._durations.get(plan_key)
        if duration_ms is None:
            raise PlanConfigError(f"unknown plan_key: {plan_key}", field=plan_key)
        return timedelta(milliseconds=duration_ms)

    def duration_ms(self, plan_key: str) -> int:
        return int(self.duration(plan_key) / timedelta(milliseconds=1))

    def plan_keys(self) -> tuple:
        with self._lock:
            return tuple(sorted(self._durations))

    def __contains__(self, plan_key: object) -> bool:
        with self._lock:
            return plan_key in self._durations


def load_plan_catalog(config_path: Optional[Union[str, Path]] = None) -> PlanCatalog:
    """Catalog from a JSON file, or the built-in table when no path is given."""
    if not config_path:
        return PlanCatalog()
    return PlanCatalog(config_path=config_path)


def _read_plans_file(path: Path) -> Mapping[str, int]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise PlanConfigError(f"cannot read plan file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise PlanConfigError("plan file must contain a top-level object")
    plans_raw = raw.get("plans")
    if not isinstance(plans_raw, dict):
        raise PlanConfigError("plan file must include an object field named 'plans'", field="plans")

    durations: Dict[str, int] = {}
    for plan_key, plan_data in plans_raw.items():
        if not isinstance(plan_data, dict):
            raise PlanConfigError(f"plan '{plan_key}' must be an object", field=plan_key)
        durations[plan_key] = plan_data.get("duration_ms")
    return durations


def _parse_durations(raw: Mapping[str, object]) -> Mapping[str, int]:
    durations: Dict[str, int] = {}
    for plan_key, value in raw.items():
        if not isinstance(plan_key, str) or not plan_key.strip():
            raise PlanConfigError("each plan key must be a non-empty string")
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise PlanConfigError(
                f"plan '{plan_key}' duration_ms must be a positive integer",
                field=plan_key.strip(),
            )
        durations[plan_key.strip()] = value

    if not durations:
        raise PlanConfigError("at least one plan must be defined")
    return MappingProxyType(durations)
