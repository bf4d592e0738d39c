"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from typing import Optional

from keygate.plans import FREE_PLAN_KEY


@dataclass(frozen=True)
class Settings:
    plans_path: Optional[str] = None
    free_plan_key: str = FREE_PLAN_KEY
    log_level: str = "INFO"
    port: int = 3000


def load_settings() -> Settings:
    return Settings(
        plans_path=os.getenv("KEYGATE_PLANS_PATH") or None,
        free_plan_key=os.getenv("KEYGATE_FREE_PLAN", FREE_PLAN_KEY).strip() or FREE_PLAN_KEY,
        log_level=os.getenv("KEYGATE_LOG_LEVEL", "INFO").upper(),
        port=int(os.getenv("PORT", "3000")),
    )
