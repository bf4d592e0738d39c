"""
Time-limited access keys and per-script access control.

This package provides:
- KeyStore: issues free keys and validates them with lazy expiry
- ScriptStore: script records with whitelist/blacklist and execution counter
- resolve_access: the pure access decision (NOT_FOUND / FORBIDDEN / KICK / ALLOW)
- EntitlementService: the use cases the HTTP layer calls
- PlanCatalog: plan-duration configuration

Free keys last for the "1-month" plan (30 days) unless configured otherwise.
"""

from keygate.clock import Clock, FrozenClock, SystemClock
from keygate.errors import (
    DuplicateKeyError,
    InvalidKeyError,
    InvalidListKindError,
    KeygateError,
    NotFoundError,
    PlanConfigError,
    ScriptNotFoundError,
    ValidationError,
)
from keygate.keystore import KeyStore
from keygate.models import (
    AccessDecision,
    AccessOutcome,
    AccessResult,
    Key,
    ListKind,
    Script,
    ScriptLists,
    ScriptSummary,
)
from keygate.plans import PlanCatalog, load_plan_catalog
from keygate.resolver import resolve_access
from keygate.scriptstore import ScriptStore
from keygate.service import EntitlementService

__all__ = [
    # Time
    "Clock",
    "FrozenClock",
    "SystemClock",
    # Stores
    "KeyStore",
    "ScriptStore",
    # Plans
    "PlanCatalog",
    "load_plan_catalog",
    # Decision
    "resolve_access",
    "AccessDecision",
    "AccessOutcome",
    "AccessResult",
    # Models
    "Key",
    "ListKind",
    "Script",
    "ScriptLists",
    "ScriptSummary",
    # Service
    "EntitlementService",
    # Errors
    "KeygateError",
    "ValidationError",
    "NotFoundError",
    "ScriptNotFoundError",
    "InvalidKeyError",
    "DuplicateKeyError",
    "InvalidListKindError",
    "PlanConfigError",
]
