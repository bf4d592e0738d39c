from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple

from .errors import InvalidListKindError


class ListKind(str, Enum):
    """Per-script access list."""

    WHITELIST = "whitelist"
    BLACKLIST = "blacklist"

    @classmethod
    def parse(cls, value: Any) -> "ListKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidListKindError(value) from None


class AccessOutcome(str, Enum):
    ALLOW = "allow"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    KICK = "kick"


# Client-facing wording for each kick reason.
KICK_MESSAGES = {
    "blacklisted": "You are blacklisted from this script.",
    "not whitelisted": "You are not whitelisted for this script.",
}


@dataclass(frozen=True)
class Key:
    """A time-bound credential bound to one user."""

    id: str
    user_id: str
    expires_at: datetime
    is_paid: bool = False
    plan_key: str = "1-month"

    def __post_init__(self) -> None:
        user_id = self.user_id.strip()
        if not self.id:
            raise ValueError("id is required")
        if not user_id:
            raise ValueError("user_id is required")
        if self.expires_at.tzinfo is None:
            raise ValueError("expires_at must be timezone-aware")
        object.__setattr__(self, "user_id", user_id)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def tier(self) -> str:
        return "Paid" if self.is_paid else "Free"


@dataclass
class Script:
    """A stored payload plus its access lists and usage counter."""

    id: str
    owner_key_id: str
    owner_user_id: str
    code: str
    is_paid: bool = False
    whitelist: List[str] = field(default_factory=list)
    blacklist: List[str] = field(default_factory=list)
    executions: int = 0

    def members(self, kind: ListKind) -> List[str]:
        return self.whitelist if kind is ListKind.WHITELIST else self.blacklist


@dataclass(frozen=True)
class ScriptSummary:
    """Listing projection. Code and lists are never exposed here."""

    id: str
    is_paid: bool
    executions: int


@dataclass(frozen=True)
class ScriptLists:
    whitelist: Tuple[str, ...]
    blacklist: Tuple[str, ...]


@dataclass(frozen=True)
class IssuedKey:
    key: Key
    plan: str


@dataclass(frozen=True)
class KeyStatus:
    key_id: str
    plan: str
    expires_at: datetime


@dataclass(frozen=True)
class CreatedScript:
    script_id: str
    key_id: str


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of the resolver. `reason` is set for KICK only."""

    outcome: AccessOutcome
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AccessOutcome.ALLOW

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(AccessOutcome.ALLOW)

    @classmethod
    def not_found(cls) -> "AccessDecision":
        return cls(AccessOutcome.NOT_FOUND)

    @classmethod
    def forbidden(cls) -> "AccessDecision":
        return cls(AccessOutcome.FORBIDDEN)

    @classmethod
    def kick(cls, reason: str) -> "AccessDecision":
        return cls(AccessOutcome.KICK, reason)


@dataclass(frozen=True)
class AccessResult:
    """What the service hands back to the transport for a script request.

    `payload` carries the script code on ALLOW; `message` carries the
    client-facing kick text on KICK.
    """

    outcome: AccessOutcome
    payload: Optional[str] = None
    message: Optional[str] = None
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome is AccessOutcome.ALLOW
