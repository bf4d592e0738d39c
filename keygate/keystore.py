"""
In-memory store of issued keys.

Provides:
- Free-key issuance, refused while any stored key belongs to the user
- Lazy expiry: an expired key is evicted the first time validate() sees it
- Structural lookup without eviction for access resolution

All operations run under a single lock, so the duplicate check on issuance
and eviction on validation always observe the same snapshot.
"""

from __future__ import annotations

import logging
import uuid
from threading import RLock
from typing import Callable, Dict, Optional

from .clock import Clock, SystemClock
from .errors import DuplicateKeyError, InvalidKeyError, PlanConfigError
from .models import Key
from .plans import FREE_PLAN_KEY, PlanCatalog

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class KeyStore:
    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        plans: Optional[PlanCatalog] = None,
        free_plan_key: str = FREE_PLAN_KEY,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self.clock = clock or SystemClock()
        self.plans = plans or PlanCatalog()
        if free_plan_key not in self.plans:
            raise PlanConfigError(f"unknown plan_key: {free_plan_key}", field=free_plan_key)
        self.free_plan_key = free_plan_key
        self._id_factory = id_factory or _new_id
        self._lock = RLock()
        self._keys: Dict[str, Key] = {}

    def issue_free_key(self, user_id: str) -> Key:
        normalized_user_id = str(user_id).strip()
        if not normalized_user_id:
            raise ValueError("user_id is required")

        with self._lock:
            # only stored keys count; an evicted key no longer blocks re-issue
            if any(key.user_id == normalized_user_id for key in self._keys.values()):
                raise DuplicateKeyError(normalized_user_id)
            key = self._mint(normalized_user_id, self.free_plan_key, is_paid=False)

        logger.info(
            "Issued free key",
            extra={
                "user_id": normalized_user_id,
                "key_id": key.id,
                "plan_key": key.plan_key,
                "expires_at": key.expires_at.isoformat(),
            },
        )
        return key

    def issue_key(self, user_id: str, plan_key: str, *, is_paid: bool = True) -> Key:
        """Mint a key without the free-tier duplicate policy."""
        normalized_user_id = str(user_id).strip()
        if not normalized_user_id:
            raise ValueError("user_id is required")
        with self._lock:
            key = self._mint(normalized_user_id, plan_key, is_paid=is_paid)
        logger.info(
            "Issued key",
            extra={"user_id": normalized_user_id, "key_id": key.id, "plan_key": plan_key, "is_paid": is_paid},
        )
        return key

    def validate(self, key_id: Optional[str]) -> Key:
        """Return the live key or raise InvalidKeyError, evicting it if expired."""
        if not key_id:
            raise InvalidKeyError()

        with self._lock:
            key = self._keys.get(key_id)
            if key is None:
                raise InvalidKeyError()
            if key.is_expired(self.clock.now()):
                del self._keys[key_id]
                logger.info(
                    "Evicted expired key",
                    extra={"key_id": key_id, "user_id": key.user_id},
                )
                raise InvalidKeyError()
            return key

    def get(self, key_id: Optional[str]) -> Optional[Key]:
        if not key_id:
            return None
        with self._lock:
            return self._keys.get(key_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def _mint(self, user_id: str, plan_key: str, *, is_paid: bool) -> Key:
        duration = self.plans.duration(plan_key)
        key_id = self._id_factory()
        while key_id in self._keys:
            key_id = self._id_factory()
        key = Key(
            id=key_id,
            user_id=user_id,
            expires_at=self.clock.now() + duration,
            is_paid=is_paid,
            plan_key=plan_key,
        )
        self._keys[key_id] = key
        return key
