"""
In-memory store of script records.

Script records are only mutated here: list edits, deletion and the execution
counter all go through the store lock. `resolve` keeps lookup, decision and
the execution increment inside one lock acquisition so a concurrent delete
cannot slip between them.
"""

from __future__ import annotations

import logging
import uuid
from threading import RLock
from typing import Callable, Dict, List, Optional, Tuple

from .errors import ScriptNotFoundError, ValidationError
from .models import AccessDecision, Key, ListKind, Script, ScriptLists, ScriptSummary

logger = logging.getLogger(__name__)


class ScriptStore:
    def __init__(self, *, id_factory: Optional[Callable[[], str]] = None) -> None:
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._lock = RLock()
        self._scripts: Dict[str, Script] = {}

    def create(self, code: str, is_paid: bool, owner_key: Key) -> Script:
        if not code:
            raise ValidationError("Code is required.", details={"field": "code"})

        with self._lock:
            script_id = self._id_factory()
            while script_id in self._scripts:
                script_id = self._id_factory()
            script = Script(
                id=script_id,
                owner_key_id=owner_key.id,
                owner_user_id=owner_key.user_id,
                code=code,
                is_paid=bool(is_paid),
            )
            self._scripts[script_id] = script

        logger.info(
            "Script created",
            extra={"script_id": script_id, "user_id": owner_key.user_id, "is_paid": script.is_paid},
        )
        return script

    def get(self, script_id: str) -> Script:
        with self._lock:
            return self._require(script_id)

    def list(self) -> List[ScriptSummary]:
        with self._lock:
            return [
                ScriptSummary(id=s.id, is_paid=s.is_paid, executions=s.executions)
                for s in self._scripts.values()
            ]

    def delete(self, script_id: str) -> None:
        with self._lock:
            self._require(script_id)
            del self._scripts[script_id]
        logger.info("Script deleted", extra={"script_id": script_id})

    def get_lists(self, script_id: str) -> ScriptLists:
        with self._lock:
            script = self._require(script_id)
            return ScriptLists(
                whitelist=tuple(script.whitelist),
                blacklist=tuple(script.blacklist),
            )

    def add_to_list(self, script_id: str, kind: ListKind, user_id: str) -> bool:
        """Add user_id to the list. Returns False when it was already present."""
        with self._lock:
            members = self._require(script_id).members(kind)
            if user_id in members:
                return False
            members.append(user_id)
        logger.info(
            "User added to list",
            extra={"script_id": script_id, "list_kind": kind.value, "user_id": user_id},
        )
        return True

    def remove_from_list(self, script_id: str, kind: ListKind, user_id: str) -> bool:
        """Remove user_id from the list. Returns False when it was absent."""
        with self._lock:
            members = self._require(script_id).members(kind)
            if user_id not in members:
                return False
            members.remove(user_id)
        logger.info(
            "User removed from list",
            extra={"script_id": script_id, "list_kind": kind.value, "user_id": user_id},
        )
        return True

    def resolve(
        self,
        script_id: Optional[str],
        decide: Callable[[Optional[Script]], AccessDecision],
    ) -> Tuple[AccessDecision, Optional[Script]]:
        """Apply `decide` to the script; on ALLOW count one execution.

        Returns the decision and, when allowed, the script record.
        """
        with self._lock:
            script = self._scripts.get(script_id) if script_id else None
            decision = decide(script)
            if not decision.allowed:
                return decision, None
            script.executions += 1
            return decision, script

    def __len__(self) -> int:
        with self._lock:
            return len(self._scripts)

    def _require(self, script_id: Optional[str]) -> Script:
        script = self._scripts.get(script_id) if script_id else None
        if script is None:
            raise ScriptNotFoundError(script_id)
        return script
