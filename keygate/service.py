"""
Entitlement service: the single entry point for the transport layer.

Sequences the stores and the resolver for each use case, validates raw
arguments into typed inputs, and emits audit events. Holds no business rules
of its own.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Type, TypeVar

import pydantic

from .clock import Clock, SystemClock
from .errors import InvalidKeyError, ValidationError
from .keystore import KeyStore
from .models import (
    KICK_MESSAGES,
    AccessOutcome,
    AccessResult,
    CreatedScript,
    IssuedKey,
    KeyStatus,
    ListKind,
    ScriptLists,
    ScriptSummary,
)
from .plans import PlanCatalog
from .resolver import resolve_access
from .schemas import (
    CreateScriptInput,
    IssueFreeKeyInput,
    ListMutationInput,
    ResolveAccessInput,
    ScriptRef,
    ValidateKeyInput,
)
from .scriptstore import ScriptStore

logger = logging.getLogger(__name__)

AuditSink = Callable[[str, dict], None]
InputT = TypeVar("InputT", bound=pydantic.BaseModel)

_MISSING_FIELD_MESSAGES = {
    IssueFreeKeyInput: "User ID is required.",
    CreateScriptInput: "Code and API key are required.",
    ListMutationInput: "Script ID and user ID are required.",
}


def log_audit_event(event: str, payload: dict) -> None:
    logger.info(event, extra={"audit_event": event, **payload})


def _parse(model: Type[InputT], **raw: Any) -> InputT:
    try:
        return model(**raw)
    except pydantic.ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        message = _MISSING_FIELD_MESSAGES.get(model, "Invalid input.")
        raise ValidationError(message, details={"fields": fields}) from exc


class EntitlementService:
    def __init__(
        self,
        *,
        key_store: Optional[KeyStore] = None,
        script_store: Optional[ScriptStore] = None,
        clock: Optional[Clock] = None,
        plans: Optional[PlanCatalog] = None,
        audit_sink: Optional[AuditSink] = None,
    ) -> None:
        self.clock = clock or (key_store.clock if key_store else SystemClock())
        self.key_store = key_store or KeyStore(clock=self.clock, plans=plans)
        self.script_store = script_store or ScriptStore()
        self._audit_sink = audit_sink or log_audit_event

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def issue_free_key(self, user_id: Optional[str]) -> IssuedKey:
        data = _parse(IssueFreeKeyInput, user_id=user_id)
        key = self.key_store.issue_free_key(data.user_id)
        self._audit_sink(
            "keys.free_issued",
            {"user_id": key.user_id, "key_id": key.id, "expires_at": key.expires_at.isoformat()},
        )
        return IssuedKey(key=key, plan=key.plan_key)

    def validate_key(self, key_id: Optional[str]) -> KeyStatus:
        try:
            data = ValidateKeyInput(key_id=key_id)
        except pydantic.ValidationError:
            # an absent key id is simply an invalid key
            raise InvalidKeyError() from None
        key = self.key_store.validate(data.key_id)
        return KeyStatus(key_id=key.id, plan=key.tier, expires_at=key.expires_at)

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def create_script(self, code: Optional[str], is_paid: Any, key_id: Optional[str]) -> CreatedScript:
        data = _parse(CreateScriptInput, code=code, is_paid=bool(is_paid), key_id=key_id)
        # key is checked before the script store is touched
        key = self.key_store.validate(data.key_id)
        script = self.script_store.create(data.code, data.is_paid, key)
        self._audit_sink(
            "scripts.created",
            {"script_id": script.id, "user_id": key.user_id, "is_paid": script.is_paid},
        )
        return CreatedScript(script_id=script.id, key_id=key.id)

    def list_scripts(self) -> List[ScriptSummary]:
        return self.script_store.list()

    def delete_script(self, script_id: Optional[str]) -> None:
        data = _parse(ScriptRef, script_id=script_id)
        self.script_store.delete(data.script_id)
        self._audit_sink("scripts.deleted", {"script_id": data.script_id})

    def get_lists(self, script_id: Optional[str]) -> ScriptLists:
        data = _parse(ScriptRef, script_id=script_id)
        return self.script_store.get_lists(data.script_id)

    def add_to_list(self, script_id: Optional[str], list_kind: Any, user_id: Optional[str]) -> None:
        data = self._list_mutation(script_id, list_kind, user_id)
        changed = self.script_store.add_to_list(data.script_id, data.list_kind, data.user_id)
        self._audit_sink(
            "scripts.list_added",
            {
                "script_id": data.script_id,
                "list_kind": data.list_kind.value,
                "user_id": data.user_id,
                "changed": changed,
            },
        )

    def remove_from_list(self, script_id: Optional[str], list_kind: Any, user_id: Optional[str]) -> None:
        data = self._list_mutation(script_id, list_kind, user_id)
        changed = self.script_store.remove_from_list(data.script_id, data.list_kind, data.user_id)
        self._audit_sink(
            "scripts.list_removed",
            {
                "script_id": data.script_id,
                "list_kind": data.list_kind.value,
                "user_id": data.user_id,
                "changed": changed,
            },
        )

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def resolve_access(
        self,
        script_id: Optional[str],
        key_id: Optional[str],
        requester_user_id: Optional[str],
    ) -> AccessResult:
        try:
            data = ResolveAccessInput(
                script_id=script_id,
                key_id=key_id,
                requester_user_id=requester_user_id,
            )
        except pydantic.ValidationError:
            return AccessResult(outcome=AccessOutcome.NOT_FOUND)

        key = self.key_store.get(data.key_id)
        now = self.clock.now()
        decision, script = self.script_store.resolve(
            data.script_id,
            lambda candidate: resolve_access(candidate, key, data.requester_user_id, now),
        )

        payload = {
            "script_id": data.script_id,
            "key_id": data.key_id,
            "user_id": data.requester_user_id,
            "outcome": decision.outcome.value,
        }
        if decision.allowed:
            self._audit_sink("access.allowed", {**payload, "executions": script.executions})
            return AccessResult(outcome=AccessOutcome.ALLOW, payload=script.code)

        if decision.outcome is AccessOutcome.KICK:
            self._audit_sink("access.kicked", {**payload, "reason": decision.reason})
            return AccessResult(
                outcome=AccessOutcome.KICK,
                message=KICK_MESSAGES.get(decision.reason, decision.reason),
                reason=decision.reason,
            )

        self._audit_sink("access.denied", payload)
        return AccessResult(outcome=decision.outcome)

    def _list_mutation(self, script_id: Any, list_kind: Any, user_id: Any) -> ListMutationInput:
        # list kind is checked first so an unknown kind is never reported as a missing field
        kind = ListKind.parse(list_kind)
        return _parse(ListMutationInput, script_id=script_id, list_kind=kind, user_id=user_id)
