"""
HTTP routes for keys, scripts, access lists and raw script delivery.

Routes only parse requests and render service results; every decision is
made by EntitlementService. Errors raised by the service are rendered by the
application's KeygateError handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from keygate.models import AccessOutcome, ListKind
from keygate.service import EntitlementService

router = APIRouter()


def get_service(request: Request) -> EntitlementService:
    return request.app.state.service


def kick_script(message: str) -> str:
    """Client-side instruction that disconnects the requesting player."""
    escaped = message.replace("\\", "\\\\").replace('"', '\\"')
    return f'game.Players.LocalPlayer:Kick("{escaped}")'


def _epoch_ms(value) -> int:
    return int(value.timestamp() * 1000)


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class FreeKeyBody(_Body):
    user_id: Optional[str] = Field(default=None, alias="userId")


class CheckKeyBody(_Body):
    key: Optional[str] = None


class CreateScriptBody(_Body):
    code: Optional[str] = None
    is_paid: Optional[bool] = Field(default=False, alias="isPaid")
    key: Optional[str] = None


class ListUserBody(_Body):
    user_id: Optional[str] = Field(default=None, alias="userId")


@router.post("/api/free-key")
def issue_free_key(body: Optional[FreeKeyBody] = None, service: EntitlementService = Depends(get_service)) -> dict:
    body = body or FreeKeyBody()
    issued = service.issue_free_key(body.user_id)
    return {
        "key": issued.key.id,
        "expiresAt": _epoch_ms(issued.key.expires_at),
        "plan": issued.plan,
    }


@router.post("/api/check-key")
def check_key(body: Optional[CheckKeyBody] = None, service: EntitlementService = Depends(get_service)) -> dict:
    body = body or CheckKeyBody()
    key_status = service.validate_key(body.key)
    return {"status": "valid", "plan": key_status.plan}


@router.post("/api/scripts")
def create_script(body: Optional[CreateScriptBody] = None, service: EntitlementService = Depends(get_service)) -> dict:
    body = body or CreateScriptBody()
    created = service.create_script(body.code, bool(body.is_paid), body.key)
    return {"id": created.script_id, "key": created.key_id}


@router.get("/api/scripts")
def list_scripts(service: EntitlementService = Depends(get_service)) -> list:
    return [
        {"id": s.id, "isPaid": s.is_paid, "executions": s.executions}
        for s in service.list_scripts()
    ]


@router.delete("/api/scripts/{script_id}", response_class=PlainTextResponse)
def delete_script(script_id: str, service: EntitlementService = Depends(get_service)) -> str:
    service.delete_script(script_id)
    return "Script deleted"


@router.get("/api/users/{script_id}")
def get_lists(script_id: str, service: EntitlementService = Depends(get_service)) -> dict:
    lists = service.get_lists(script_id)
    return {"whitelist": list(lists.whitelist), "blacklist": list(lists.blacklist)}


@router.post("/api/users/{script_id}/{list_type}", response_class=PlainTextResponse)
def add_to_list(
    script_id: str,
    list_type: str,
    body: Optional[ListUserBody] = None,
    service: EntitlementService = Depends(get_service),
) -> str:
    kind = ListKind.parse(list_type)
    service.add_to_list(script_id, kind, (body or ListUserBody()).user_id)
    return f"User added to {kind.value}."


@router.delete("/api/users/{script_id}/{list_type}", response_class=PlainTextResponse)
def remove_from_list(
    script_id: str,
    list_type: str,
    body: Optional[ListUserBody] = None,
    service: EntitlementService = Depends(get_service),
) -> str:
    kind = ListKind.parse(list_type)
    service.remove_from_list(script_id, kind, (body or ListUserBody()).user_id)
    return f"User removed from {kind.value}."


@router.get("/raw/{script_id}", response_class=PlainTextResponse)
def raw_script(
    script_id: str,
    key: Optional[str] = None,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    service: EntitlementService = Depends(get_service),
) -> PlainTextResponse:
    result = service.resolve_access(script_id, key, user_id)

    if result.outcome is AccessOutcome.ALLOW:
        return PlainTextResponse(result.payload)
    if result.outcome is AccessOutcome.KICK:
        return PlainTextResponse(kick_script(result.message))
    if result.outcome is AccessOutcome.NOT_FOUND:
        return PlainTextResponse("Script not found", status_code=status.HTTP_404_NOT_FOUND)
    return PlainTextResponse("Unauthorized", status_code=status.HTTP_403_FORBIDDEN)
