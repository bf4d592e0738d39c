"""
Typed inputs for each service operation.

Raw arguments from the transport are parsed into these models at the
service boundary; pydantic failures are translated to ValidationError.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import ListKind

NonEmptyId = Annotated[str, Field(min_length=1)]


class _Input(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class IssueFreeKeyInput(_Input):
    user_id: NonEmptyId


class ValidateKeyInput(_Input):
    key_id: NonEmptyId


class CreateScriptInput(BaseModel):
    # code is opaque: whitespace is preserved
    model_config = ConfigDict(frozen=True)

    code: Annotated[str, Field(min_length=1)]
    is_paid: bool = False
    key_id: Annotated[str, Field(min_length=1)]


class ScriptRef(_Input):
    script_id: NonEmptyId


class ListMutationInput(_Input):
    script_id: NonEmptyId
    list_kind: ListKind
    user_id: NonEmptyId


class ResolveAccessInput(BaseModel):
    # ids are compared exactly as presented
    model_config = ConfigDict(frozen=True)

    script_id: NonEmptyId
    key_id: Optional[str] = None
    requester_user_id: Optional[str] = None
