# SPDX-License-Identifier: BSL-1.1
# Copyright (c) 2026 MuVeraAI Corporation

"""
Request boundary.

Agents send loosely shaped tool payloads. :func:`parse_request` validates a
payload into one of two typed requests before it reaches the engine:

* :class:`ContextRequest` asks for facts.
* :class:`ResolutionRequest` approves or denies an earlier challenge.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from personafy_engine.errors import InvalidRequestError


class RequestModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True,
    )


class Purpose(RequestModel):
    """Why the agent wants the data, e.g. ``shopping`` / ``find_item``."""

    category: Annotated[str, Field(min_length=1)]
    action: Annotated[str, Field(min_length=1)]
    detail: str | None = None

    @property
    def label(self) -> str:
        """``category/action``, the form recorded in audit events."""
        return f"{self.category}/{self.action}"


class Recipient(RequestModel):
    """Who receives the data, e.g. ``domain`` / ``nordstrom.com``."""

    type: str = "domain"
    value: Annotated[str, Field(min_length=1)]


class ContextRequest(RequestModel):
    """
    A request for facts from one persona.

    Attributes:
        purpose: Category and action of the task.
        recipient: The party that will receive the facts.
        persona_hint: Optional persona id, name or category to pull from.
        fields_requested: Exact keys or ``prefix.*`` wildcards. An empty
            list releases nothing.
    """

    kind: Literal["context"] = "context"
    purpose: Purpose
    recipient: Recipient
    persona_hint: str | None = None
    fields_requested: list[str] = Field(default_factory=list)

    @field_validator("fields_requested", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class ResolutionRequest(RequestModel):
    """The user's answer to a pending challenge."""

    kind: Literal["resolution"] = "resolution"
    request_id: Annotated[str, Field(min_length=1)]
    approve: bool


EngineRequest = Annotated[
    Union[ContextRequest, ResolutionRequest],
    Field(discriminator="kind"),
]

_ENGINE_REQUEST: TypeAdapter[ContextRequest | ResolutionRequest] = TypeAdapter(EngineRequest)


def _classify(payload: Mapping[str, Any]) -> str:
    request_id = payload.get("request_id", payload.get("requestId"))
    approve = payload.get("approve")
    if request_id and isinstance(approve, bool):
        return "resolution"
    return "context"


def parse_request(payload: Mapping[str, Any]) -> ContextRequest | ResolutionRequest:
    """
    Validate an agent payload into a typed request.

    A payload carrying a ``request_id`` together with a boolean ``approve``
    is a resolution; anything else is a context request. Keys may be given
    in snake_case or camelCase.

    Raises:
        InvalidRequestError: If the payload does not validate.
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequestError(
            f"Request payload must be a mapping; got {type(payload).__name__}."
        )

    data = {key: value for key, value in payload.items() if key != "kind"}
    data["kind"] = _classify(payload)
    try:
        return _ENGINE_REQUEST.validate_python(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidRequestError(f"Invalid {data['kind']} request: {problems}") from exc
