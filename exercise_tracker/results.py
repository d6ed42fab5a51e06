"""Handler outcomes and their HTTP rendering.

Handlers return either ``Ok`` or ``SoftError``. Both render as HTTP 200;
clients tell them apart by the presence of an ``error`` key. Anything
that should produce a non-2xx status is raised instead and handled in
``exercise_tracker.errors``.
"""

from dataclasses import dataclass
from typing import Any, Union

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from exercise_tracker.models import SoftErrorResponse


@dataclass(frozen=True)
class Ok:
    payload: Any


@dataclass(frozen=True)
class SoftError:
    message: str


Result = Union[Ok, SoftError]


def render(result: Result) -> JSONResponse:
    """Serialize a handler result to a 200 JSON response."""
    if isinstance(result, SoftError):
        return JSONResponse(SoftErrorResponse(error=result.message).model_dump())
    return JSONResponse(jsonable_encoder(result.payload))
