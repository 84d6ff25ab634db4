"""Decoding and validation of JSON request bodies.

Every failure is raised as an HTTPException whose detail is safe to show to
the client; the raw decoder and validator errors are only logged.
"""

import json
import logging
from typing import Any, Mapping, Optional, Type, Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from ..core.config import Config


logger = logging.getLogger(__name__)


class _NonFiniteNumber(ValueError):
    pass


def _reject_constant(name: str):
    raise _NonFiniteNumber(name)


def _bad_request(detail: str) -> HTTPException:
    logger.warning(f"Rejected JSON body: {detail}")
    return HTTPException(status_code=400, detail=detail)


def _too_large(max_bytes: int) -> HTTPException:
    logger.warning(f"Rejected JSON body larger than {max_bytes} bytes")
    return HTTPException(status_code=413, detail=f"body must not be larger than {max_bytes} bytes")


def _field_path(loc) -> str:
    return ".".join(str(part) for part in loc)


def _known_fields(model: Type[BaseModel]) -> set:
    known = set()
    for name, field in model.model_fields.items():
        known.add(name)
        if field.alias:
            known.add(field.alias)
        if isinstance(field.validation_alias, str):
            known.add(field.validation_alias)
    return known


def _parse(text: str) -> Any:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except _NonFiniteNumber as e:
        logger.debug(f"JSON body contains non-finite number {e}")
        raise _bad_request("body contains badly-formed JSON")
    except json.JSONDecodeError as e:
        logger.debug(f"JSON decode failed: {e}")
        if e.msg == "Extra data":
            raise _bad_request("body must contain only one JSON value")
        # Unterminated strings report where the string starts
        if e.pos >= len(text.rstrip()) or e.msg.startswith("Unterminated string"):
            raise _bad_request("body contains badly-formed JSON")
        raise _bad_request(f"body contains badly-formed JSON (at character {e.pos})")


def _validate_model(data: Any, model: Type[BaseModel], allow_unknown_fields: bool) -> BaseModel:
    if not isinstance(data, dict):
        raise _bad_request("body must be a JSON object")

    if not allow_unknown_fields:
        known = _known_fields(model)
        for key in data:
            if key not in known:
                raise _bad_request(f'body contains unknown key "{key}"')

    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.debug(f"JSON body failed validation for {model.__name__}: {e}")
        error = e.errors()[0]
        field = _field_path(error.get("loc", ()))
        kind = error.get("type", "")
        if kind == "missing":
            raise _bad_request(f'body is missing required field "{field}"')
        if kind == "extra_forbidden":
            raise _bad_request(f'body contains unknown key "{field}"')
        if kind.endswith("_type") or kind.endswith("_parsing"):
            raise _bad_request(f'body contains incorrect JSON type for field "{field}"')
        if field:
            raise _bad_request(f'invalid value for field "{field}": {error.get("msg", "invalid value")}')
        raise _bad_request(error.get("msg", "invalid JSON body"))


def decode_json(
    body: Union[bytes, str],
    model: Optional[Type[BaseModel]] = None,
    allow_unknown_fields: bool = True,
    max_bytes: Optional[int] = None,
) -> Any:
    if max_bytes is None:
        max_bytes = Config.MAX_JSON_SIZE

    raw = body.encode("utf-8") if isinstance(body, str) else body
    if max_bytes > 0 and len(raw) > max_bytes:
        raise _too_large(max_bytes)

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise _bad_request("body contains badly-formed JSON")

    if not text.strip():
        raise _bad_request("body must not be empty")

    data = _parse(text)
    if model is None:
        return data
    return _validate_model(data, model, allow_unknown_fields)


def validate_json(body: Union[bytes, str]) -> bool:
    """Check that `body` holds exactly one JSON value, without size limits."""
    decode_json(body, max_bytes=0)
    return True


async def read_json(
    request: Request,
    model: Optional[Type[BaseModel]] = None,
    allow_unknown_fields: bool = True,
    max_bytes: Optional[int] = None,
) -> Any:
    if max_bytes is None:
        max_bytes = Config.MAX_JSON_SIZE

    declared = request.headers.get("content-length")
    if max_bytes > 0 and declared and declared.isdigit() and int(declared) > max_bytes:
        raise _too_large(max_bytes)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if max_bytes > 0 and len(body) > max_bytes:
            raise _too_large(max_bytes)

    return decode_json(bytes(body), model=model, allow_unknown_fields=allow_unknown_fields, max_bytes=max_bytes)


def write_json(data: Any, status_code: int = 200, headers: Optional[Mapping[str, str]] = None) -> JSONResponse:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=status_code, content=data, headers=dict(headers) if headers else None)


def error_json(error: Union[Exception, str], status_code: int = 400) -> JSONResponse:
    if isinstance(error, HTTPException):
        status_code = error.status_code
        message = error.detail
    else:
        message = str(error)
    return write_json({"error": True, "message": message}, status_code=status_code)
