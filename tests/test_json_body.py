from __future__ import annotations

import json
import logging
from typing import Optional

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from webtools.core.middleware import register
from webtools.services.json_body import decode_json, error_json, read_json, validate_json, write_json


class Signup(BaseModel):
    email: str
    age: int
    nick: Optional[str] = Field(default=None, alias="nickname")


def _detail(body, **kwargs):
    with pytest.raises(HTTPException) as exc_info:
        decode_json(body, **kwargs)
    return exc_info.value.status_code, exc_info.value.detail


def test_decode_json_returns_plain_value():
    assert decode_json(b'{"a": [1, 2]}') == {"a": [1, 2]}
    assert decode_json('"text"') == "text"


@pytest.mark.parametrize(
    "body, detail",
    [
        (b"", "body must not be empty"),
        (b"  \n", "body must not be empty"),
        (b'{"a": 1}{"b": 2}', "body must contain only one JSON value"),
        (b'{"a": 1', "body contains badly-formed JSON"),
        (b'{"a": x}', "body contains badly-formed JSON (at character 6)"),
        (b"\xff\xfe", "body contains badly-formed JSON"),
        (b'{"a": "abc', "body contains badly-formed JSON"),
        (b'{"a', "body contains badly-formed JSON"),
        (b"NaN", "body contains badly-formed JSON"),
        (b'{"a": [1, -Infinity]}', "body contains badly-formed JSON"),
    ],
)
def test_decode_errors_are_classified(body, detail):
    assert _detail(body) == (400, detail)


def test_body_over_ceiling_is_rejected():
    assert _detail(b"[1, 2, 3]", max_bytes=3) == (413, "body must not be larger than 3 bytes")


def test_decode_into_model():
    signup = decode_json(b'{"email": "a@b.c", "age": 30, "nickname": "al"}', model=Signup)
    assert isinstance(signup, Signup)
    assert signup.age == 30
    assert signup.nick == "al"


def test_unknown_fields_allowed_by_default():
    signup = decode_json(b'{"email": "a@b.c", "age": 30, "extra": true}', model=Signup)
    assert signup.email == "a@b.c"


def test_unknown_fields_rejected_when_disallowed():
    status, detail = _detail(
        b'{"email": "a@b.c", "age": 30, "extra": true}',
        model=Signup,
        allow_unknown_fields=False,
    )
    assert status == 400
    assert detail == 'body contains unknown key "extra"'


def test_wrong_type_is_reported_by_field():
    assert _detail(b'{"email": "a@b.c", "age": "old"}', model=Signup) == (
        400,
        'body contains incorrect JSON type for field "age"',
    )


def test_missing_field_is_reported():
    assert _detail(b'{"email": "a@b.c"}', model=Signup) == (400, 'body is missing required field "age"')


def test_model_requires_object():
    assert _detail(b"[1, 2]", model=Signup) == (400, "body must be a JSON object")


def test_validate_json():
    assert validate_json(b" [1] ") is True
    with pytest.raises(HTTPException):
        validate_json(b"")


def test_error_json_envelopes():
    response = error_json(ValueError("boom"))
    assert response.status_code == 400
    assert json.loads(response.body) == {"error": True, "message": "boom"}

    response = error_json(HTTPException(status_code=404, detail="nope"), status_code=400)
    assert response.status_code == 404
    assert json.loads(response.body) == {"error": True, "message": "nope"}


def test_write_json_dumps_models_by_alias():
    response = write_json(Signup(email="a@b.c", age=1, nickname="al"), status_code=201, headers={"X-Test": "1"})
    assert response.status_code == 201
    assert response.headers["x-test"] == "1"
    assert json.loads(response.body) == {"email": "a@b.c", "age": 1, "nickname": "al"}


@pytest.fixture()
def client():
    app = FastAPI()
    register(app)

    @app.post("/signup")
    async def signup(request: Request):
        data = await read_json(request, model=Signup, allow_unknown_fields=False, max_bytes=64)
        return write_json(data, status_code=201)

    return TestClient(app)


def test_read_json_accepts_valid_body(client):
    response = client.post(
        "/signup",
        content=b'{"email": "a@b.c", "age": 3}',
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 201
    assert response.json() == {"email": "a@b.c", "age": 3, "nickname": None}


def test_read_json_rejects_oversized_body(client):
    response = client.post("/signup", content=b"[" + b"1," * 100 + b"1]")
    assert response.status_code == 413
    assert response.json() == {"error": True, "message": "body must not be larger than 64 bytes"}


def test_read_json_reports_unknown_key(client):
    response = client.post("/signup", content=b'{"email": "a@b.c", "age": 3, "admin": true}')
    assert response.status_code == 400
    assert response.json()["message"] == 'body contains unknown key "admin"'


def test_rejections_are_logged_as_warnings(caplog):
    with caplog.at_level(logging.WARNING, logger="webtools.services.json_body"):
        _detail(b'{"email": "a@b.c", "age": 30, "extra": true}', model=Signup, allow_unknown_fields=False)

    assert 'body contains unknown key "extra"' in caplog.text


def test_read_json_aborts_streamed_body_over_ceiling(client):
    def chunks():
        yield b"["
        for _ in range(100):
            yield b"1,"
        yield b"1]"

    # A generator body is sent chunked, without a Content-Length header
    response = client.post("/signup", content=chunks())

    assert response.status_code == 413
    assert response.json() == {"error": True, "message": "body must not be larger than 64 bytes"}
