"""Tests for error translation and the verbose / terse renderers."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

import jwt
import pytest
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from natours_api.errors import (
    GENERIC_MESSAGE,
    ErrorHandler,
    translate,
    validation_message,
)
from natours_api.exceptions import (
    AppError,
    CastError,
    NotFound,
    Throttled,
    UnhandledError,
    ValidationFailed,
)
from natours_api.schemas import TourCreate


def _integrity(message: str) -> IntegrityError:
    return IntegrityError("INSERT INTO tours ...", {}, sqlite3.IntegrityError(message))


def _schema_error() -> ValidationError:
    with pytest.raises(ValidationError) as exc_info:
        TourCreate.model_validate({"name": "short"})
    return exc_info.value


def _body(response: Any) -> dict[str, Any]:
    return json.loads(response.body)


class TestTranslate:
    def test_app_error_unchanged(self) -> None:
        error = NotFound("No document found with ID 'x'")
        assert translate(error) is error

    def test_cast_error(self) -> None:
        result = translate(UnhandledError("x", cause=CastError("id", "abc")))
        assert isinstance(result, ValidationFailed)
        assert result.message == "Invalid id: abc."

    def test_unique_violation_sqlite(self) -> None:
        cause = _integrity("UNIQUE constraint failed: tours.name")
        result = translate(UnhandledError("x", cause=cause))
        assert result.status_code == 400
        assert result.message == (
            "Duplicate field value: name. Please use another value!"
        )

    def test_unique_violation_postgres(self) -> None:
        cause = _integrity(
            'duplicate key value violates unique constraint "tours_name_key"\n'
            "DETAIL:  Key (name)=(The Forest Hiker) already exists."
        )
        result = translate(cause)
        assert result.message == (
            "Duplicate field value: The Forest Hiker. Please use another value!"
        )

    def test_missing_reference_sqlite(self) -> None:
        result = translate(_integrity("FOREIGN KEY constraint failed"))
        assert result.status_code == 400
        assert result.message == (
            "Invalid reference: the related document does not exist."
        )

    def test_missing_reference_postgres(self) -> None:
        cause = _integrity(
            'insert or update on table "reviews" violates foreign key constraint '
            '"reviews_tour_id_fkey"\n'
            "DETAIL:  Key (tour_id)=(5c88fa8c) is not present in table \"tours\"."
        )
        result = translate(UnhandledError("x", cause=cause))
        assert isinstance(result, ValidationFailed)
        assert result.message == "Invalid tour_id: 5c88fa8c."

    def test_other_integrity_error_not_operational(self) -> None:
        result = translate(_integrity("NOT NULL constraint failed: tours.price"))
        assert isinstance(result, UnhandledError)
        assert result.is_operational is False

    def test_schema_validation(self) -> None:
        result = translate(UnhandledError("x", cause=_schema_error()))
        assert result.status_code == 400
        assert result.message.startswith("Invalid input data. ")
        assert "name:" in result.message

    def test_request_validation(self) -> None:
        exc = RequestValidationError(
            [{"loc": ("body", "price"), "msg": "Field required", "type": "missing"}]
        )
        result = translate(exc)
        assert result.message == "Invalid input data. price: Field required"

    def test_expired_token(self) -> None:
        result = translate(jwt.ExpiredSignatureError("Signature has expired"))
        assert result.status_code == 401
        assert result.message == "Your token has expired! Please log in again."

    def test_invalid_token(self) -> None:
        result = translate(jwt.DecodeError("Not enough segments"))
        assert result.status_code == 401
        assert result.message == "Invalid token. Please log in again!"

    def test_unknown_route(self, make_request: Any) -> None:
        request = make_request(path="/api/v1/nowhere")
        result = translate(HTTPException(status_code=404), request)
        assert result.message == "Can't find /api/v1/nowhere on this server!"

    def test_other_http_exception_keeps_status(self) -> None:
        result = translate(HTTPException(status_code=405, detail="Method Not Allowed"))
        assert (result.status_code, result.message) == (405, "Method Not Allowed")

    def test_unexpected_exception_wrapped(self) -> None:
        cause = RuntimeError("disk full")
        result = translate(cause)
        assert isinstance(result, UnhandledError)
        assert result.cause is cause


class TestValidationMessage:
    def test_joins_messages(self) -> None:
        message = validation_message(
            [
                {"loc": ("body", "name"), "msg": "too short"},
                {"loc": (), "msg": "Passwords are not the same!"},
            ]
        )
        assert message == (
            "Invalid input data. name: too short. Passwords are not the same!"
        )


class TestVerboseRendering:
    def test_operational_error_details(
        self, make_request: Any, settings_factory: Any
    ) -> None:
        handler = ErrorHandler(settings_factory(environment="development"))
        response = handler.render(make_request(), NotFound("No document found"))
        body = _body(response)
        assert response.status_code == 404
        assert body["status"] == "fail"
        assert body["message"] == "No document found"
        assert body["error"]["type"] == "NotFound"
        assert body["error"]["status_code"] == 404
        assert body["error"]["is_operational"] is True
        assert isinstance(body["stack"], list)

    def test_unexpected_error_echoes_message(
        self, make_request: Any, settings_factory: Any
    ) -> None:
        handler = ErrorHandler(settings_factory(environment="development"))
        cause = RuntimeError("connection reset")
        response = handler.render(make_request(), UnhandledError("boom", cause=cause))
        body = _body(response)
        assert response.status_code == 500
        assert body["status"] == "error"
        assert body["error"]["type"] == "RuntimeError"
        assert body["error"]["detail"] == "connection reset"
        assert body["error"]["is_operational"] is False


class TestTerseRendering:
    def test_operational_error(self, make_request: Any, settings_factory: Any) -> None:
        handler = ErrorHandler(settings_factory(environment="production"))
        response = handler.render(make_request(), ValidationFailed("Invalid id: x."))
        assert response.status_code == 400
        assert _body(response) == {"status": "fail", "message": "Invalid id: x."}

    def test_never_echoes_unexpected_message(
        self,
        make_request: Any,
        settings_factory: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        handler = ErrorHandler(settings_factory(environment="production"))
        error = UnhandledError("secret dsn", cause=RuntimeError("secret dsn"))
        with caplog.at_level(logging.ERROR, logger="natours_api.errors"):
            response = handler.render(make_request(path="/api/v1/tours"), error)
        assert response.status_code == 500
        assert _body(response) == {"status": "error", "message": GENERIC_MESSAGE}
        assert "secret dsn" not in response.body.decode()
        assert "Unhandled error on GET /api/v1/tours" in caplog.text

    def test_operational_500_keeps_message(
        self, make_request: Any, settings_factory: Any
    ) -> None:
        handler = ErrorHandler(settings_factory(environment="production"))
        error = AppError("There was an error sending the email. Try again later!")
        body = _body(handler.render(make_request(), error))
        assert body == {
            "status": "error",
            "message": "There was an error sending the email. Try again later!",
        }

    def test_throttled_sets_retry_after(
        self, make_request: Any, settings_factory: Any
    ) -> None:
        handler = ErrorHandler(settings_factory(environment="production"))
        response = handler.render(make_request(), Throttled(retry_after=42))
        assert response.status_code == 429
        assert response.headers["retry-after"] == "42"
