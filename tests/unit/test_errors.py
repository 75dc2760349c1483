"""Result values, the error taxonomy and boundary mappers."""
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from core.errors import (
    DatabaseErrorMapper,
    EngineErrorMapper,
    ErrorCode,
    Ok,
    not_found,
    version_conflict,
)


class TestResult:
    def test_ok_chain(self):
        result = Ok(2).map(lambda v: v * 3).and_then(lambda v: Ok(v + 1))
        assert result.unwrap() == 7

    def test_err_short_circuits(self):
        err = not_found("ItemState", "u/i")
        assert err.map(lambda v: v * 3) is err
        assert err.and_then(lambda v: Ok(v)) is err
        assert err.unwrap_or("fallback") == "fallback"
        with pytest.raises(ValueError):
            err.unwrap()

    def test_pattern_matching(self):
        match version_conflict("ItemState", "u/i", 2, 3):
            case Ok(_):
                pytest.fail("expected a conflict")
            case error:
                assert error.unwrap_err().metadata["expected_version"] == 2


class TestErrorCode:
    @pytest.mark.parametrize("code,status", [
        (ErrorCode.E2002_INVALID_FORMAT, 400),
        (ErrorCode.E4010_NOT_FOUND, 404),
        (ErrorCode.E4011_DUPLICATE_KEY, 409),
        (ErrorCode.E4003_TRANSACTION_FAILED, 503),
        (ErrorCode.E5006_VERSION_CONFLICT, 409),
        (ErrorCode.E5004_INVARIANT_VIOLATED, 500),
        (ErrorCode.E9001_UNEXPECTED_ERROR, 500),
    ])
    def test_http_status(self, code, status):
        assert code.http_status == status

    def test_to_dict(self):
        error = not_found("ItemState", "u/i", origin="test").unwrap_err()
        body = error.to_dict()["error"]
        assert body["code"] == "E4010_NOT_FOUND"
        assert body["category"] == "not_found"


class TestMappers:
    def test_unique_violation(self):
        exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: item_states.item_id"))
        assert DatabaseErrorMapper().map_exception(exc).code is ErrorCode.E4011_DUPLICATE_KEY

    def test_integrity_error_while_writing_is_a_failed_transaction(self):
        exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: review_history.position"))
        error = EngineErrorMapper("outcomes").map_exception(exc, during_write=True)
        assert error.code is ErrorCode.E4003_TRANSACTION_FAILED
        assert error.code.http_status == 503

    def test_operational_error(self):
        exc = OperationalError("UPDATE", {}, Exception("database is locked"))
        assert DatabaseErrorMapper().map_exception(exc).code is ErrorCode.E4003_TRANSACTION_FAILED

    def test_engine_mapper_delegates_database_errors(self):
        exc = OperationalError("SELECT", {}, Exception("unable to connect"))
        error = EngineErrorMapper("outcomes").map_exception(exc)
        assert error.code is ErrorCode.E4001_CONNECTION_FAILED
        assert error.context.origin == "engine.outcomes"

    def test_engine_mapper_wraps_anything_else(self):
        error = EngineErrorMapper("sessions").map_exception(KeyError("x"))
        assert error.code is ErrorCode.E9001_UNEXPECTED_ERROR
        assert isinstance(error.cause, KeyError)
