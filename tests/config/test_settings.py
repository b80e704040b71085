"""
Tests for settings loading, process bootstrap and error responses.

Covers:
- defaults.yaml, file overlay and environment overrides
- Every validation failure of parse_settings
- get_active_settings logging
- bootstrap wiring of settings into the engine
- to_error_response status codes and bodies
"""

import importlib

import pytest
from sqlalchemy import create_engine

from admissions_config import AdmissionsSettings, get_active_settings, load_settings, parse_settings
from admissions_kernel.exceptions import (
    AdmissionNotFoundError,
    DuplicateTransactionRefError,
    InvalidAmountError,
    ServiceChargeEditForbiddenError,
)
from admissions_services import bootstrap, to_error_response

bootstrap_module = importlib.import_module("admissions_services.bootstrap")


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings == AdmissionsSettings()
        assert settings.cash_payment_mode == "Cash"
        assert not settings.is_postgres

    def test_file_overlay(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text("max_page_limit: 50\necho_sql: true\n")
        settings = load_settings(path, environ={})
        assert settings.max_page_limit == 50
        assert settings.echo_sql is True
        assert settings.pool_size == 5

    def test_environment_wins_over_file(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text("log_level: DEBUG\n")
        settings = load_settings(
            path,
            environ={
                "ADMISSIONS_LOG_LEVEL": "error",
                "ADMISSIONS_DATABASE_URL": "postgresql://u:p@db/admissions",
                "ADMISSIONS_MAX_RECOMPUTE_ATTEMPTS": "3",
            },
        )
        assert settings.log_level == "ERROR"
        assert settings.is_postgres
        assert settings.max_recompute_attempts == 3

    def test_empty_env_value_ignored(self):
        settings = load_settings(environ={"ADMISSIONS_LOG_LEVEL": ""})
        assert settings.log_level == "INFO"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yaml", environ={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_settings(path, environ={})

    def test_empty_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path, environ={}) == AdmissionsSettings()


class TestParseSettings:
    @pytest.mark.parametrize(
        "data, message",
        [
            ({"colour": "blue"}, "Unknown settings keys: colour"),
            ({"database_url": "  "}, "database_url must not be empty"),
            ({"echo_sql": "sometimes"}, "echo_sql must be a boolean"),
            ({"pool_size": 0}, "pool_size must be >= 1"),
            ({"max_overflow": -1}, "max_overflow must be >= 0"),
            ({"max_recompute_attempts": "many"}, "must be an integer"),
            ({"default_page_limit": True}, "must be an integer"),
            ({"log_level": "CHATTY"}, "log_level must be one of"),
            ({"cash_payment_mode": "Barter"}, "cash_payment_mode is not a payment mode"),
            (
                {"default_page_limit": 50, "max_page_limit": 20},
                "default_page_limit must not exceed max_page_limit",
            ),
        ],
    )
    def test_invalid(self, data, message):
        with pytest.raises(ValueError, match=message):
            parse_settings(data)

    def test_coercions(self):
        settings = parse_settings(
            {"pool_size": "8", "echo_sql": "yes", "log_level": "debug", "cash_payment_mode": "UPI"}
        )
        assert settings.pool_size == 8
        assert settings.echo_sql is True
        assert settings.log_level == "DEBUG"
        assert settings.cash_payment_mode == "UPI"


class TestGetActiveSettings:
    def test_logs_settings_loaded(self, tmp_path, monkeypatch, captured_logs):
        for var in ("ADMISSIONS_DATABASE_URL", "ADMISSIONS_LOG_LEVEL", "ADMISSIONS_MAX_RECOMPUTE_ATTEMPTS"):
            monkeypatch.delenv(var, raising=False)
        path = tmp_path / "ledger.yaml"
        path.write_text("max_recompute_attempts: 7\n")

        settings = get_active_settings(path)

        assert settings.max_recompute_attempts == 7
        record = next(r for r in captured_logs() if r["message"] == "settings_loaded")
        assert record["settings_path"] == str(path)
        assert record["max_recompute_attempts"] == 7
        assert record["database_backend"] == "other"


class TestBootstrap:
    def test_settings_flow_into_engine(self, monkeypatch, captured_logs):
        calls = {}
        engine = create_engine("sqlite://")

        def fake_init(url, **kwargs):
            calls["url"] = url
            calls["kwargs"] = kwargs
            return engine

        monkeypatch.setattr(bootstrap_module, "init_engine_from_url", fake_init)
        monkeypatch.setattr(bootstrap_module, "create_tables", lambda: calls.setdefault("tables", True))

        settings = AdmissionsSettings(database_url="sqlite:///ledger.db", echo_sql=True, pool_size=3)
        result = bootstrap(settings, create_schema=True)

        assert result is engine
        assert calls["url"] == "sqlite:///ledger.db"
        assert calls["kwargs"] == {"echo": True, "pool_size": 3, "max_overflow": 10}
        assert calls["tables"] is True
        record = next(r for r in captured_logs() if r["message"] == "ledger_bootstrapped")
        assert record["dialect"] == "sqlite"
        assert record["create_schema"] is True
        engine.dispose()

    def test_schema_not_created_by_default(self, monkeypatch):
        engine = create_engine("sqlite://")
        created = []
        monkeypatch.setattr(bootstrap_module, "init_engine_from_url", lambda url, **kw: engine)
        monkeypatch.setattr(bootstrap_module, "create_tables", lambda: created.append(True))

        bootstrap(AdmissionsSettings())

        assert created == []
        engine.dispose()


class TestErrorResponse:
    def test_not_found(self):
        admission_id = "5b0e7c1e-0000-0000-0000-000000000001"
        body, status = to_error_response(AdmissionNotFoundError(admission_id))
        assert status == 404
        assert body["success"] is False
        assert body["code"] == "ADMISSION_NOT_FOUND"
        assert "fieldErrors" not in body

    def test_validation_carries_field_errors(self):
        body, status = to_error_response(InvalidAmountError("amount", 0))
        assert status == 422
        assert body["code"] == "INVALID_AMOUNT"
        assert body["fieldErrors"] == [
            {"field": "amount", "message": "Amount must be greater than 0"}
        ]

    def test_conflict(self):
        body, status = to_error_response(DuplicateTransactionRefError("UTR-1"))
        assert status == 409
        assert body["code"] == "DUPLICATE_TRANSACTION_REF"

    def test_forbidden(self):
        _, status = to_error_response(ServiceChargeEditForbiddenError("staff"))
        assert status == 403

    def test_unknown_error_is_internal(self, captured_logs):
        body, status = to_error_response(RuntimeError("db on fire"))
        assert status == 500
        assert body == {
            "success": False,
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
        }
        assert any(r["message"] == "unhandled_error" for r in captured_logs())
