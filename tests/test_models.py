"""
Tests for data models: modes, resource specs, extension parsing and results.
"""

import pytest

from dbcontainers.models import (
    DatabaseResourceSpec,
    ProcessResult,
    ProvisionOutcome,
    StartMode,
    StopMode,
    UnexpectedOutputError,
    parse_extensions,
)


class TestModes:
    """Test start and stop mode parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("create", StartMode.CREATE),
            (" DropCreate ", StartMode.DROP_CREATE),
            ("container", StartMode.CONTAINER_ONLY),
            ("bogus", StartMode.CREATE),
            (None, StartMode.CREATE),
            (StartMode.DROP_CREATE, StartMode.DROP_CREATE),
        ],
    )
    def test_start_mode_parse(self, value, expected):
        assert StartMode.parse(value) is expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("stop", StopMode.STOP_ONLY),
            ("REMOVE", StopMode.REMOVE),
            ("", StopMode.STOP_ONLY),
            (StopMode.REMOVE, StopMode.REMOVE),
        ],
    )
    def test_stop_mode_parse(self, value, expected):
        assert StopMode.parse(value) is expected


class TestExtensionParsing:
    """Test comma separated extension lists."""

    def test_blank_entries_are_dropped_in_order(self):
        assert parse_extensions(" hstore, , pgcrypto ") == ["hstore", "pgcrypto"]

    @pytest.mark.parametrize("value", ["", None, " , ,"])
    def test_empty_lists(self, value):
        assert parse_extensions(value) == []

    def test_spec_extension_list(self):
        spec = DatabaseResourceSpec(db_name="db", extensions="uuid-ossp,hstore")
        assert spec.extension_list() == ["uuid-ossp", "hstore"]


class TestDatabaseResourceSpec:
    """Test resource spec helpers."""

    def test_unset_resources_are_not_defined(self):
        spec = DatabaseResourceSpec(db_name="  ", db_user=None)
        assert not spec.database_defined
        assert not spec.user_defined

    def test_no_extra_without_extra_db(self):
        assert DatabaseResourceSpec(db_name="main").extra() is None

    def test_extra_defaults_to_main_user(self):
        spec = DatabaseResourceSpec(
            db_name="main",
            db_user="main_user",
            db_password="pw",
            admin_user="postgres",
            admin_password="admin",
            extensions="hstore",
            extra_db="extra",
        )
        extra = spec.extra()

        assert extra.db_name == "extra"
        assert extra.db_user == "main_user"
        assert extra.db_password == "pw"
        assert extra.admin_password == "admin"
        assert extra.extension_list() == []

    def test_extra_with_own_user(self):
        spec = DatabaseResourceSpec(
            db_name="main",
            db_user="main_user",
            extra_db="extra",
            extra_db_user="extra_user",
            extra_db_password="extra_pw",
        )
        extra = spec.extra()

        assert extra.db_user == "extra_user"
        assert extra.db_password == "extra_pw"

    def test_spec_is_immutable(self):
        spec = DatabaseResourceSpec(db_name="main")
        with pytest.raises(AttributeError):
            spec.db_name = "other"


class TestResults:
    """Test process results and outcomes."""

    def test_output_lines_strip_blanks(self):
        result = ProcessResult(command=["psql"], returncode=0, stdout_lines=[" a ", "", "b"])
        assert result.output_lines() == ["a", "b"]
        assert result.success

    def test_failed_result_summary(self):
        result = ProcessResult(command=["docker", "run"], returncode=1)
        assert not result.success
        assert "exit 1" in result.get_summary()

    def test_outcome_ok(self):
        assert ProvisionOutcome.CREATED.ok
        assert ProvisionOutcome.SKIPPED.ok
        assert ProvisionOutcome.DROPPED.ok
        assert not ProvisionOutcome.FAILED.ok

    def test_unexpected_output_error_includes_output(self):
        result = ProcessResult(command=["psql"], returncode=0, stdout_lines=["garbage"])
        error = UnexpectedOutputError("Unexpected psql output", result)

        assert error.result is result
        assert "garbage" in str(error)
