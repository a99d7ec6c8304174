"""
Tests for settings loading and structured logging setup.

## Test Perspectives Table

| Case ID | Input / Precondition | Perspective (Equivalence / Boundary) | Expected Result | Notes |
|---------|---------------------|---------------------------------------|-----------------|-------|
| TC-CFG-N-01 | Project config directory | Equivalence – normal | Values from settings.yaml | Base layer |
| TC-CFG-N-02 | local.yaml settings section | Equivalence – normal | Deep-merged over base | Local layer |
| TC-CFG-N-03 | Environment overrides | Equivalence – normal | Typed values win | Env layer |
| TC-CFG-N-04 | Nested dict merge | Equivalence – normal | Siblings preserved | _deep_merge |
| TC-CFG-B-01 | Empty config directory | Boundary – empty | Model defaults | Defaults |
| TC-CFG-B-02 | Env value types | Boundary | Coerced by field type | Env layer |
| TC-LOG-N-01 | configure_logging with file | Equivalence – normal | JSON lines written | Logging |
| TC-LOG-N-02 | LogContext | Equivalence – normal | Bound then unbound | Context vars |
"""

import json
import logging
from pathlib import Path

import pytest
import structlog

from devtools_har.utils.config import (
    _deep_merge,
    get_project_root,
    get_settings,
)
from devtools_har.utils.logging import LogContext, configure_logging, get_logger

pytestmark = pytest.mark.unit


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Empty config directory selected through the environment."""
    monkeypatch.setenv("DEVTOOLS_HAR_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("DEVTOOLS_HAR_GENERAL__LOG_LEVEL", raising=False)
    return tmp_path


# =============================================================================
# Settings
# =============================================================================


class TestSettingsLayers:
    """Tests for YAML, local, and environment layering."""

    def test_project_settings(self) -> None:
        """Test the repository settings.yaml is loaded (TC-CFG-N-01)."""
        # When: Loading with the test environment's config dir
        settings = get_settings()

        # Then: Values from config/settings.yaml
        assert settings.har.creator_name == "devtools-har"
        assert settings.recorder.fetch_response_bodies is True
        assert settings.storage.archive_dir == "data/archive"
        assert (get_project_root() / "config" / "settings.yaml").exists()

    def test_local_overrides(self, config_dir: Path) -> None:
        """Test local.yaml is merged over settings.yaml (TC-CFG-N-02)."""
        # Given: A base file and a local override of one key
        (config_dir / "settings.yaml").write_text(
            "har:\n  mimic_chrome_har: false\n  creator_name: base\n", encoding="utf-8"
        )
        (config_dir / "local.yaml").write_text(
            "settings:\n  har:\n    mimic_chrome_har: true\n", encoding="utf-8"
        )

        # When: Loading
        settings = get_settings()

        # Then: Override applied, sibling kept
        assert settings.har.mimic_chrome_har is True
        assert settings.har.creator_name == "base"

    def test_env_overrides(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment variables win over files (TC-CFG-N-03)."""
        # Given: A file value and environment overrides
        (config_dir / "settings.yaml").write_text("recorder:\n  response_body_timeout: 10.0\n", encoding="utf-8")
        monkeypatch.setenv("DEVTOOLS_HAR_RECORDER__RESPONSE_BODY_TIMEOUT", "2.5")
        monkeypatch.setenv("DEVTOOLS_HAR_GENERAL__LOG_LEVEL", "WARNING")

        # When: Loading
        settings = get_settings()

        # Then: Environment values are used
        assert settings.recorder.response_body_timeout == 2.5
        assert settings.general.log_level == "WARNING"

    def test_empty_config_dir(self, config_dir: Path) -> None:
        """Test defaults without any file (TC-CFG-B-01)."""
        # When: Loading from an empty directory
        settings = get_settings()

        # Then: Model defaults
        assert settings.general.version == "0.1.0"
        assert settings.har.include_text_from_response_body is False
        assert settings.recorder.response_body_timeout == 10.0


class TestConfigHelpers:
    """Tests for merge helpers and environment typing."""

    def test_deep_merge(self) -> None:
        """Test nested merge keeps siblings (TC-CFG-N-04)."""
        # When: Merging
        merged = _deep_merge({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}, "c": 4})

        # Then
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}

    def test_env_values_coerced_by_field_type(self, config_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test environment strings take the type of their field (TC-CFG-B-02)."""
        # Given: Overrides for str, bool and float fields
        monkeypatch.setenv("DEVTOOLS_HAR_GENERAL__VERSION", "1.0")
        monkeypatch.setenv("DEVTOOLS_HAR_HAR__MIMIC_CHROME_HAR", "FALSE")
        monkeypatch.setenv("DEVTOOLS_HAR_RECORDER__RESPONSE_BODY_TIMEOUT", "5")

        # When: Loading
        settings = get_settings()

        # Then: A numeric-looking version stays a string
        assert settings.general.version == "1.0"
        assert settings.har.mimic_chrome_har is False
        assert settings.recorder.response_body_timeout == 5.0


# =============================================================================
# Logging
# =============================================================================


class TestLogging:
    """Tests for structlog configuration."""

    def test_configure_logging_writes_json(self, tmp_path: Path) -> None:
        """Test JSON log lines reach the log file (TC-LOG-N-01)."""
        # Given: Logging configured to a temporary file
        log_file = tmp_path / "test.log"
        root = logging.getLogger()
        previous_handlers = root.handlers[:]
        root.handlers = []
        try:
            configure_logging(log_level="INFO", log_file=log_file)

            # When: Logging an event with context
            with LogContext(capture_url="https://example.com/"):
                get_logger("devtools_har.test").info("HAR saved", entries=3)
            for handler in root.handlers:
                handler.flush()

            # Then: One JSON object with the bound context
            record = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
            assert record["event"] == "HAR saved"
            assert record["entries"] == 3
            assert record["capture_url"] == "https://example.com/"
            assert record["level"] == "INFO"
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = previous_handlers
            structlog.reset_defaults()

    def test_log_context_unbinds(self) -> None:
        """Test context variables are removed on exit (TC-LOG-N-02)."""
        # When: Entering and leaving a context
        with LogContext(request_id="abc"):
            inside = structlog.contextvars.get_contextvars()
        outside = structlog.contextvars.get_contextvars()

        # Then
        assert inside["request_id"] == "abc"
        assert "request_id" not in outside
