"""Tests for shared configuration, logging and schema helpers."""

import pytest

from shared.config import ConversationSettings, Settings
from shared.logging import redact_sensitive
from shared.models import MessageRole, ResponseEnvelope
from shared.schema import validate_schema


class TestSettings:
    """Tests for settings loading."""

    def test_defaults(self):
        """Test the conversation engine defaults."""
        settings = ConversationSettings()

        assert settings.rotation_threshold == 50
        assert settings.poll_interval_seconds == 1.5
        assert settings.run_timeout_seconds == 90.0
        assert settings.max_upload_bytes == 25 * 1024 * 1024
        assert settings.upload_retry_attempts == 3

    def test_from_yaml(self, tmp_path):
        """Test nested settings are read from YAML."""
        path = tmp_path / "settings.yaml"
        path.write_text(
            "environment: production\n"
            "provider:\n"
            "  provider: mock\n"
            "conversation:\n"
            "  rotation_threshold: 10\n"
        )

        settings = Settings.from_yaml(path)

        assert settings.environment == "production"
        assert settings.provider.provider == "mock"
        assert settings.conversation.rotation_threshold == 10
        assert settings.conversation.poll_interval_seconds == 1.5

    def test_missing_yaml_uses_defaults(self, tmp_path):
        """Test a missing file falls back to defaults."""
        settings = Settings.from_yaml(tmp_path / "absent.yaml")
        assert settings.conversation.rotation_threshold == 50

    def test_env_override(self, monkeypatch):
        """Test environment variables override defaults."""
        monkeypatch.setenv("CONVERSATION_RUN_TIMEOUT_SECONDS", "30")

        assert ConversationSettings().run_timeout_seconds == 30.0

    def test_invalid_value(self):
        """Test non-positive thresholds are rejected."""
        with pytest.raises(ValueError):
            ConversationSettings(rotation_threshold=0)


class TestLogging:
    """Tests for logging processors."""

    def test_redacts_credentials(self):
        """Test credential-like keys never reach the output."""
        event = redact_sensitive(None, "info", {
            "event": "Client configured",
            "api_key": "sk-secret",
            "Authorization": "Bearer x",
            "thread_id": "thread_1",
        })

        assert event["api_key"] == "[REDACTED]"
        assert event["Authorization"] == "[REDACTED]"
        assert event["thread_id"] == "thread_1"


class TestResponseEnvelope:
    """Tests for reply envelope serialization."""

    def make_envelope(self, **rotation):
        return ResponseEnvelope(
            id="msg_1",
            role=MessageRole.ASSISTANT,
            content="answer",
            created_at=1_700_000_000,
            run_id="run_1",
            **rotation,
        )

    def test_rotation_fields_absent_without_rotation(self):
        """Test unset rotation fields are left out of every serialization."""
        envelope = self.make_envelope()

        assert "threadRotated" not in envelope.model_dump(by_alias=True)
        assert "new_thread_id" not in envelope.model_dump()
        assert "threadRotated" not in envelope.model_dump_json(by_alias=True)

    def test_rotation_fields_present_after_rotation(self):
        """Test a rotation is reported in the serialized envelope."""
        envelope = self.make_envelope(thread_rotated=True, new_thread_id="thread_9")

        data = envelope.model_dump(by_alias=True)

        assert data["threadRotated"] is True
        assert data["newThreadId"] == "thread_9"
        assert "threadRotated" not in envelope.without_rotation().model_dump(by_alias=True)


class TestValidateSchema:
    """Tests for validate_schema."""

    SCHEMA = {
        "type": "object",
        "required": ["items"],
        "properties": {"items": {"type": "array", "items": {"type": "string"}}},
    }

    def test_valid(self):
        """Test a valid payload."""
        assert validate_schema({"items": ["a"]}, self.SCHEMA) == (True, [])

    def test_errors_name_the_path(self):
        """Test error messages are prefixed with the failing path."""
        valid, errors = validate_schema({"items": ["a", 2]}, self.SCHEMA)

        assert valid is False
        assert errors[0].startswith("items.1:")

    def test_missing_field(self):
        """Test a missing required field is reported."""
        valid, errors = validate_schema({}, self.SCHEMA)

        assert valid is False
        assert "'items' is a required property" in errors[0]
