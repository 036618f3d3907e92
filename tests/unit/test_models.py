"""
Unit tests for Pydantic models.

Tests field metadata, backend records, operation options and gateway
settings for validation and defaults.
"""

import pytest
from pydantic import ValidationError

from recordgate.core.models import (
    BackendRecord,
    ContainerEncoding,
    DatabaseSettings,
    FieldDescriptor,
    GatewaySettings,
    OperationOptions,
    ScriptHook,
    ScriptHooks,
)


class TestFieldDescriptor:
    """Tests for FieldDescriptor model"""

    def test_defaults(self):
        """Test that a bare name describes a plain text field"""
        descriptor = FieldDescriptor(name="email")
        assert descriptor.max_repeat == 1
        assert descriptor.result_type == "text"
        assert descriptor.auto_entered is False
        assert descriptor.is_global is False

    def test_global_alias(self):
        """Test that 'global' populates is_global"""
        assert FieldDescriptor.model_validate({"name": "rate", "global": True}).is_global is True
        assert FieldDescriptor(name="rate", is_global=True).is_global is True

    def test_meta_row(self):
        """Test the metaField row layout"""
        descriptor = FieldDescriptor(name="phone", max_repeat=3, auto_entered=True)
        assert descriptor.to_meta_row() == {
            "name": "phone",
            "autoEntered": 1,
            "global": 0,
            "maxRepeat": 3,
            "resultType": "text",
        }

    def test_invalid_result_type(self):
        """Test that unknown result types raise ValidationError"""
        with pytest.raises(ValidationError) as exc_info:
            FieldDescriptor(name="x", result_type="blob")
        assert "result_type" in str(exc_info.value)

    def test_max_repeat_must_be_positive(self):
        """Test that max_repeat below 1 raises ValidationError"""
        with pytest.raises(ValidationError):
            FieldDescriptor(name="x", max_repeat=0)

    def test_frozen(self):
        """Test that descriptors are immutable"""
        descriptor = FieldDescriptor(name="x")
        with pytest.raises(ValidationError):
            descriptor.max_repeat = 2


class TestBackendRecord:
    """Tests for BackendRecord model"""

    def test_get_value(self):
        """Test fetching repetitions, including unset ones"""
        record = BackendRecord(record_id="1", fields={"phone": ["a", None, "c"], "email": []})
        assert record.get_value("phone") == "a"
        assert record.get_value("phone", 2) == "c"
        assert record.get_value("phone", 5) is None
        assert record.get_value("email") is None
        assert record.get_value("missing") is None

    def test_field_names_keep_order(self):
        """Test that field order follows the backend"""
        record = BackendRecord(record_id="1", fields={"b": [1], "a": [2]})
        assert record.field_names() == ["b", "a"]

    def test_empty_record_id(self):
        """Test that an empty record id raises ValidationError"""
        with pytest.raises(ValidationError):
            BackendRecord(record_id="")


class TestOperationOptions:
    """Tests for OperationOptions and script hooks"""

    def test_defaults_describe_bulk_request(self):
        """Test the default switches"""
        options = OperationOptions()
        assert options.is_single is False
        assert options.suppress_data is False
        assert options.update_else_create is False
        assert options.update_append is False
        assert options.container_encoding is ContainerEncoding.DEFAULT

    def test_container_encoding_from_string(self):
        """Test that encodings validate from their wire names"""
        assert OperationOptions(container_encoding="base64").container_encoding is ContainerEncoding.BASE64
        with pytest.raises(ValidationError):
            OperationOptions(container_encoding="hex")

    def test_hooks_empty(self):
        """Test detecting hooks without scripts"""
        assert ScriptHooks().is_empty()
        assert not ScriptHooks(post=ScriptHook(script="audit")).is_empty()

    def test_hook_requires_script_name(self):
        """Test that an empty script name raises ValidationError"""
        with pytest.raises(ValidationError):
            ScriptHook(script="")


class TestGatewaySettings:
    """Tests for GatewaySettings model"""

    def test_defaults(self):
        """Test settings with no configuration at all"""
        settings = GatewaySettings()
        assert settings.diagnostics is False
        assert settings.default_database == "default"
        assert settings.database == DatabaseSettings()
        assert settings.layouts == {}

    def test_nested_validation(self):
        """Test validating layouts and operation defaults from plain data"""
        settings = GatewaySettings.model_validate({
            "operation_defaults": {"update_else_create": True},
            "layouts": {"contacts": [{"name": "email"}, {"name": "phone", "max_repeat": 3}]},
        })
        assert settings.operation_defaults.update_else_create is True
        assert settings.layouts["contacts"][1].max_repeat == 3

    def test_invalid_port(self):
        """Test that out-of-range ports raise ValidationError"""
        with pytest.raises(ValidationError):
            DatabaseSettings(port=70000)
