"""Tests for provisioning document validation and models."""

import json

import pytest

from camscout_cli.provisioning import (
    CameraSpec,
    ProvisionInput,
    ProvisionInputError,
    RecorderSpec,
    format_validation_errors,
    load_document,
    validate_provision_document,
)

VALID = {
    "nvrs": [
        {"name": "lobby-nvr", "host": "192.168.1.5", "username": "admin", "password": "pw", "vendor": "dahua"},
    ],
    "cameras": [
        {"name": "Entrance", "nvrRef": "lobby-nvr", "channelNo": 1},
    ],
    "deploy": {"mode": "local", "local": {"path": "/etc/mediamtx/mediamtx.yml"}},
}


class TestValidateProvisionDocument:
    """Tests for schema validation."""

    def test_valid_document(self):
        """A well-formed document has no errors."""
        assert validate_provision_document(VALID) == ([], [])

    def test_empty_document_is_valid(self):
        """Every top-level key is optional."""
        assert validate_provision_document({}) == ([], [])

    def test_missing_required_field(self):
        """Missing recorder fields are reported with a suggestion."""
        doc = {"nvrs": [{"name": "a", "host": "10.0.0.1", "username": "admin"}]}
        errors, suggestions = validate_provision_document(doc)
        assert any("password" in e for e in errors)
        assert "Add required field: nvrs.0.password" in suggestions

    def test_bad_enum_and_port(self):
        """All violations are reported together."""
        doc = {
            "nvrs": [{"name": "a", "host": "h", "username": "u", "password": "p", "protocol": "SIP", "rtspPort": 70000}],
            "cameras": [{"name": "c", "streamProfile": "hd"}],
        }
        errors, suggestions = validate_provision_document(doc)
        assert len(errors) == 3
        assert any(s.startswith("Set nvrs.0.protocol to one of") for s in suggestions)
        assert "Set nvrs.0.rtspPort to at most 65535" in suggestions
        assert any("cameras.0.streamProfile" in s for s in suggestions)

    def test_unknown_field_rejected(self):
        """Misspelled keys are not silently ignored."""
        errors, suggestions = validate_provision_document({"cameras": [{"name": "c", "nvrref": "x"}]})
        assert errors
        assert any("Remove unknown field" in s for s in suggestions)

    def test_duplicate_recorder_names(self):
        """Symbolic names must be unique."""
        nvr = {"name": "dup", "host": "h", "username": "u", "password": "p"}
        errors, _ = validate_provision_document({"nvrs": [nvr, dict(nvr, host="h2")]})
        assert errors == ["nvrs.1.name: duplicate recorder name 'dup'"]

    def test_non_object_document(self):
        """A list at the top level is rejected."""
        errors, _ = validate_provision_document([])
        assert errors
        assert errors[0].startswith("root:")

    def test_bad_deploy_mode(self):
        """Deploy mode must be one of the supported modes."""
        errors, _ = validate_provision_document({"deploy": {"mode": "ftp"}})
        assert any("deploy.mode" in e for e in errors)


class TestLoadDocument:
    """Tests for reading documents from disk."""

    def test_loads_valid_file(self, tmp_path):
        """Valid JSON files load as dicts."""
        path = tmp_path / "site.json"
        path.write_text(json.dumps(VALID))
        assert load_document(path) == VALID

    def test_invalid_json(self, tmp_path):
        """Syntax errors raise ProvisionInputError."""
        path = tmp_path / "site.json"
        path.write_text("{not json")
        with pytest.raises(ProvisionInputError, match="not valid JSON"):
            load_document(path)

    def test_schema_errors_raise(self, tmp_path):
        """Schema violations carry errors and suggestions."""
        path = tmp_path / "site.json"
        path.write_text(json.dumps({"nvrs": [{"name": "x"}]}))
        with pytest.raises(ProvisionInputError) as exc_info:
            load_document(path)
        assert len(exc_info.value.errors) == 3
        assert exc_info.value.suggestions

    def test_missing_file(self, tmp_path):
        """Unreadable files raise ProvisionInputError."""
        with pytest.raises(ProvisionInputError, match="Cannot read"):
            load_document(tmp_path / "missing.json")


class TestFormatValidationErrors:
    """Tests for terminal formatting."""

    def test_valid(self):
        """No errors gives a success line."""
        assert "valid" in format_validation_errors([])

    def test_errors_and_suggestions(self):
        """Errors and suggestions are both listed."""
        text = format_validation_errors(["nvrs.0: bad"], ["fix it"])
        assert "nvrs.0: bad" in text
        assert "Suggested fixes" in text
        assert "fix it" in text


class TestModels:
    """Tests for document models and payloads."""

    def test_recorder_defaults(self):
        """Optional recorder fields fall back to API defaults."""
        spec = RecorderSpec.from_dict(VALID["nvrs"][0])
        payload = spec.to_payload()
        assert payload["httpPort"] == 80
        assert payload["onvifPort"] == 80
        assert payload["rtspPort"] == 554
        assert payload["protocol"] == "ONVIF"
        assert payload["isActive"] is True
        assert "model" not in payload
        assert spec.disable_missing is True

    def test_recorder_payload_masking(self):
        """Masked payloads never carry the password."""
        spec = RecorderSpec.from_dict(VALID["nvrs"][0])
        assert spec.to_payload()["password"] == "pw"
        assert spec.to_payload(mask_secrets=True)["password"] == "***"

    def test_camera_resolution_prefers_explicit_id(self):
        """nvrId wins over nvrRef."""
        cam = CameraSpec(name="c", nvr_id="explicit", nvr_ref="lobby-nvr")
        assert cam.resolve_recorder({"lobby-nvr": "generated"}) == "explicit"

    def test_camera_resolution_by_name(self):
        """nvrRef looks up recorders created in the run."""
        cam = CameraSpec(name="c", nvr_ref="b")
        assert cam.resolve_recorder({"a": "1", "b": "2"}) == "2"
        assert cam.resolve_recorder({"a": "1"}) is None

    def test_auto_generate_url_default(self):
        """URLs are auto-generated only when a recorder is linked."""
        cam = CameraSpec(name="c")
        assert cam.to_payload("nvr-1")["autoGenerateUrl"] is True
        assert cam.to_payload(None)["autoGenerateUrl"] is False
        assert "nvrId" not in cam.to_payload(None)
        assert CameraSpec(name="c", auto_generate_url=False).to_payload("nvr-1")["autoGenerateUrl"] is False

    def test_provision_input_from_dict(self):
        """The whole document maps onto typed specs."""
        doc = ProvisionInput.from_dict(VALID)
        assert [r.name for r in doc.recorders] == ["lobby-nvr"]
        assert doc.cameras[0].channel_no == 1
        assert doc.deploy["mode"] == "local"
