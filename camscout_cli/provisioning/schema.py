"""
Validation of provisioning documents.

The document is checked against a JSON schema before anything talks to the
inventory API, and every problem is reported at once together with
suggested fixes.
"""

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

PORT = {"type": "integer", "minimum": 1, "maximum": 65535}
NON_EMPTY = {"type": "string", "minLength": 1}

NVR_SCHEMA = {
    "type": "object",
    "required": ["name", "host", "username", "password"],
    "additionalProperties": False,
    "properties": {
        "name": NON_EMPTY,
        "vendor": {"type": "string"},
        "model": {"type": "string"},
        "host": NON_EMPTY,
        "httpPort": PORT,
        "onvifPort": PORT,
        "rtspPort": PORT,
        "rtspUrlTemplate": {"type": "string"},
        "username": NON_EMPTY,
        "password": {"type": "string"},
        "protocol": {"enum": ["ONVIF", "RTSP", "HYBRID", "GB28181"]},
        "isActive": {"type": "boolean"},
        "syncOnvif": {"type": "boolean"},
        "overwriteNames": {"type": "boolean"},
        "disableMissing": {"type": "boolean"},
        "testConnection": {"type": "boolean"},
    },
}

CAMERA_SCHEMA = {
    "type": "object",
    "required": ["name"],
    "additionalProperties": False,
    "properties": {
        "name": NON_EMPTY,
        "areaId": {"type": "string"},
        "nvrId": {"type": "string"},
        "nvrRef": {"type": "string"},
        "channelNo": {"type": "integer", "minimum": 0},
        "streamProfile": {"enum": ["main", "sub"]},
        "autoGenerateUrl": {"type": "boolean"},
        "streamUrl": {"type": "string"},
        "status": {"enum": ["ONLINE", "OFFLINE", "UNKNOWN"]},
        "isActive": {"type": "boolean"},
        "externalId": {"type": "string"},
    },
}

# Field-level deploy checks belong to the safety gate; only the shape is checked here.
DEPLOY_SCHEMA = {
    "type": "object",
    "required": ["mode"],
    "properties": {
        "mode": {"enum": ["ssh", "docker", "local"]},
        "ssh": {"type": "object"},
        "docker": {"type": "object"},
        "local": {"type": "object"},
    },
}

PROVISION_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "nvrs": {"type": "array", "items": NVR_SCHEMA},
        "cameras": {"type": "array", "items": CAMERA_SCHEMA},
        "deploy": DEPLOY_SCHEMA,
    },
}


class ProvisionInputError(Exception):
    """Raised when a provisioning document or invocation is invalid."""

    def __init__(self, errors: list[str], suggestions: list[str] | None = None):
        self.errors = errors
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = "Provisioning input is invalid:\n"
        for error in self.errors:
            msg += f"  • {error}\n"
        if self.suggestions:
            msg += "\nSuggested fixes:\n"
            for suggestion in self.suggestions:
                msg += f"  • {suggestion}\n"
        return msg


def _path(error) -> str:
    return ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"


def _suggestion(error) -> str | None:
    path = _path(error)
    if error.validator == "required":
        missing = error.message.split("'")[1] if "'" in error.message else "field"
        prefix = f"{path}." if path != "root" else ""
        return f"Add required field: {prefix}{missing}"
    if error.validator == "enum":
        return f"Set {path} to one of: {', '.join(map(str, error.validator_value))}"
    if error.validator == "maximum":
        return f"Set {path} to at most {error.validator_value}"
    if error.validator == "minimum":
        return f"Set {path} to at least {error.validator_value}"
    if error.validator == "additionalProperties":
        return f"Remove unknown field(s) from {path} (check spelling)"
    if error.validator == "type":
        return f"Change {path} to type {error.validator_value}"
    return None


def validate_provision_document(document: Any) -> tuple[list[str], list[str]]:
    """
    Validate a parsed provisioning document.

    Returns:
        (errors, suggestions). Both empty when the document is valid.
    """
    validator = Draft7Validator(PROVISION_SCHEMA)
    errors: list[str] = []
    suggestions: list[str] = []
    ordered = sorted(validator.iter_errors(document), key=lambda e: tuple(str(p) for p in e.absolute_path))
    for error in ordered:
        errors.append(f"{_path(error)}: {error.message}")
        suggestion = _suggestion(error)
        if suggestion and suggestion not in suggestions:
            suggestions.append(suggestion)

    if errors or not isinstance(document, dict):
        return errors, suggestions

    seen: set[str] = set()
    for index, nvr in enumerate(document.get("nvrs") or []):
        name = nvr["name"]
        if name in seen:
            errors.append(f"nvrs.{index}.name: duplicate recorder name '{name}'")
            suggestions.append("Give every recorder a unique name so nvrRef stays unambiguous")
        seen.add(name)
    return errors, suggestions


def format_validation_errors(errors: list[str], suggestions: list[str] | None = None) -> str:
    """
    Format validation errors for display.

    Returns:
        Rich-markup string for terminal display.
    """
    if not errors:
        return "[green]✓[/green] Provisioning input valid"

    lines = ["[red]✗[/red] Validation failed:\n"]
    for error in errors:
        lines.append(f"  [red]•[/red] {error}")

    if suggestions:
        lines.append("\n[yellow]Suggested fixes:[/yellow]")
        for suggestion in suggestions:
            lines.append(f"  [yellow]•[/yellow] {suggestion}")

    return "\n".join(lines)


def load_document(path: str | Path) -> dict:
    """
    Read and validate a provisioning document from a JSON file.

    Raises:
        ProvisionInputError: Unreadable file, invalid JSON or schema violations.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ProvisionInputError([f"Cannot read {path}: {e}"]) from e
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProvisionInputError([f"{path} is not valid JSON: {e}"]) from e

    errors, suggestions = validate_provision_document(document)
    if errors:
        raise ProvisionInputError(errors, suggestions)
    return document
