"""
schemas/__init__.py

JSON Schema definitions and validation utilities for raw templates and
decoded URL state.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft202012Validator

# Schema file paths
SCHEMA_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATE_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "template_schema.json")
URL_STATE_SCHEMA_PATH = os.path.join(SCHEMA_DIR, "url_state_schema.json")

# Cached schemas and validators
_template_schema: Optional[Dict] = None
_url_state_schema: Optional[Dict] = None
_validators: Dict[str, Draft202012Validator] = {}


def get_template_schema() -> Dict:
    """Load and return the raw template schema."""
    global _template_schema
    if _template_schema is None:
        with open(TEMPLATE_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _template_schema = json.load(f)
    return _template_schema


def get_url_state_schema() -> Dict:
    """Load and return the URL state schema."""
    global _url_state_schema
    if _url_state_schema is None:
        with open(URL_STATE_SCHEMA_PATH, "r", encoding="utf-8") as f:
            _url_state_schema = json.load(f)
    return _url_state_schema


def _validator(name: str) -> Draft202012Validator:
    if name not in _validators:
        schema = get_template_schema() if name == "template" else get_url_state_schema()
        _validators[name] = Draft202012Validator(schema)
    return _validators[name]


def _collect_errors(validator: Draft202012Validator, data: Any) -> List[str]:
    error_messages = []
    for error in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path]):
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")
    return error_messages


def validate_template(data: Any) -> Tuple[bool, List[str]]:
    """
    Validate a raw template (current or legacy form).

    Args:
        data: The parsed template document

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = _collect_errors(_validator("template"), data)
    return not errors, errors


def validate_url_state(data: Any) -> Tuple[bool, List[str]]:
    """
    Validate a decoded URL state payload.

    Args:
        data: The decoded JSON object

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = _collect_errors(_validator("url_state"), data)
    return not errors, errors
