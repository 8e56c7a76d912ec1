"""
Request data extraction and validation utilities.

Provides declarative validators for common request patterns, eliminating
boilerplate code for extracting and validating request data.

Example usage:
    from app.utils.request_validators import extract_json_fields, RequestField

    data = extract_json_fields(
        RequestField('graph', required=True, validator=is_dict),
        RequestField('input', default={}, validator=is_dict)
    )
"""

import logging
from typing import Any, Callable, Dict, Optional

from flask import request

from graph_engine.schema import CanvasGraph

logger = logging.getLogger(__name__)


class RequestField:
    """
    Declarative field definition for request data extraction.

    Args:
        name: Field name in the request data
        required: Whether field must be present and non-empty
        default: Default value if field is missing or empty
        transform: Optional function to transform the value
        validator: Optional function to validate the value (return True if valid)
        error_message: Custom error message for required field validation
    """

    def __init__(
        self,
        name: str,
        *,
        required: bool = False,
        default: Any = None,
        transform: Optional[Callable[[Any], Any]] = None,
        validator: Optional[Callable[[Any], bool]] = None,
        error_message: Optional[str] = None
    ):
        self.name = name
        self.required = required
        self.default = default
        self.transform = transform
        self.validator = validator
        self.error_message = error_message or f"No {name} provided"

    def extract_and_validate(self, source: Dict[str, Any]) -> Any:
        """
        Extract and validate this field from a data source.

        Raises:
            ValueError: If field is required but missing, or validation fails
        """
        value = source.get(self.name, self.default)

        # Treat empty strings and containers as missing
        if self.required:
            if value is None or value == '' or (isinstance(value, (list, dict)) and not value):
                raise ValueError(self.error_message)

        if value is None:
            return value

        if self.transform:
            try:
                value = self.transform(value)
            except (TypeError, ValueError) as e:
                logger.warning("Transform failed for field '%s': %s", self.name, e)
                raise ValueError(f"Invalid format for {self.name}")

        if self.validator:
            try:
                valid = self.validator(value)
            except TypeError as e:
                logger.warning("Validator error for field '%s': %s", self.name, e)
                valid = False
            if not valid:
                raise ValueError(f"Invalid {self.name}")

        return value


def extract_json_fields(*fields: RequestField) -> Dict[str, Any]:
    """
    Extract and validate fields from the JSON request body.

    Raises:
        ValueError: If required field missing or validation fails
    """
    source = request.get_json(silent=True) or {}
    if not isinstance(source, dict):
        raise ValueError("Request body must be a JSON object")
    return {field.name: field.extract_and_validate(source) for field in fields}


def extract_query_params(*fields: RequestField) -> Dict[str, Any]:
    """
    Extract and validate fields from query parameters.

    Example:
        data = extract_query_params(RequestField('canvasId', required=True))
    """
    source = dict(request.args)
    return {field.name: field.extract_and_validate(source) for field in fields}


def parse_graph(raw: Dict[str, Any], canvas_id: Optional[str] = None) -> CanvasGraph:
    """
    Build a CanvasGraph from a request payload.

    Unknown node types surface as StructuralError so the caller gets the
    issue list rather than a generic format error.
    """
    if canvas_id and not raw.get('id'):
        raw = dict(raw, id=canvas_id)
    return CanvasGraph.from_dict(raw)


# ============================================================================
# Common Validators
# ============================================================================

def is_dict(value: Any) -> bool:
    return isinstance(value, dict)


def non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())
