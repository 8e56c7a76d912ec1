"""
Route decorators for standardized error handling and response formatting.

This module provides decorators that can be applied to Flask route handlers
to eliminate boilerplate code and ensure consistent error handling across
all API endpoints.
"""

import logging
from functools import wraps
from flask import jsonify

from graph_engine.errors import StructuralError

logger = logging.getLogger(__name__)


def handle_route_errors(route_description=None):
    """
    Decorator to standardize error handling across all routes.

    Handles:
    - StructuralError → 400 Bad Request with the validation issues attached
    - ValueError → 400 Bad Request (client error)
    - Exception → 500 Internal Server Error (server error)
    - Automatic JSON response formatting via jsonify()

    Args:
        route_description: Optional human-readable description for logging.
                          If not provided, defaults to the function name.

    Usage:
        @bp.route('/graph/plan', methods=['POST'])
        @handle_route_errors("planning graph")
        def plan_graph():
            return {"plan": build_plan().to_dict()}

    Notes:
        - Automatically wraps dict/list returns in jsonify()
        - Preserves Response objects (doesn't double-wrap)
        - Supports tuple returns like (data, status_code)
    """
    def decorator(f):
        desc = route_description or f.__name__

        @wraps(f)
        def wrapper(*args, **kwargs):
            try:
                result = f(*args, **kwargs)
                return _format_response(result)
            except Exception as e:
                return _error_response(desc, e)

        return wrapper

    return decorator


def _error_response(desc, error):
    if isinstance(error, StructuralError):
        logger.warning("%s - invalid canvas: %s", desc, error)
        return jsonify({
            "error": str(error),
            "issues": [issue.to_dict() for issue in error.issues],
        }), 400
    if isinstance(error, ValueError):
        logger.warning("%s - ValueError: %s", desc, str(error))
        return jsonify({"error": str(error)}), 400
    logger.exception("Error in %s: %s", desc, error)
    return jsonify({"error": str(error)}), 500


def _format_response(result):
    """
    Format route handler response for Flask.

    Args:
        result: Return value from route handler

    Returns:
        Properly formatted Flask response
    """
    # Already a Response object
    if hasattr(result, 'status_code'):
        return result

    # (data, status_code, headers, ...)
    if isinstance(result, tuple):
        data = result[0]
        rest = result[1:]
        if isinstance(data, (dict, list)):
            return (jsonify(data), *rest)
        return result

    if isinstance(result, (dict, list)):
        return jsonify(result)

    return result


def success_response(data=None, message=None, **kwargs):
    """
    Build a standardized success response dictionary.

    Args:
        data: Optional data payload to include in response
        message: Optional success message
        **kwargs: Additional fields to include in response

    Returns:
        dict: Response dictionary with 'success': True and optional fields
    """
    response = {"success": True}

    if message:
        response["message"] = message

    if data is not None:
        response["data"] = data

    response.update(kwargs)
    return response


def not_found(message):
    """Error payload for a missing resource, as a (body, status) tuple."""
    return {"error": message}, 404
