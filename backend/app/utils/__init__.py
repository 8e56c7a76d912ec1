"""
Utility functions for the application.
"""
from .request_validators import RequestField, extract_json_fields, extract_query_params, parse_graph
from .route_decorators import handle_route_errors, success_response

__all__ = [
    'RequestField', 'extract_json_fields', 'extract_query_params', 'parse_graph',
    'handle_route_errors', 'success_response',
]
