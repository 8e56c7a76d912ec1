"""
HTTP layer: blueprints, middleware and services for the canvas run API.
"""
