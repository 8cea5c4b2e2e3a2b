"""API-specific helpers.

- **responses**: orjson-backed JSON response class
"""
