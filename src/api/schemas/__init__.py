"""Pydantic models for API responses.

- **errors**: The ``{"errors": [{param, msg}]}`` error body
- **health**: Health, reconnect and server liveness responses
"""
