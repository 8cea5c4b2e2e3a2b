"""FastAPI middleware and exception handlers.

- **DatabaseAvailabilityMiddleware**: Connects on demand and answers 503 when
  the database is unreachable
- **error_handler**: Maps exceptions to the ``{"errors": [...]}`` body
"""
