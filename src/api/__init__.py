"""HTTP API layer of the Kanban backend, built on FastAPI.

Key components:
- **main**: Application factory and lifespan (database connect/disconnect)
- **middleware**: Database availability guard and exception handlers
- **routes**: Versioned routers, currently database health
- **schemas**: Error and health response models
- **utils**: orjson response class
"""
