"""API-related constants."""

# Paths that must answer even while the database is down
HEALTH_PATH = "/health"
HEALTH_ROUTER_PREFIX = "/health"

# Error params for failures not tied to a request field
DATABASE_ERROR_PARAM = "database"
SERVER_ERROR_PARAM = "server"

DATABASE_UNAVAILABLE_MESSAGE = (
    "Database service is temporarily unavailable. Please try again later."
)
SERVER_ERROR_MESSAGE = "An unexpected server error occurred"
