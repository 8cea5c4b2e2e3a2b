"""Infrastructure-related constants."""

# Lightweight statement used to verify and probe database connections
PROBE_STATEMENT = "SELECT 1"

# Disable PostgreSQL JIT for more predictable latency on short queries
SERVER_SETTINGS = {"jit": "off"}
