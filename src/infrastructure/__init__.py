"""Infrastructure layer: everything that talks to systems outside the process.

Currently this is the database package, which owns the connection lifecycle
(connect, reuse, retry, idle close, reconnect) and the session seam used by
storage code.
"""
