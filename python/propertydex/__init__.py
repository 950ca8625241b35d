"""PropertyDex local backend.

Emulates the remote database/auth client used by the PropertyDex
investment front end on top of a local DuckDB key-value store, so the
same call paths run with or without a live server.
"""

__version__ = "0.1.0"
