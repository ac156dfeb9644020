# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable building blocks:
# - database.py: MongoDB connection handle and its state machine
# - session_store.py: Server-side session storage
# - utils.py: Shared utilities (URI redaction)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.database import ConnectionState, DatabaseConnection
from lib.session_store import MemoryStore, SessionStore
from lib.utils import redact_uri

__all__ = [
    # Database
    "ConnectionState",
    "DatabaseConnection",
    # Sessions
    "MemoryStore",
    "SessionStore",
    # Utils
    "redact_uri",
]
