# =============================================================================
# app/routers/ - Route Definitions
# =============================================================================
# - index.py: the root page
#
# Each router is mounted in main.py.
# =============================================================================

from . import index

__all__ = [
    "index",
]
