# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - utils.py: Shared utilities (error base class, id and timestamp helpers)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.utils import (
    ApplicationError,
    new_connection_id,
    new_message_id,
    utc_now_iso,
)

__all__ = [
    "ApplicationError",
    "new_connection_id",
    "new_message_id",
    "utc_now_iso",
]
