from __future__ import annotations

from enum import Enum

"""ImportState enum for ImportSession.

State transitions: idle -> loading -> (success | error); reset() returns to idle.
"""

__all__ = [
    "ImportState",
]


class ImportState(Enum):
    """Lifecycle of one import session.

    - IDLE: nothing parsed yet (or reset)
    - LOADING: a parse is running
    - SUCCESS: last parse produced an ImportResult
    - ERROR: last parse failed with a file-level error
    """
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
