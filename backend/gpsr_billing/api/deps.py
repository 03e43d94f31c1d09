"""Shared API dependencies — single import point for all routers.

Re-exports database session and authentication dependencies so that router
modules can import everything they need from one place::

    from gpsr_billing.api.deps import get_db, get_current_user
"""

from gpsr_billing.auth.dependencies import get_current_user
from gpsr_billing.database import get_db

__all__ = [
    "get_db",
    "get_current_user",
]
