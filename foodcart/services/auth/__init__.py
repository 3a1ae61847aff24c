"""
Auth Services

Exports the session manager and the authenticated request wrapper.

Author: Khalil_Bannouri
Version: 1.0.0
"""

from foodcart.services.auth.middleware import AuthenticatedClient
from foodcart.services.auth.session import SessionListener, SessionManager, SessionState

__all__ = [
    "AuthenticatedClient",
    "SessionListener",
    "SessionManager",
    "SessionState",
]
