"""Browser session handling for the deployment console."""

from .browser import BrowserResources
from .manager import AuthError, AuthResult, SessionManager

__all__ = [
    "AuthError",
    "AuthResult",
    "BrowserResources",
    "SessionManager",
]
