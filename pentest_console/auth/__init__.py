"""
Authentication and Session Management

This module provides:
- The JSON-file backed user store with bcrypt credential checks
- Bootstrap of the initial admin account
- Server-side session records and signed session cookies
"""

from .manager import AuthManager, UserConflictError, UserDeletionError
from .models import StoredUser, UserResponse
from .sessions import SessionRecord, SessionStore, sign_session_id, unsign_session_id

__all__ = [
    'AuthManager',
    'UserConflictError',
    'UserDeletionError',
    'StoredUser',
    'UserResponse',
    'SessionRecord',
    'SessionStore',
    'sign_session_id',
    'unsign_session_id',
]
