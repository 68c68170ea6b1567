"""
Authentication module - provider contract, JWT provider and bearer helpers.
"""

from common.auth.base import AuthProvider
from common.auth.jwt_auth import JWTAuth
from common.auth.dependencies import create_auth_dependency, extract_bearer_token

__all__ = ["AuthProvider", "JWTAuth", "create_auth_dependency", "extract_bearer_token"]
