"""
Request identity: {user_id, role} carried in a bearer token.

Tokens are issued by the platform's auth module and signed with
itsdangerous (same secret); this service only verifies them.
"""
from __future__ import annotations

from dataclasses import dataclass

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from smartlearn.core.config import settings
from smartlearn.core.errors import Unauthorized
from smartlearn.models.enums import UserRole

_SALT = "smartlearn-identity"


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_manage_course(self, instructor_id: str) -> bool:
        """Course owner (instructor) or any admin."""
        if self.is_admin:
            return True
        return self.role == UserRole.INSTRUCTOR and instructor_id == self.user_id


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.identity_secret, salt=_SALT)


def issue_token(user_id: str, role: UserRole | str) -> str:
    return _serializer().dumps({"sub": user_id, "role": UserRole(role).value})


def decode_token(token: str) -> Identity:
    try:
        data = _serializer().loads(token, max_age=settings.identity_token_ttl)
    except SignatureExpired:
        raise Unauthorized("Session expired", code="TOKEN_EXPIRED")
    except BadSignature:
        raise Unauthorized("Invalid token", code="TOKEN_INVALID")
    try:
        return Identity(user_id=str(data["sub"]), role=UserRole(data["role"]))
    except (KeyError, TypeError, ValueError):
        raise Unauthorized("Invalid token", code="TOKEN_INVALID")
