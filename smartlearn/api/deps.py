"""
Request identity dependencies.

Authorization: Bearer <token>, where the token is an itsdangerous-signed
{sub, role} issued by the platform's auth module.
"""
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from smartlearn.core.errors import Forbidden, NotFound, Unauthorized
from smartlearn.db.session import get_db
from smartlearn.models.enums import UserRole
from smartlearn.models.user import User
from smartlearn.services.auth.identity import Identity, decode_token


def get_identity(authorization: str | None = Header(default=None)) -> Identity:
    if not authorization:
        raise Unauthorized("Unauthorized", code="MISSING_TOKEN")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Unauthorized", code="MISSING_TOKEN")
    return decode_token(token.strip())


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role not in allowed:
            raise Forbidden("Forbidden")
        return identity

    return dependency


require_instructor = require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN)


def get_current_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> User:
    user = db.get(User, identity.user_id)
    if not user:
        raise NotFound("User not found", code="USER_NOT_FOUND")
    return user
