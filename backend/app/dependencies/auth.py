"""Authentication dependencies for retrieving the current user and tenant scope."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.security import decode_access_token
from backend.app.db.session import get_db
from backend.app.models.enums import AppRole
from backend.app.models.user import User
from backend.app.services.actors import Actor


def get_current_user(db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None)) -> User:
    # Expect Authorization: Bearer <token>
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        # Decode and validate JWT to retrieve subject
        payload = decode_access_token(token)
    except ValueError:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = db.query(User).filter(User.id == str(user_id)).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)


def get_school_actor(school_id: str, current_user: User = Depends(get_current_user)) -> Actor:
    """
    Resolve the actor for a school-scoped route. Users outside the school get a 404
    rather than a 403 so tenant existence is not disclosed.
    """
    if current_user.role != AppRole.PLATFORM_ADMIN and current_user.school_id != school_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="School not found")
    return Actor.from_user(current_user)
