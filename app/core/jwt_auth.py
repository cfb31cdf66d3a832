from fastapi import HTTPException, status, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Any, Dict
from uuid import UUID

from app.core.jwt_session_manager import JWTSessionManager
from app.db.database import get_db
from app.db import crud

# HTTP Bearer token scheme (auto_error off so a missing header is a 401, not a 403)
security = HTTPBearer(auto_error=False)


def get_session_manager(request: Request) -> JWTSessionManager:
    return request.app.state.session_manager


async def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session_manager: JWTSessionManager = Depends(get_session_manager),
) -> Dict[str, Any]:
    """Decode the bearer token into the caller's session"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    session = session_manager.get_session(credentials.credentials)
    if not session:
        raise credentials_exception
    return session


async def get_current_user(
    session: Dict[str, Any] = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get current authenticated user from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        user_id = UUID(session["user_id"])
    except ValueError:
        raise credentials_exception

    user = crud.get_user_by_id(db, user_id)
    if user is None:
        raise credentials_exception

    return user
