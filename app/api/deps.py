"""
FastAPI dependencies (DB session, password gate)
"""
from fastapi import Request, HTTPException, status

from app.infrastructure.db.session import get_db as _get_db


# Re-export get_db for routers
get_db = _get_db

SESSION_AUTH_KEY = "authenticated"


def is_authenticated(request: Request) -> bool:
    """
    True when the session passed the dashboard password gate
    """
    return bool(request.session.get(SESSION_AUTH_KEY))


def require_auth(request: Request) -> None:
    """
    Router dependency for the JSON API

    Raises:
        HTTPException(401): session has not passed the password gate

    Usage:
        router = APIRouter(dependencies=[Depends(require_auth)])
    """
    if not is_authenticated(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
