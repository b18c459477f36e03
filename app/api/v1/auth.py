"""
Password gate routes (login, logout)
"""
import logging

from fastapi import APIRouter, Request, HTTPException
from pydantic import BaseModel

from app.api.deps import SESSION_AUTH_KEY
from app.auth import check_dashboard_password

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    password: str


@router.post("/login")
def login(request: Request, req: LoginRequest):
    """Open a session if the dashboard password matches"""
    if not check_dashboard_password(req.password):
        logger.warning("Failed dashboard login from %s", request.client.host if request.client else "?")
        raise HTTPException(status_code=401, detail="Incorrect password")

    request.session[SESSION_AUTH_KEY] = True
    return {"success": True}


@router.post("/logout")
def logout(request: Request):
    """Clear the session"""
    request.session.clear()
    return {"success": True}
