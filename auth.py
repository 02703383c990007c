"""
Session-based login for the API and pages.

Accounts live in memory and come from the environment. A login stores
``{"username", "roles"}`` in the signed session cookie. An OAuth2 integration
would also store the provider's ``claims`` there; ``/api/user`` prefers those.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from werkzeug.security import check_password_hash, generate_password_hash

from app_logging import get_logger
from config import get_settings

logger = get_logger("academic.auth", component="auth")

ROLE_ADMIN = "ROLE_ADMIN"
ROLE_USER = "ROLE_USER"

router = APIRouter()


@dataclass(frozen=True)
class Account:
    username: str
    password_hash: str
    roles: Tuple[str, ...]


@lru_cache
def accounts() -> Dict[str, Account]:
    settings = get_settings()
    return {
        settings.admin_username: Account(
            settings.admin_username, generate_password_hash(settings.admin_password), (ROLE_ADMIN,)
        ),
        settings.user_username: Account(
            settings.user_username, generate_password_hash(settings.user_password), (ROLE_USER,)
        ),
    }


def authenticate(username: str, password: str) -> Optional[Account]:
    account = accounts().get(username)
    if account is None or not check_password_hash(account.password_hash, password):
        return None
    return account


def session_user(request: Request) -> Optional[Dict[str, Any]]:
    user = request.session.get("user")
    return user if isinstance(user, dict) else None


def current_user(request: Request) -> Dict[str, Any]:
    user = session_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user


def require_roles(*roles: str):
    def dependency(user: Dict[str, Any] = Depends(current_user)) -> Dict[str, Any]:
        if not set(user.get("roles") or ()) & set(roles):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return dependency


def user_info(user: Dict[str, Any]) -> Dict[str, Any]:
    roles = list(user.get("roles") or [])
    claims = user.get("claims")
    if isinstance(claims, dict):
        info = {"name": claims.get("name"), "email": claims.get("email"), "picture": claims.get("picture")}
    else:
        username = user.get("username", "")
        info = {
            "name": username,
            "email": f"{username}@example.com",
            "picture": f"https://ui-avatars.com/api/?name={quote(username)}",
        }
    info["roles"] = ",".join(roles)
    info["is_admin"] = ROLE_ADMIN in roles
    return info


@router.post("/login")
def login(request: Request, username: str = Form(...), password: str = Form(...)):
    account = authenticate(username, password)
    if account is None:
        logger.info("login_failed", username=username)
        return RedirectResponse("/login-form.html?error=true", status_code=303)
    request.session["user"] = {"username": account.username, "roles": list(account.roles)}
    logger.info("login_succeeded", username=account.username)
    return RedirectResponse("/index", status_code=303)


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return RedirectResponse("/", status_code=303)


@router.get("/api/user")
def get_current_user(user: Dict[str, Any] = Depends(current_user)):
    return user_info(user)
