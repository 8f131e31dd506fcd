"""Simple token-based auth helpers for the Reentry Map admin API."""

from typing import Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException, status

from reentry_map.settings import get_settings

# Development tokens; deployments add their own via ``api.admin_tokens``.
_API_TOKENS = {
    # token: {"username": "alice", "role": "contributor"}
    "dev-contributor-token": {"username": "contributor_1", "role": "contributor"},
    "dev-admin-token": {"username": "admin", "role": "admin"},
}


def _lookup(token: Optional[str]) -> Optional[Dict[str, str]]:
    if not token:
        return None
    user = _API_TOKENS.get(token)
    if user:
        return user
    username = get_settings().api.admin_tokens.get(token)
    if username:
        return {"username": username, "role": "admin"}
    return None


def is_authorized_admin(token: Optional[str]) -> bool:
    """Return True when ``token`` belongs to an admin reviewer."""

    user = _lookup(token)
    return bool(user and user.get("role") == "admin")


def require_token(x_api_key: Optional[str] = Header(None)):
    """Validate API key header and return user info.

    Args:
        x_api_key: Value of the `X-API-KEY` header.

    Returns:
        dict: user info with 'username' and 'role'.

    Raises:
        HTTPException: 401 if missing, 403 if unknown.
    """
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-API-KEY")
    user = _lookup(x_api_key)
    if not user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
    return user


def require_role(required_role: str) -> Callable:
    """Dependency factory that enforces a required role (contributor/admin)."""

    def _checker(user=Depends(require_token)):
        role = user.get("role")
        if role == required_role or role == "admin":
            return user
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")

    return _checker


require_admin = require_role("admin")
