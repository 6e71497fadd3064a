from dataclasses import dataclass

from fastapi import HTTPException, Request

from app.core.roles import Role
from app.services.auth_service import InvalidRoleClaim, InvalidToken, verify_token


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    company_id: int
    role: Role


def _parse_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=401, detail="Invalid Authorization header")

    return parts[1].strip()


def _header_company_id(request: Request) -> int:
    raw = request.headers.get("X-Company-Id")
    if raw is None:
        raise HTTPException(status_code=403, detail="Missing X-Company-Id header")
    try:
        return int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Invalid X-Company-Id header") from exc


def require_auth(request: Request) -> AuthContext:
    """Resolve the caller from the bearer token and pin it to the tenant named in X-Company-Id."""
    token = _parse_bearer_token(request)

    try:
        claims = verify_token(token)
    except InvalidToken as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except InvalidRoleClaim as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc

    if _header_company_id(request) != claims.company_id:
        raise HTTPException(status_code=403, detail="Company mismatch")

    request.state.user_id = claims.user_id
    request.state.company_id = claims.company_id
    request.state.role = claims.role.value

    return AuthContext(user_id=claims.user_id, company_id=claims.company_id, role=claims.role)
