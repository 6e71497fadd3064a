from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import os

import jwt

from app.core.roles import Role

JWT_ALGORITHM = "HS256"
DEFAULT_JWT_EXP_HOURS = 8


class InvalidToken(ValueError):
    """Signature, expiry or required claims are wrong."""


class InvalidRoleClaim(ValueError):
    """Token is genuine but names a role outside the closed set."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    company_id: int
    role: Role


def _get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET is required")
    if len(secret) < 32:
        raise ValueError("JWT_SECRET must be at least 32 characters")
    return secret


def _get_exp_hours() -> int:
    return int(os.getenv("JWT_EXP_HOURS", str(DEFAULT_JWT_EXP_HOURS)))


def create_access_token(user_id: str, company_id: int, role: Role = Role.EMPLOYEE) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "company_id": int(company_id),
        "role": Role(role).value,
        "iat": now,
        "exp": now + timedelta(hours=_get_exp_hours()),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise InvalidToken("Invalid or expired token") from exc

    if "sub" not in payload or "company_id" not in payload:
        raise InvalidToken("Invalid token claims")

    try:
        company_id = int(payload["company_id"])
    except (TypeError, ValueError) as exc:
        raise InvalidToken("Invalid token claims") from exc

    # Tokens minted without a role claim get the least privileged role.
    raw_role = payload.get("role") or Role.EMPLOYEE.value
    try:
        role = Role(str(raw_role).lower())
    except ValueError as exc:
        raise InvalidRoleClaim("Invalid role claim") from exc

    return TokenClaims(user_id=str(payload["sub"]), company_id=company_id, role=role)
