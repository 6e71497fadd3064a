import os

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.core.roles import Role
from app.services.auth_service import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

DEV_ENVIRONMENTS = {"dev", "local", "test"}


class TokenRequest(BaseModel):
    user_id: str = Field(min_length=1)
    company_id: int
    role: Role = Role.EMPLOYEE


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role


@router.post("/token", response_model=TokenResponse)
def issue_token(payload: TokenRequest):
    """Development-only token minting; production tokens come from the identity provider."""
    if os.getenv("ENV", "dev").lower() not in DEV_ENVIRONMENTS:
        raise HTTPException(status_code=404, detail="Not Found")
    try:
        token = create_access_token(payload.user_id, payload.company_id, role=payload.role)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {"access_token": token, "role": payload.role}
