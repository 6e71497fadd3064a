from fastapi import Depends, HTTPException

from app.core.roles import Capability, Role, has_capability
from app.deps.auth import AuthContext, require_auth

__all__ = ["Capability", "Role", "require_capability"]


def require_capability(capability: Capability):
    def dependency(auth: AuthContext = Depends(require_auth)) -> AuthContext:
        if not has_capability(auth.role, capability):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return auth

    return dependency
