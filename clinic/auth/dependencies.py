from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic.auth import jwt_handler
from clinic.auth.permissions import has_all_permissions
from clinic.database import SessionLocal
from clinic.models.profile import Profile

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Profile:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(Profile).filter(Profile.email == email).first()
    finally:
        db.close()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User account is inactive")
    return user


def require_permissions(*permissions: str):
    """Dependency factory: the current user must hold every listed permission."""

    def dependency(current_user: Profile = Depends(get_current_user)) -> Profile:
        if not has_all_permissions(current_user.role, list(permissions)):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user

    return dependency
