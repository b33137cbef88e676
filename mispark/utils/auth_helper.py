from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from mispark.config import ADMIN_EMAIL, JWT_AUDIENCE, JWT_SECRET

bearer_scheme_required = HTTPBearer(auto_error=True)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        JWT_SECRET,
        algorithms=["HS256"],
        audience=JWT_AUDIENCE,
    )


def get_current_user_required(token: HTTPAuthorizationCredentials = Depends(bearer_scheme_required)):
    try:
        payload = decode_access_token(token.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Token has no subject")

    return payload


def is_admin(current_user) -> bool:
    return bool(ADMIN_EMAIL) and current_user.get("email") == ADMIN_EMAIL


def require_admin(current_user=Depends(get_current_user_required)):
    if not is_admin(current_user):
        raise HTTPException(status_code=403, detail="Only the admin can delete reports")

    return current_user
