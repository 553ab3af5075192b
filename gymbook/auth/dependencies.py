import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gymbook.auth import jwt_handler
from gymbook.services.access_window import Actor, Tier

security = HTTPBearer()


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    member_id = payload.get("sub")
    if not member_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        tier = Tier(payload.get("tier", Tier.ORDINARY.value))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token tier") from exc

    return Actor(member_id=str(member_id), tier=tier)


def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_staff:
        raise HTTPException(status_code=403, detail="Only staff can perform this action.")
    return actor
