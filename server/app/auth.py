"""Actor resolution for the ledger API.

Sessions and users live in the identity service; this module only decodes
its bearer tokens and trusts the actor id they carry.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from app.config import settings
from app.module_keys import MODULE_KEY_SET

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


@dataclass(frozen=True)
class Actor:
    id: str
    modules: frozenset = field(default_factory=frozenset)
    is_admin: bool = False


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def get_current_actor(token: str = Depends(oauth2_scheme)) -> Actor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        actor_id = payload.get("sub")
        if actor_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    modules = frozenset(key for key in payload.get("modules") or [] if key in MODULE_KEY_SET)
    return Actor(id=str(actor_id), modules=modules, is_admin=bool(payload.get("is_admin")))


def require_module(module_key: str):
    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.is_admin or module_key in actor.modules:
            return actor
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Not authorized for module '{module_key}'",
        )

    return dependency
