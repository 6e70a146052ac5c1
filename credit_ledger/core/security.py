"""JWT helpers and the authenticated request context dependency."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from credit_ledger.core.config import Settings, get_settings
from credit_ledger.core.container import ApplicationContainer
from credit_ledger.domain.common.context import RequestContext
from credit_ledger.domain.common.errors import UnauthorizedError
from credit_ledger.interfaces.http.deps import get_container
from credit_ledger.schemas import TokenData

security = HTTPBearer()


def create_access_token(
    user_id: str,
    role: str = "member",
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    """Mint a token the way the identity provider does (development and tests)."""
    settings = settings or get_settings()
    expire_delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expire_delta,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> TokenData:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials")
    return TokenData(user_id=user_id, role=payload.get("role") or "member")


def context_from_token(token_data: TokenData, settings: Settings) -> RequestContext:
    return RequestContext(
        user_id=token_data.user_id,
        is_admin=token_data.role in settings.security.admin_roles,
    )


async def get_current_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    container: ApplicationContainer = Depends(get_container),
) -> RequestContext:
    token_data = decode_access_token(credentials.credentials, container.settings)
    member = await container.members.ensure(token_data.user_id, token_data.role)
    if not member.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Member is disabled")
    return context_from_token(token_data, container.settings)


async def get_current_admin(context: RequestContext = Depends(get_current_context)) -> RequestContext:
    if not context.is_admin:
        raise UnauthorizedError("Administrator role required")
    return context
