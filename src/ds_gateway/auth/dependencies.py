"""FastAPI auth dependencies.

Usage in any protected router:
    from src.ds_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: Annotated[UserModel, Depends(get_current_user)]):
        ...

require_admin guards dispute resolution and config; require_cron guards the
scheduler sweep endpoints with a shared bearer secret instead of a user token.
"""

import hmac

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ds_common.database import get_db_session
from src.ds_common.errors import (
    AccountDisabledError,
    AdminRequiredError,
    InvalidCredentialsError,
    InvalidCronSecretError,
)
from src.ds_gateway.auth.jwt_handler import decode_access_token
from src.ds_gateway.user.db_models import UserModel

bearer_scheme = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> UserModel:
    """Validate the Bearer token and return the UserModel.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    Raises HTTP 403 (AccountDisabledError) if the user account is disabled.
    """
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_access_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise _CREDENTIALS_EXCEPTION

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _CREDENTIALS_EXCEPTION

    if not user.is_active:
        raise AccountDisabledError()

    return user


async def require_admin(
    current_user: UserModel = Depends(get_current_user),
) -> UserModel:
    if not current_user.is_admin:
        raise AdminRequiredError()
    return current_user


def check_cron_secret(authorization: str | None, secret: str, debug: bool) -> None:
    """Raise InvalidCronSecretError unless `authorization` is `Bearer <secret>`.

    An unset secret is accepted only in debug mode.
    """
    if not secret:
        if debug:
            return
        raise InvalidCronSecretError()
    expected = f"Bearer {secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise InvalidCronSecretError()


async def require_cron(authorization: str | None = Header(None)) -> None:
    check_cron_secret(authorization, settings.CRON_SECRET, settings.DEBUG)
