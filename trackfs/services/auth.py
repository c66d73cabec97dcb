from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from trackfs.config import settings
from trackfs.schemas.auth import TokenData


def create_access_token(user_id: str) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": user_id, "exp": expire}
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenData:
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options={"verify_aud": settings.jwt_audience is not None},
    )
    user_id: str | None = payload.get("sub")
    if not user_id:
        raise JWTError("missing sub")
    return TokenData(user_id=user_id)
