from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from fastapi.security.utils import get_authorization_scheme_param
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings, get_settings
from schemas import User, UserRecord
from storage import Storage, get_storage

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# the session normally travels in a cookie; a bearer header is accepted too
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, secret_key: str, expires_delta: timedelta):
    to_encode = data.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)


def start_session(response: Response, user: UserRecord, settings: Settings):
    max_age = timedelta(minutes=settings.session_max_age_minutes)
    token = create_access_token({"sub": user.id}, settings.secret_key, max_age)
    response.set_cookie(
        settings.session_cookie,
        token,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        samesite="lax",
    )


def end_session(response: Response, settings: Settings):
    response.delete_cookie(settings.session_cookie)


def public_user(user: UserRecord) -> User:
    return User.model_validate(user.model_dump(exclude={"password"}))


def session_user_id(token: Optional[str], settings: Settings) -> Optional[str]:
    """User id carried by a valid session token, or None."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")


def request_token(request: Request, settings: Settings) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie)
    if token:
        return token
    scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
    return param if scheme.lower() == "bearer" else None


def get_current_user(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )
    user_id = session_user_id(request.cookies.get(settings.session_cookie) or bearer, settings)
    if user_id is None:
        raise credentials_exception
    user = storage.get_user(user_id)
    if not user:
        raise credentials_exception
    return public_user(user)
