from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlmodel import Session, select

from app.core.config import Settings, get_settings
from app.database import get_session
from app.models.user import Role, User


# =========================
# BEARER TOKEN
# =========================

# tokens are issued by the external auth service; tokenUrl is its login route
# and only feeds the OpenAPI docs, this app serves no such endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def decode_subject(token: str, settings: Settings) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    return payload.get("sub")


# =========================
# AUTHENTICATED USER
# =========================

def get_current_user(
    token: str = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    email = decode_subject(token, settings)
    if email is None:
        raise credentials_exception

    user = session.exec(
        select(User).where(User.email == email)
    ).first()

    if user is None:
        raise credentials_exception

    return user


# =========================
# CLIENTS ONLY
# =========================

def get_current_client(
    current_user: User = Depends(get_current_user),
) -> User:

    if current_user.role != Role.CLIENT.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only clients can access this route"
        )

    return current_user


# =========================
# ADMINS AND SPECIALISTS
# =========================

def get_current_staff(
    current_user: User = Depends(get_current_user),
) -> User:

    if current_user.role not in (Role.ADMIN.value, Role.SPECIALIST.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Users with role '{current_user.role}' cannot access this route"
        )

    return current_user
