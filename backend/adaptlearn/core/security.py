# adaptlearn/core/security.py
import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
import secrets
from datetime import datetime, timedelta, timezone
from typing import Literal
from adaptlearn.core.config import settings

TokenType = Literal["access", "refresh"]


def get_password_hash(password: str) -> str:
    """Хеширование пароля с помощью bcrypt"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))

def token_lifetime(token_type: TokenType) -> timedelta:
    if token_type == "access":
        return timedelta(minutes=settings.security.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    return timedelta(days=settings.security.JWT_REFRESH_TOKEN_EXPIRE_DAYS)

def create_token(user_id: int, token_type: TokenType) -> str:
    """JWT для пользователя: sub - его id, type отличает access от refresh"""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + token_lifetime(token_type),
        "jti": secrets.token_urlsafe(16),  # уникальный id токена
    }
    return jwt.encode(
        claims,
        settings.security.JWT_SECRET_KEY.get_secret_value(),
        algorithm=settings.security.JWT_ALGORITHM,
    )

def decode_token(token: str, token_type: TokenType) -> int:
    """
    Проверяет подпись, срок действия и тип токена.
    Возвращает id пользователя; при любой ошибке - ValueError с причиной.
    """
    try:
        payload = jwt.decode(
            token,
            settings.security.JWT_SECRET_KEY.get_secret_value(),
            algorithms=[settings.security.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise ValueError("Token expired")
    except JWTError:
        raise ValueError("Invalid token")

    if payload.get("type") != token_type:
        raise ValueError("Invalid token type")
    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise ValueError("Invalid token payload")
    return int(subject)
