# adaptlearn/services/auth_service.py
from typing import Tuple, Dict, List, Optional
from datetime import datetime, timedelta, timezone
import logging

from adaptlearn.core.security import (
    get_password_hash,
    verify_password,
    create_token,
    decode_token,
    token_lifetime,
    TokenType,
)
from adaptlearn.core.schemas.auth import UserCreate, Token
from adaptlearn.core.schemas.records import UserRecord
from adaptlearn.core.exceptions import (
    AuthenticationError,
    ValidationError,
    RateLimitError
)
from adaptlearn.repositories.base import LearningStore

logger = logging.getLogger(__name__)


class RateLimiter:
    """Простой rate limiter для защиты от брутфорса"""
    def __init__(self, max_attempts: int = 5, window_minutes: int = 5, block_minutes: int = 15):
        self.attempts: Dict[str, List[datetime]] = {}  # {ip_or_email: [timestamps]}
        self.max_attempts = max_attempts
        self.block_duration = timedelta(minutes=block_minutes)
        self.window = timedelta(minutes=window_minutes)  # окно для подсчета попыток

    async def check_rate_limit(self, identifier: str) -> None:
        now = datetime.now(timezone.utc)
        self._prune(now)

        attempts = self.attempts.get(identifier, [])

        if len(attempts) >= self.max_attempts:
            first_attempt = min(attempts)
            if now - first_attempt < self.block_duration:
                remaining = int((first_attempt + self.block_duration - now).total_seconds())
                logger.warning(f"Rate limit hit for {identifier}")
                raise RateLimitError(f"Too many attempts. Try again in {remaining} seconds")

        attempts.append(now)
        self.attempts[identifier] = attempts

    def _prune(self, now: datetime) -> None:
        """Очистка старых записей; идентификаторы без свежих попыток удаляются целиком"""
        for key in list(self.attempts):
            fresh = [ts for ts in self.attempts[key] if ts > now - self.window]
            if fresh:
                self.attempts[key] = fresh
            else:
                del self.attempts[key]

    async def clear_attempts(self, identifier: str) -> None:
        """Очистка попыток после успешной аутентификации"""
        self.attempts.pop(identifier, None)


# Один лимитер на процесс: сервис создаётся на каждый запрос
rate_limiter = RateLimiter()


class AuthService:
    def __init__(self, store: LearningStore, limiter: Optional[RateLimiter] = None):
        self.store = store
        self.rate_limiter = limiter or rate_limiter

    async def register_user(self, user_create: UserCreate, client_ip: str) -> Tuple[UserRecord, Token]:
        await self.rate_limiter.check_rate_limit(f"register_{client_ip}")

        if await self.store.get_user_by_email(user_create.email):
            raise ValidationError("User with this email already exists")

        user = await self.store.create_user(
            name=user_create.name,
            email=user_create.email.lower(),
            password_hash=get_password_hash(user_create.password),
        )
        token = self._generate_tokens(user.id)

        await self.rate_limiter.clear_attempts(f"register_{client_ip}")
        logger.info(f"Registered user {user.id}")
        return user, token

    async def authenticate_user(self, email: str, password: str, client_ip: str) -> Tuple[UserRecord, Token]:
        email = email.lower()

        # Проверка rate limit по email и IP
        await self.rate_limiter.check_rate_limit(f"login_email_{email}")
        await self.rate_limiter.check_rate_limit(f"login_ip_{client_ip}")

        user = await self.store.get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid email or password")

        token = self._generate_tokens(user.id)

        await self.rate_limiter.clear_attempts(f"login_email_{email}")
        await self.rate_limiter.clear_attempts(f"login_ip_{client_ip}")
        return user, token

    async def refresh_tokens(self, refresh_token: str) -> Token:
        """Обновление access token с помощью refresh token"""
        user = await self._user_from_token(refresh_token, "refresh")
        return self._generate_tokens(user.id)

    async def get_current_user(self, token: str) -> UserRecord:
        return await self._user_from_token(token, "access")

    async def _user_from_token(self, token: str, token_type: TokenType) -> UserRecord:
        try:
            user_id = decode_token(token, token_type)
        except ValueError as e:
            raise AuthenticationError(str(e))

        user = await self.store.get_user(user_id)
        if not user:
            raise AuthenticationError("User not found")
        return user

    def _generate_tokens(self, user_id: int) -> Token:
        """Генерация пары access/refresh токенов"""
        return Token(
            access_token=create_token(user_id, "access"),
            refresh_token=create_token(user_id, "refresh"),
            expires_in=int(token_lifetime("access").total_seconds()),
        )
