# adaptlearn/api/v1/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from slowapi import Limiter
from slowapi.util import get_remote_address
import logging

from adaptlearn.core.exceptions import AuthenticationError
from adaptlearn.core.schemas.auth import (
    UserCreate,
    UserResponse,
    Token,
    RefreshTokenRequest,
)
from adaptlearn.core.schemas.records import UserRecord
from adaptlearn.core.utils import get_auth_service, get_current_user
from adaptlearn.services.auth_service import AuthService

logger = logging.getLogger(__name__)

# Rate limiter (можно использовать Redis в продакшене)
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["authentication"])


def client_ip_of(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")  # Максимум 5 регистраций в минуту с одного IP
async def register_user(
    request: Request,
    user_create: UserCreate,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Регистрация нового пользователя"""
    client_ip = client_ip_of(request)
    logger.info(f"Registration attempt from IP: {client_ip}")

    user, _ = await auth_service.register_user(user_create, client_ip)
    return user


@router.post("/login", response_model=Token)
@limiter.limit("10/minute")  # Максимум 10 попыток входа в минуту с одного IP
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Логин (email в поле username) и получение токенов"""
    client_ip = client_ip_of(request)
    try:
        _, token = await auth_service.authenticate_user(form_data.username, form_data.password, client_ip)
    except AuthenticationError as e:
        logger.warning(f"Authentication failed from IP: {client_ip}")
        raise HTTPException(
            status_code=e.status_code,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


@router.post("/refresh", response_model=Token)
@limiter.limit("20/hour")  # Максимум 20 обновлений токена в час
async def refresh_access_token(
    request: Request,
    refresh_request: RefreshTokenRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Обновление access token с помощью refresh token"""
    try:
        return await auth_service.refresh_tokens(refresh_request.refresh_token)
    except AuthenticationError as e:
        logger.warning(f"Token refresh failed: {e.detail}")
        raise HTTPException(
            status_code=e.status_code,
            detail=e.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: UserRecord = Depends(get_current_user)):
    return current_user
