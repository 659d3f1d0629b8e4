from fastapi import APIRouter, Depends, HTTPException

from wingx.api.deps import get_services, get_session
from wingx.application.schemas import (
    GoogleSignInRequest,
    ImageKitAuth,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserRead,
)
from wingx.application.session import DashboardSession
from wingx.auth_local import create_access_token, token_expiry
from wingx.container import Services
from wingx.core import get_logger
from wingx.domain.errors import AuthError
from wingx.domain.models import User
from wingx.infrastructure.imagekit import sign_upload

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_failed(error: AuthError, status_code: int = 401) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": error.code, "message": error.message})


def _open_session(services: Services, user: User) -> TokenResponse:
    read = UserRead.model_validate(user)
    expires_at = token_expiry()
    session = services.registry.create(read, expires_at)
    token = create_access_token(read.id, read.role, session.session_id, expires_at=expires_at)
    return TokenResponse(access_token=token, user=read)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(payload: RegisterRequest, services: Services = Depends(get_services)):
    try:
        user = await services.auth.register(payload.email, payload.password, payload.display_name)
    except AuthError as e:
        raise _auth_failed(e, status_code=400)
    return _open_session(services, user)


@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, services: Services = Depends(get_services)):
    try:
        user = await services.auth.sign_in(payload.email, payload.password)
    except AuthError as e:
        logger.info(f"Sign-in refused: {e.code}")
        raise _auth_failed(e)
    return _open_session(services, user)


@router.post("/google", response_model=TokenResponse)
async def google_sign_in(payload: GoogleSignInRequest, services: Services = Depends(get_services)):
    try:
        user = await services.auth.sign_in_with_google(payload.id_token, payload.popup_error)
    except AuthError as e:
        raise _auth_failed(e)
    return _open_session(services, user)


@router.post("/logout")
async def logout(session: DashboardSession = Depends(get_session), services: Services = Depends(get_services)):
    services.registry.close(session.session_id)
    return {"redirect": "/login"}


@router.get("/me", response_model=UserRead)
async def me(session: DashboardSession = Depends(get_session)):
    return session.user


@router.get("/imagekit", response_model=ImageKitAuth)
def imagekit_auth(services: Services = Depends(get_services)):
    """Upload signature for the browser and for server-side uploads."""
    settings = services.settings
    if not settings.IMAGEKIT_PRIVATE_KEY:
        raise HTTPException(status_code=503, detail="Subida de imágenes no configurada")
    return sign_upload(settings.IMAGEKIT_PRIVATE_KEY, ttl_seconds=settings.IMAGEKIT_TOKEN_TTL_SEC)
