from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wingx.application.session import DashboardSession
from wingx.auth_local import decode_access_token
from wingx.container import Services
from wingx.core import set_request_context
from wingx.domain.models import PAYMENT_ROLES
from wingx.infrastructure.imagekit import ImageKitUploader

bearer = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


def session_from_token(services: Services, token: str) -> Optional[DashboardSession]:
    """Live session behind an access token, or None when it expired or was closed."""
    services.registry.close_expired()
    claims = decode_access_token(token)
    if not claims or "sid" not in claims:
        return None
    session = services.registry.get(claims["sid"])
    if session is None or session.user is None:
        return None
    set_request_context(user_id=claims.get("sub"), session_id=session.session_id)
    return session


def get_optional_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    services: Services = Depends(get_services),
) -> Optional[DashboardSession]:
    if credentials is None:
        return None
    return session_from_token(services, credentials.credentials)


def get_session(session: Optional[DashboardSession] = Depends(get_optional_session)) -> DashboardSession:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesión inválida o expirada",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def require_payments_role(session: DashboardSession = Depends(get_session)) -> DashboardSession:
    if session.provider.role not in PAYMENT_ROLES:
        raise HTTPException(status_code=403, detail="No tienes permisos para ver los pagos.")
    return session


def get_uploader(services: Services = Depends(get_services)) -> ImageKitUploader:
    return services.uploader
