"""Domain errors raised by the application and infrastructure layers.

The API layer translates them into HTTP responses; nothing below it knows
about status codes.
"""

from typing import Optional

# Firebase-style codes, kept so the browser can keep its existing handling
AUTH_ERROR_MESSAGES = {
    "auth/email-already-in-use": "El correo ya está registrado.",
    "auth/invalid-credential": "Credenciales incorrectas.",
    "auth/user-not-found": "Usuario no encontrado.",
    "auth/wrong-password": "Contraseña incorrecta.",
    "auth/weak-password": "La contraseña es muy débil.",
    "auth/popup-closed-by-user": "Ventana de Google cerrada. Intenta de nuevo.",
    "auth/popup-blocked": (
        "El navegador bloqueó la ventana emergente. "
        "Permite ventanas emergentes e intenta de nuevo."
    ),
}
DEFAULT_AUTH_ERROR_MESSAGE = "Ocurrió un error al procesar tu solicitud."


def message_for_code(code: str) -> str:
    return AUTH_ERROR_MESSAGES.get(code, DEFAULT_AUTH_ERROR_MESSAGE)


class WingxError(Exception):
    """Base class; `message` is the operator-facing (Spanish) text."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(WingxError):
    def __init__(self, code: str, message: Optional[str] = None):
        super().__init__(message or message_for_code(code))
        self.code = code


class RoleNotAllowed(WingxError):
    pass


class FeedError(WingxError):
    """Fatal for the subscription that received it; recovery is a manual retry."""


class PersistenceError(WingxError):
    pass


class StatusTransitionError(PersistenceError):
    """The order is missing or no longer pending verification."""


class UploadError(WingxError):
    pass


class DraftValidationError(WingxError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
