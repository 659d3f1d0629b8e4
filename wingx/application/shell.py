"""Dashboard chrome: route guard, sidebar, mobile bottom nav and the new-order toast."""

from typing import Optional

from wingx.application.schemas import UserRead
from wingx.domain.models import PAYMENT_ROLES

LOGIN_PATH = "/login"
PUBLIC_PATHS = {LOGIN_PATH}

SIDEBAR_LINKS = [
    {"name": "Prendas", "href": "/prendas", "icon": "shirt"},
    {"name": "En Stock", "href": "/inventario", "icon": "package"},
    {"name": "Tienda Online", "href": "/tienda", "icon": "shopping-bag"},
    {"name": "Verificar Pagos", "href": "/verificacion-pagos", "icon": "credit-card"},
    {"name": "Pedidos", "href": "/pedidos", "icon": "clipboard-list"},
    {"name": "Agenda", "href": "/agenda", "icon": "calendar"},
    {"name": "Clientes", "href": "/clientes", "icon": "users"},
    {"name": "Materiales", "href": "/materiales", "icon": "shopping-cart"},
]

MOBILE_NAV = [
    {"name": "Pedidos", "href": "/pedidos", "icon": "clipboard-list"},
    {"name": "Agenda", "href": "/agenda", "icon": "calendar"},
    {"name": "Stock", "href": "/inventario", "icon": "package"},
    {"name": "Clientes", "href": "/clientes", "icon": "users"},
]

# Only shown to admin and store operators
RESTRICTED_LINKS = {"/tienda", "/verificacion-pagos"}
BADGE_LINK = "/verificacion-pagos"


def is_active(href: str, path: str) -> bool:
    return path == href or path.startswith(f"{href}/")


def guard_route(path: str, user: Optional[UserRead]) -> Optional[str]:
    """Redirect target for `path`, or None when it may be rendered."""
    if path in PUBLIC_PATHS or user is not None:
        return None
    return LOGIN_PATH


def badge_text(count: int) -> str:
    return "99+" if count > 99 else str(count)


def build_navigation(role: Optional[str], pending_count: int = 0, has_new_orders: bool = False,
                     path: str = "/") -> list[dict]:
    links = []
    for link in SIDEBAR_LINKS:
        if link["href"] in RESTRICTED_LINKS and role not in PAYMENT_ROLES:
            continue
        item = dict(link, active=is_active(link["href"], path), badge=None)
        if link["href"] == BADGE_LINK and pending_count > 0:
            item["badge"] = {"text": badge_text(pending_count), "urgent": has_new_orders}
        links.append(item)
    return links


def build_mobile_navigation(path: str = "/") -> list[dict]:
    return [dict(link, active=is_active(link["href"], path)) for link in MOBILE_NAV]


def build_shell(user: UserRead, engine, path: str = "/") -> dict:
    """Everything the layout needs besides the page itself."""
    return {
        "user": user.model_dump(),
        "sidebar": build_navigation(user.role, engine.pending_count, engine.has_new_orders, path),
        "mobile_nav": build_mobile_navigation(path),
        "toast": engine.toast(),
        "feed_error": engine.feed_error,
    }
