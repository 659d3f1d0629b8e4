"""
New-order notifications for one dashboard session.

The engine listens to the live order feed while the session belongs to an
admin or store operator. The first delivery after (re)subscribing only sets
the baseline count; afterwards every delivery with more pending orders than
the previous one raises exactly one alert. Alerts and badge updates are
published as plain dict events to the attached sinks (the session's open
WebSocket connections), which turn them into sound, OS notifications and
toasts in the browser.
"""

from enum import Enum
from typing import Callable, Optional, Protocol

from wingx.application.formatting import format_amount
from wingx.application.schemas import OrderRead, PermissionState, UserRead
from wingx.core import get_logger
from wingx.domain.errors import FeedError
from wingx.domain.models import PAYMENT_ROLES
from wingx.infrastructure.live_query import Subscription

logger = get_logger(__name__)

AlertSink = Callable[[dict], None]

NEW_ORDER_TITLE = "🔔 Nuevo Pedido Web"
VERIFICATION_PATH = "/verificacion-pagos"
SOUND_VOLUME = 0.5

PERMISSION_PROMPT = {
    "type": "permission_prompt",
    "title": "🔔 Activar Notificaciones",
    "text": "Recibe alertas instantáneas cuando llegue un nuevo pedido desde la tienda.",
    "confirm_text": "✅ Sí, activar",
    "cancel_text": "Ahora no",
}


class OrderFeed(Protocol):
    def subscribe(self, role: str, on_snapshot, on_error=None) -> Subscription: ...


class EngineState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


def order_summary(order: OrderRead) -> str:
    return f"{order.display_name} - ${format_amount(order.total_price)}"


class NotificationEngine:
    def __init__(self, feed: OrderFeed):
        self.feed = feed
        self.state = EngineState.IDLE
        self.pending_count = 0
        self.previous_count = 0
        self.has_new_orders = False
        self.latest_order: Optional[OrderRead] = None
        self.feed_error: Optional[str] = None
        self.permission: PermissionState = "default"
        self._permission_offered = False
        self._first_delivery = True
        self._role: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._sinks: list[AlertSink] = []

    # ---- lifecycle ----

    def start(self, user: Optional[UserRead]) -> None:
        """Enter Listening for admin/store users; anyone else leaves the engine Idle."""
        if user is None or user.role not in PAYMENT_ROLES:
            self.stop()
            return
        if self.state is EngineState.LISTENING and self._role == user.role:
            return
        self._cancel_subscription()
        self._role = user.role
        self._listen()

    def stop(self) -> None:
        self._cancel_subscription()
        was_listening = self.state is EngineState.LISTENING
        self.state = EngineState.IDLE
        self._role = None
        self.previous_count = 0
        self.pending_count = 0
        self.latest_order = None
        self.has_new_orders = False
        self.feed_error = None
        self._first_delivery = True
        if was_listening:
            self._publish({"type": "pending_count", "count": 0})

    def retry(self) -> bool:
        """Operator-initiated resubscription after a feed error."""
        if self._role is None or self.feed_error is None:
            return False
        self._cancel_subscription()
        self._listen()
        return True

    @property
    def synced(self) -> bool:
        """True once the baseline delivery of the current subscription arrived."""
        return self.state is EngineState.LISTENING and not self._first_delivery

    def _listen(self) -> None:
        self.state = EngineState.LISTENING
        self.previous_count = 0
        self._first_delivery = True
        self.feed_error = None
        self._subscription = self.feed.subscribe(self._role, self.handle_delivery, self.handle_error)

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    # ---- feed callbacks ----

    def handle_delivery(self, orders: list[OrderRead]) -> bool:
        """Process one snapshot; returns True when it raised an alert."""
        if self.state is not EngineState.LISTENING:
            return False
        count = len(orders)
        notify = False
        if self._first_delivery:
            self._first_delivery = False
        elif count > self.previous_count:
            notify = True
            self.has_new_orders = True
            self.latest_order = orders[0]
        self.previous_count = count
        self.pending_count = count
        self._publish({"type": "pending_count", "count": count})
        if notify:
            self._alert(self.latest_order)
        return notify

    def handle_error(self, error: FeedError) -> None:
        logger.error(f"Order feed stopped: {error.message}")
        self._subscription = None
        self.feed_error = error.message
        self._publish({"type": "feed_error", "message": error.message, "retry": "/api/verification/retry"})

    # ---- operator actions ----

    def clear_new_orders(self) -> None:
        self.has_new_orders = False
        self.latest_order = None
        self._publish({"type": "toast_cleared"})

    def report_permission(self, permission: PermissionState) -> bool:
        """Record the browser's permission state; True when the prompt should be shown now."""
        self.permission = permission
        if self._permission_offered or self._role is None or permission != "default":
            return False
        self._permission_offered = True
        return True

    def toast(self) -> Optional[dict]:
        if not (self.has_new_orders and self.latest_order):
            return None
        return {
            "title": NEW_ORDER_TITLE,
            "body": order_summary(self.latest_order),
            "order_id": self.latest_order.id,
            "action": {"label": "Ver Pedido →", "href": VERIFICATION_PATH},
        }

    # ---- sinks ----

    def add_sink(self, sink: AlertSink) -> Callable[[], None]:
        self._sinks.append(sink)

        def remove():
            if sink in self._sinks:
                self._sinks.remove(sink)
        return remove

    def _alert(self, order: OrderRead) -> None:
        self._publish({"type": "new_order", "toast": self.toast()})
        self._publish({"type": "play_sound", "volume": SOUND_VOLUME})
        if self.permission == "granted":
            self._publish({
                "type": "os_notification",
                "title": NEW_ORDER_TITLE,
                "body": order_summary(order),
                "icon": "/icon-192x192.png",
                "tag": "new-order",
            })

    def _publish(self, event: dict) -> None:
        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception as e:
                # A dead connection must never break the feed
                logger.warning(f"Could not deliver {event['type']} event: {e}")
