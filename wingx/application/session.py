"""
Per-login dashboard sessions.

Each successful sign-in creates one `DashboardSession` holding everything the
operator's browser works with: who is signed in, the notification engine, the
pending-orders view behind the verification page, the verification workflow
and the new-product form. Nothing is shared between sessions. The session id
travels in the `sid` claim of the access token.
"""

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from wingx.application.catalog import ProductDraft, ProductPublisher
from wingx.application.notifications import NotificationEngine
from wingx.application.order_feed import LiveOrderFeed
from wingx.application.schemas import OrderRead, UserRead
from wingx.application.verification import (
    FeedFailed,
    PendingOrdersView,
    Reset,
    SnapshotConfirmed,
    VerificationWorkflow,
)
from wingx.core import get_logger
from wingx.core_settings import Settings
from wingx.domain.errors import FeedError
from wingx.domain.models import PAYMENT_ROLES
from wingx.infrastructure.live_query import Subscription
from wingx.infrastructure.repositories import OrderRepository, ProductRepository

logger = get_logger(__name__)

UserListener = Callable[[Optional[UserRead]], None]


class SessionProvider:
    """Current user of a session; listeners see every change."""

    def __init__(self):
        self.user: Optional[UserRead] = None
        self._listeners: list[UserListener] = []

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    def subscribe(self, listener: UserListener) -> Subscription:
        self._listeners.append(listener)
        listener(self.user)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return Subscription(remove)

    def set_user(self, user: Optional[UserRead]) -> None:
        self.user = user
        for listener in list(self._listeners):
            listener(user)


class DashboardSession:
    def __init__(
        self,
        session_id: str,
        feed: LiveOrderFeed,
        orders: OrderRepository,
        products: ProductRepository,
        settings: Settings,
    ):
        self.session_id = session_id
        # Set by the registry; the session dies with its access token
        self.expires_at: Optional[datetime] = None
        self.feed = feed
        self.provider = SessionProvider()
        self.engine = NotificationEngine(feed)
        self.view = PendingOrdersView()
        self.workflow = VerificationWorkflow(
            orders, self.view,
            whatsapp_base_url=settings.WHATSAPP_BASE_URL,
            country_code=settings.PHONE_COUNTRY_CODE,
        )
        self.draft = ProductDraft()
        self.publisher = ProductPublisher(products)
        self._provider_subscription: Optional[Subscription] = None
        self._view_subscription: Optional[Subscription] = None

    @property
    def user(self) -> Optional[UserRead]:
        return self.provider.user

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def start(self, user: UserRead) -> None:
        """Must run on the event loop: the live subscriptions are loop tasks."""
        if self._provider_subscription is None:
            self._provider_subscription = self.provider.subscribe(self._on_user)
        self.provider.set_user(user)

    def stop(self) -> None:
        self.provider.set_user(None)
        if self._provider_subscription is not None:
            self._provider_subscription.cancel()
            self._provider_subscription = None

    def retry_feed(self) -> bool:
        """Resubscribe whatever stopped on a feed error; False when nothing had failed."""
        retried = self.engine.retry()
        if self.view.error is not None and self.provider.role in PAYMENT_ROLES:
            self._cancel_view()
            self._watch_pending()
            retried = True
        return retried

    # ---- user changes ----

    def _on_user(self, user: Optional[UserRead]) -> None:
        self.engine.start(user)
        if user is not None and user.role in PAYMENT_ROLES:
            if self._view_subscription is None:
                self._watch_pending()
        else:
            self._cancel_view()

    def _watch_pending(self) -> None:
        self.view.apply(Reset())
        self._view_subscription = self.feed.subscribe(self.provider.role, self._on_pending, self._on_pending_error)

    def _cancel_view(self) -> None:
        if self._view_subscription is not None:
            self._view_subscription.cancel()
            self._view_subscription = None
        self.view.apply(Reset())

    def _on_pending(self, orders: list[OrderRead]) -> None:
        self.view.apply(SnapshotConfirmed(orders))

    def _on_pending_error(self, error: FeedError) -> None:
        logger.error(f"Pending view of session {self.session_id} stopped: {error.message}")
        self._view_subscription = None
        self.view.apply(FeedFailed(error.message))


class SessionRegistry:
    def __init__(self, factory: Callable[[str], DashboardSession]):
        self.factory = factory
        self._sessions: dict[str, DashboardSession] = {}

    def create(self, user: UserRead, expires_at: Optional[datetime] = None) -> DashboardSession:
        session = self.factory(uuid.uuid4().hex)
        session.expires_at = expires_at
        session.start(user)
        self._sessions[session.session_id] = session
        logger.info(f"Opened session {session.session_id} for {user.id}")
        return session

    def get(self, session_id: str) -> Optional[DashboardSession]:
        return self._sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.stop()
        logger.info(f"Closed session {session_id}")
        return True

    def close_expired(self, now: Optional[datetime] = None) -> int:
        """Close every session whose access token has expired."""
        now = now or datetime.now(timezone.utc)
        expired = [sid for sid, session in self._sessions.items() if session.is_expired(now)]
        for session_id in expired:
            self.close(session_id)
        return len(expired)

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
