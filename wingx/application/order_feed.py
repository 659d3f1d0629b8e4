from typing import Callable, Optional

from wingx.application.schemas import OrderRead
from wingx.domain.errors import FeedError, RoleNotAllowed
from wingx.domain.models import PAYMENT_ROLES, Role
from wingx.infrastructure.live_query import Subscription
from wingx.infrastructure.repositories import OrderRepository


class LiveOrderFeed:
    """Orders awaiting payment verification, newest first, pushed on every change."""

    def __init__(self, orders: OrderRepository, poll_interval: float):
        self.orders = orders
        self.poll_interval = poll_interval

    def subscribe(
        self,
        role: str,
        on_snapshot: Callable[[list[OrderRead]], None],
        on_error: Optional[Callable[[FeedError], None]] = None,
    ) -> Subscription:
        if Role(role) not in PAYMENT_ROLES:
            raise RoleNotAllowed("No tienes permisos para ver los pagos.")
        query = self.orders.pending_query(self.poll_interval)
        return query.subscribe(on_snapshot, on_error)
