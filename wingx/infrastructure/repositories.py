"""Document-store access: live queries, guarded partial updates and creates.

Writes run in the threadpool and notify the change signal once committed so
every live query re-reads immediately.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from wingx.application.schemas import OrderCreate, OrderRead, ProductCreate, ProductRead
from wingx.domain.errors import PersistenceError, StatusTransitionError
from wingx.domain.models import Order, OrderItem, OrderStatus, Product, User
from wingx.infrastructure.live_query import ChangeSignal, LiveQuery

logger = logging.getLogger(__name__)

# Replaced by the database clock when the update is executed
SERVER_TIMESTAMP = object()

PENDING_FEED_ERROR = (
    "No se pudieron cargar las órdenes pendientes. "
    "Verifica que exista el índice en la base de datos."
)


class OrderRepository:
    def __init__(self, session_factory: Callable[[], Session], signal: ChangeSignal):
        self.session_factory = session_factory
        self.signal = signal

    def list_pending(self) -> list[OrderRead]:
        with self.session_factory() as db:
            rows = db.scalars(
                select(Order)
                .where(Order.status == OrderStatus.PENDING_VERIFICATION.value)
                .order_by(Order.created_at.desc())
            ).all()
            return [OrderRead.from_model(o) for o in rows]

    def pending_query(self, poll_interval: float) -> LiveQuery[OrderRead]:
        return LiveQuery(
            fetch=self.list_pending,
            signal=self.signal,
            poll_interval=poll_interval,
            fingerprint=lambda order: order.model_dump_json(),
            error_message=PENDING_FEED_ERROR,
        )

    def get(self, order_id: str) -> Optional[OrderRead]:
        with self.session_factory() as db:
            order = db.get(Order, order_id)
            return OrderRead.from_model(order) if order else None

    def _update_fields(self, order_id: str, fields: Dict[str, Any], expected_status: Optional[str]) -> None:
        values = {k: (func.now() if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}
        stmt = update(Order).where(Order.id == order_id)
        if expected_status is not None:
            stmt = stmt.where(Order.status == expected_status)
        with self.session_factory() as db:
            try:
                result = db.execute(stmt.values(**values))
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(f"Order update failed for {order_id}: {exc}")
                raise PersistenceError("No se pudo actualizar la orden.") from exc
        if result.rowcount == 0:
            raise StatusTransitionError("La orden ya no está pendiente de verificación.")

    async def update_fields(
        self,
        order_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[str] = OrderStatus.PENDING_VERIFICATION.value,
    ) -> None:
        """Single all-or-nothing UPDATE; only applies while the order has `expected_status`."""
        await run_in_threadpool(self._update_fields, order_id, fields, expected_status)
        self.signal.notify()

    def _create(self, data: OrderCreate) -> OrderRead:
        order = Order(
            total_price=data.total_price,
            client_name=data.client_name,
            notes=data.notes,
            status=OrderStatus.PENDING_VERIFICATION.value,
        )
        if data.id:
            order.id = data.id
        if data.created_at:
            order.created_at = data.created_at
        if data.customer:
            order.customer_name = data.customer.name
            order.customer_phone = data.customer.phone
            order.customer_address = data.customer.address
            order.customer_email = data.customer.email
            order.delivery_method = data.customer.delivery_method
        if data.payment_proof:
            order.origin_bank = data.payment_proof.origin_bank
            order.origin_phone = data.payment_proof.origin_phone
            order.payer_id = data.payment_proof.payer_id
            order.reference_number = data.payment_proof.reference_number
            order.payment_date = data.payment_proof.payment_date
        order.items = [
            OrderItem(position=pos, **item.model_dump())
            for pos, item in enumerate(data.items)
        ]
        with self.session_factory() as db:
            try:
                db.add(order)
                db.commit()
                db.refresh(order)
                return OrderRead.from_model(order)
            except SQLAlchemyError as exc:
                db.rollback()
                raise PersistenceError("No se pudo registrar la orden.") from exc

    async def create(self, data: OrderCreate) -> OrderRead:
        order = await run_in_threadpool(self._create, data)
        self.signal.notify()
        return order


class ProductRepository:
    def __init__(self, session_factory: Callable[[], Session], signal: ChangeSignal):
        self.session_factory = session_factory
        self.signal = signal

    def list(self) -> list[ProductRead]:
        with self.session_factory() as db:
            rows = db.scalars(select(Product).order_by(Product.created_at.desc())).all()
            return [ProductRead.model_validate(p) for p in rows]

    def _create(self, data: ProductCreate) -> ProductRead:
        with self.session_factory() as db:
            try:
                obj = Product(**data.model_dump())
                db.add(obj)
                db.commit()
                db.refresh(obj)
                return ProductRead.model_validate(obj)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(f"Product create failed: {exc}")
                raise PersistenceError("No se pudo guardar") from exc

    async def create(self, data: ProductCreate) -> ProductRead:
        product = await run_in_threadpool(self._create, data)
        self.signal.notify()
        return product


class UserRepository:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_by_email(self, email: str) -> Optional[User]:
        with self.session_factory() as db:
            return db.scalars(select(User).where(User.email == email.lower())).first()

    def get(self, user_id: str) -> Optional[User]:
        with self.session_factory() as db:
            return db.get(User, user_id)

    def create(self, **fields) -> User:
        """Raises IntegrityError when the e-mail is already taken."""
        with self.session_factory() as db:
            user = User(**fields)
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise
            db.refresh(user)
            return user
