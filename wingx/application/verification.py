"""
Manual payment verification.

Operators approve or reject orders waiting in `pending_verification`. All
verification actions of a session are serialized by one in-flight marker: a
second approve/reject while one is running is ignored. Successful actions
remove the order from the session's pending view right away; the live feed
confirms the removal with its next delivery.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Union
from urllib.parse import quote

from wingx.application.formatting import format_amount, short_order_id
from wingx.application.schemas import ApprovalPrompt, OrderRead, VerificationResponse
from wingx.core import get_logger
from wingx.domain.errors import StatusTransitionError
from wingx.domain.models import OrderStatus
from wingx.infrastructure.repositories import SERVER_TIMESTAMP

logger = get_logger(__name__)

DEFAULT_REJECTION_REASON = "Pago no encontrado"

BANK_NAMES = {
    "mercantil": "Mercantil",
    "banesco": "Banesco",
    "bdv": "Banco de Venezuela",
    "provincial": "Provincial",
    "bnc": "BNC",
    "bicentenario": "Bicentenario",
    "exterior": "Exterior",
    "bancaribe": "Bancaribe",
    "venezolano_credito": "Venezolano de Crédito",
    "banplus": "Banplus",
    "fondo_comun": "Fondo Común",
    "100_banco": "100% Banco",
    "sofitasa": "Sofitasa",
    "activo": "Activo",
    "otro": "Otro",
}


def bank_name(code: str) -> str:
    return BANK_NAMES.get(code, code)


def normalize_phone(phone: str, country_code: str = "58") -> str:
    """`"0412-123.4567"` style input to the digits wa.me expects, e.g. `"584121234567"`."""
    formatted = phone
    for separator in (" ", "\t", "-", "(", ")"):
        formatted = formatted.replace(separator, "")
    if not formatted.startswith(country_code) and not formatted.startswith("+" + country_code):
        if formatted.startswith("0"):
            formatted = formatted[1:]
        formatted = country_code + formatted
    return formatted.replace("+", "", 1)


def approval_message(customer_name: str, short_id: str, amount: str) -> str:
    return (
        f"¡Hola {customer_name}! 🎉\n\n"
        f"Tu pago ha sido *VERIFICADO* exitosamente ✅\n\n"
        f"📋 *Orden:* #{short_id}\n"
        f"💰 *Monto:* ${amount}\n\n"
        f"Procederemos con tu pedido de inmediato. ¡Gracias por tu compra! 🛍️\n\n"
        f"_Wingx_"
    )


def whatsapp_url(base_url: str, phone: str, message: str) -> str:
    # Same escaping as encodeURIComponent
    text = quote(message, safe="-_.!~*'()")
    return f"{base_url}/{phone}?text={text}"


def matches_search(order: OrderRead, term: str) -> bool:
    term = term.strip().lower()
    if not term:
        return True
    reference = order.payment_proof.reference_number if order.payment_proof else ""
    customer = order.customer.name if order.customer else ""
    return any(term in value.lower() for value in (order.id, reference, customer, order.client_name or ""))


# ---- pending view ----

@dataclass
class SnapshotConfirmed:
    orders: list[OrderRead]


@dataclass
class OptimisticRemoval:
    order_id: str


@dataclass
class FeedFailed:
    message: str


@dataclass
class Reset:
    pass


ViewAction = Union[SnapshotConfirmed, OptimisticRemoval, FeedFailed, Reset]


class PendingOrdersView:
    """Local copy of the pending list; feed snapshots always replace it."""

    def __init__(self):
        self.orders: list[OrderRead] = []
        self.loading = True
        self.error: Optional[str] = None

    def apply(self, action: ViewAction) -> None:
        if isinstance(action, SnapshotConfirmed):
            self.orders = list(action.orders)
            self.loading = False
            self.error = None
        elif isinstance(action, OptimisticRemoval):
            self.orders = [o for o in self.orders if o.id != action.order_id]
        elif isinstance(action, FeedFailed):
            self.loading = False
            self.error = action.message
        elif isinstance(action, Reset):
            self.orders = []
            self.loading = True
            self.error = None

    def find(self, order_id: str) -> Optional[OrderRead]:
        return next((o for o in self.orders if o.id == order_id), None)

    def search(self, term: str) -> list[OrderRead]:
        return [o for o in self.orders if matches_search(o, term)]


# ---- workflow ----

class Confirmer(Protocol):
    async def confirm_approval(self, prompt: ApprovalPrompt) -> bool: ...

    async def confirm_rejection(self, prompt: ApprovalPrompt) -> tuple[bool, Optional[str]]: ...


class OrderWriter(Protocol):
    async def update_fields(self, order_id: str, fields: dict, expected_status: Optional[str] = ...) -> None: ...


class VerificationWorkflow:
    def __init__(self, orders: OrderWriter, view: PendingOrdersView,
                 whatsapp_base_url: str = "https://wa.me", country_code: str = "58"):
        self.orders = orders
        self.view = view
        self.whatsapp_base_url = whatsapp_base_url
        self.country_code = country_code
        self.processing_id: Optional[str] = None

    def prompt_for(self, order_id: str) -> ApprovalPrompt:
        order = self.view.find(order_id)
        if order is None:
            raise StatusTransitionError("La orden ya no está pendiente de verificación.")
        return ApprovalPrompt(
            order_id=order.id,
            short_id=short_order_id(order.id),
            customer_name=order.display_name,
            total=format_amount(order.total_price, min_fraction_digits=2),
        )

    def customer_message_url(self, order: OrderRead, prompt: ApprovalPrompt) -> Optional[str]:
        phone = order.customer.phone if order.customer else ""
        if not phone:
            return None
        message = approval_message(prompt.customer_name, prompt.short_id, prompt.total)
        return whatsapp_url(self.whatsapp_base_url, normalize_phone(phone, self.country_code), message)

    async def approve(self, order_id: str, confirmer: Confirmer) -> VerificationResponse:
        if self.processing_id is not None:
            return VerificationResponse(outcome="ignored", order_id=order_id)
        prompt = self.prompt_for(order_id)
        if not await confirmer.confirm_approval(prompt):
            return VerificationResponse(outcome="cancelled", order_id=order_id)
        if self.processing_id is not None:
            return VerificationResponse(outcome="ignored", order_id=order_id)

        order = self.view.find(order_id)
        self.processing_id = order_id
        try:
            await self.orders.update_fields(order_id, {
                "status": OrderStatus.PAID.value,
                "verified_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            })
            self.view.apply(OptimisticRemoval(order_id))
            logger.info(f"Order {order_id} approved")
            return VerificationResponse(
                outcome="approved",
                order_id=order_id,
                customer_message_url=self.customer_message_url(order, prompt) if order else None,
            )
        finally:
            self.processing_id = None

    async def reject(self, order_id: str, confirmer: Confirmer) -> VerificationResponse:
        if self.processing_id is not None:
            return VerificationResponse(outcome="ignored", order_id=order_id)
        prompt = self.prompt_for(order_id)
        confirmed, reason = await confirmer.confirm_rejection(prompt)
        if not confirmed:
            return VerificationResponse(outcome="cancelled", order_id=order_id)
        if self.processing_id is not None:
            return VerificationResponse(outcome="ignored", order_id=order_id)

        self.processing_id = order_id
        try:
            await self.orders.update_fields(order_id, {
                "status": OrderStatus.REJECTED.value,
                "rejection_reason": (reason or "").strip() or DEFAULT_REJECTION_REASON,
                "updated_at": SERVER_TIMESTAMP,
            })
            self.view.apply(OptimisticRemoval(order_id))
            logger.info(f"Order {order_id} rejected")
            return VerificationResponse(outcome="rejected", order_id=order_id)
        finally:
            self.processing_id = None


class RequestConfirmer:
    """Confirmation already given by the operator in the request body."""

    def __init__(self, confirmed: bool, reason: Optional[str] = None):
        self.confirmed = confirmed
        self.reason = reason

    async def confirm_approval(self, prompt: ApprovalPrompt) -> bool:
        return self.confirmed

    async def confirm_rejection(self, prompt: ApprovalPrompt) -> tuple[bool, Optional[str]]:
        return self.confirmed, self.reason
