from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from wingx.api.deps import require_payments_role
from wingx.application.formatting import format_amount, short_order_id
from wingx.application.schemas import ApprovalPrompt, ApproveRequest, OrderRead, RejectRequest, VerificationResponse
from wingx.application.session import DashboardSession
from wingx.application.verification import RequestConfirmer, bank_name
from wingx.domain.errors import PersistenceError, StatusTransitionError

router = APIRouter(prefix="/api/verification", tags=["verification"])


def _order_payload(order: OrderRead) -> dict:
    data = order.model_dump(mode="json")
    data["short_id"] = short_order_id(order.id)
    data["display_name"] = order.display_name
    data["total"] = format_amount(order.total_price, min_fraction_digits=2)
    if order.payment_proof:
        data["payment_proof"]["bank_name"] = bank_name(order.payment_proof.origin_bank)
    return data


@router.get("/orders")
async def pending_orders(q: Optional[str] = None, session: DashboardSession = Depends(require_payments_role)):
    view = session.view
    orders = view.search(q) if q else view.orders
    return {
        "orders": [_order_payload(o) for o in orders],
        "loading": view.loading,
        "error": view.error,
    }


@router.get("/orders/{order_id}/prompt", response_model=ApprovalPrompt)
async def approval_prompt(order_id: str, session: DashboardSession = Depends(require_payments_role)):
    try:
        return session.workflow.prompt_for(order_id)
    except StatusTransitionError as e:
        raise HTTPException(status_code=404, detail=e.message)


async def _run(action, order_id: str, confirmer: RequestConfirmer) -> VerificationResponse:
    try:
        return await action(order_id, confirmer)
    except StatusTransitionError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except PersistenceError as e:
        raise HTTPException(status_code=502, detail=e.message)


@router.post("/orders/{order_id}/approve", response_model=VerificationResponse)
async def approve(order_id: str, payload: ApproveRequest, session: DashboardSession = Depends(require_payments_role)):
    return await _run(session.workflow.approve, order_id, RequestConfirmer(payload.confirm))


@router.post("/orders/{order_id}/reject", response_model=VerificationResponse)
async def reject(order_id: str, payload: RejectRequest, session: DashboardSession = Depends(require_payments_role)):
    return await _run(session.workflow.reject, order_id, RequestConfirmer(payload.confirm, payload.reason))


@router.post("/retry")
async def retry_feed(session: DashboardSession = Depends(require_payments_role)):
    return {"retried": session.retry_feed()}
