import asyncio
from datetime import datetime
from urllib.parse import unquote

import pytest

from wingx.application.schemas import CustomerInfo, OrderRead, PaymentProof
from wingx.application.verification import (
    DEFAULT_REJECTION_REASON,
    FeedFailed,
    OptimisticRemoval,
    PendingOrdersView,
    RequestConfirmer,
    Reset,
    SnapshotConfirmed,
    VerificationWorkflow,
    approval_message,
    bank_name,
    normalize_phone,
)
from wingx.domain.errors import PersistenceError, StatusTransitionError
from wingx.infrastructure.repositories import SERVER_TIMESTAMP


def make_order(order_id="abcdef123456", name="María", phone="04121234567", reference="987654", total=45.0):
    return OrderRead(
        id=order_id,
        items=[],
        total_price=total,
        customer=CustomerInfo(name=name, phone=phone),
        payment_proof=PaymentProof(
            origin_bank="banesco", origin_phone=phone, payer_id="V-1",
            reference_number=reference, payment_date="2024-01-15",
        ),
        status="pending_verification",
        created_at=datetime(2024, 1, 15),
    )


class FakeWriter:
    def __init__(self, error=None):
        self.updates = []
        self.error = error

    async def update_fields(self, order_id, fields, expected_status="pending_verification"):
        if self.error:
            raise self.error
        self.updates.append((order_id, fields))


def workflow_with(*orders, writer=None):
    view = PendingOrdersView()
    view.apply(SnapshotConfirmed(list(orders)))
    return VerificationWorkflow(writer or FakeWriter(), view), view


class TestPhoneNormalization:
    @pytest.mark.parametrize("raw, expected", [
        ("04121234567", "584121234567"),
        ("0412-123 4567", "584121234567"),
        ("(0412) 1234567", "584121234567"),
        ("584121234567", "584121234567"),
        ("+58 412 1234567", "584121234567"),
        ("4121234567", "584121234567"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_phone(raw) == expected


def test_approval_message_template():
    message = approval_message("María", "ABCDEF12", "45,00")
    assert message.startswith("¡Hola María! 🎉")
    assert "*Orden:* #ABCDEF12" in message
    assert "*Monto:* $45,00" in message
    assert message.endswith("_Wingx_")


def test_bank_name_falls_back_to_code():
    assert bank_name("bdv") == "Banco de Venezuela"
    assert bank_name("desconocido") == "desconocido"


class TestPendingView:
    def test_snapshot_replaces_local_state(self):
        view = PendingOrdersView()
        assert view.loading
        view.apply(SnapshotConfirmed([make_order("a"), make_order("b")]))
        view.apply(OptimisticRemoval("a"))
        assert [o.id for o in view.orders] == ["b"]
        view.apply(SnapshotConfirmed([make_order("a"), make_order("b")]))
        assert [o.id for o in view.orders] == ["a", "b"]
        assert not view.loading

    def test_feed_failure_and_reset(self):
        view = PendingOrdersView()
        view.apply(FeedFailed("sin índice"))
        assert view.error == "sin índice"
        assert not view.loading
        view.apply(Reset())
        assert view.error is None and view.loading and view.orders == []

    def test_search_by_id_reference_and_name(self):
        view = PendingOrdersView()
        view.apply(SnapshotConfirmed([
            make_order("ord111", name="María Pérez", reference="555000"),
            make_order("ord222", name="José", reference="123456"),
        ]))
        assert [o.id for o in view.search("PÉREZ")] == ["ord111"]
        assert [o.id for o in view.search("1234")] == ["ord222"]
        assert [o.id for o in view.search("ORD2")] == ["ord222"]
        assert len(view.search("  ")) == 2
        assert len(view.orders) == 2

    def test_search_checks_legacy_client_name(self):
        legacy = make_order("ord333", name="").model_copy(update={"client_name": "Carla Ruiz"})
        view = PendingOrdersView()
        view.apply(SnapshotConfirmed([legacy, make_order("ord444", name="José")]))
        assert [o.id for o in view.search("carla")] == ["ord333"]


def test_prompt_shows_short_id_and_total():
    workflow, _ = workflow_with(make_order("abcdef123456", total=1234.5))
    prompt = workflow.prompt_for("abcdef123456")
    assert prompt.short_id == "ABCDEF12"
    assert prompt.customer_name == "María"
    assert prompt.total == "1.234,50"


def test_approve_updates_and_links_whatsapp():
    writer = FakeWriter()
    workflow, view = workflow_with(make_order("abcdef123456"), writer=writer)

    result = asyncio.run(workflow.approve("abcdef123456", RequestConfirmer(True)))

    assert result.outcome == "approved"
    order_id, fields = writer.updates[0]
    assert order_id == "abcdef123456"
    assert fields["status"] == "paid"
    assert fields["verified_at"] is SERVER_TIMESTAMP
    assert fields["updated_at"] is SERVER_TIMESTAMP
    assert view.orders == []
    assert result.customer_message_url.startswith("https://wa.me/584121234567?text=")
    assert "#ABCDEF12" in unquote(result.customer_message_url)
    assert workflow.processing_id is None


def test_approve_without_phone_has_no_link():
    workflow, _ = workflow_with(make_order("abc", phone=""))
    result = asyncio.run(workflow.approve("abc", RequestConfirmer(True)))
    assert result.outcome == "approved"
    assert result.customer_message_url is None


def test_cancelled_confirmation_writes_nothing():
    writer = FakeWriter()
    workflow, view = workflow_with(make_order("abc"), writer=writer)
    result = asyncio.run(workflow.approve("abc", RequestConfirmer(False)))
    assert result.outcome == "cancelled"
    assert writer.updates == []
    assert len(view.orders) == 1


def test_busy_workflow_ignores_second_action():
    writer = FakeWriter()
    workflow, view = workflow_with(make_order("a"), make_order("b"), writer=writer)
    workflow.processing_id = "a"

    assert asyncio.run(workflow.approve("b", RequestConfirmer(True))).outcome == "ignored"
    assert asyncio.run(workflow.reject("b", RequestConfirmer(True))).outcome == "ignored"
    assert writer.updates == []
    assert len(view.orders) == 2


def test_concurrent_approvals_only_one_runs():
    class SlowWriter(FakeWriter):
        async def update_fields(self, order_id, fields, expected_status="pending_verification"):
            await asyncio.sleep(0.01)
            await super().update_fields(order_id, fields, expected_status)

    writer = SlowWriter()
    workflow, _ = workflow_with(make_order("a"), make_order("b"), writer=writer)

    async def both():
        return await asyncio.gather(
            workflow.approve("a", RequestConfirmer(True)),
            workflow.approve("b", RequestConfirmer(True)),
        )

    outcomes = sorted(r.outcome for r in asyncio.run(both()))
    assert outcomes == ["approved", "ignored"]
    assert len(writer.updates) == 1


def test_failed_write_keeps_order_and_releases_lock():
    writer = FakeWriter(error=PersistenceError("No se pudo actualizar la orden."))
    workflow, view = workflow_with(make_order("abc"), writer=writer)

    with pytest.raises(PersistenceError):
        asyncio.run(workflow.approve("abc", RequestConfirmer(True)))
    assert len(view.orders) == 1
    assert workflow.processing_id is None


def test_reject_uses_default_reason():
    writer = FakeWriter()
    workflow, view = workflow_with(make_order("a"), make_order("b"), writer=writer)

    assert asyncio.run(workflow.reject("a", RequestConfirmer(True, "   "))).outcome == "rejected"
    asyncio.run(workflow.reject("b", RequestConfirmer(True, " Monto incompleto ")))

    assert writer.updates[0][1]["rejection_reason"] == DEFAULT_REJECTION_REASON
    assert writer.updates[0][1]["status"] == "rejected"
    assert writer.updates[1][1]["rejection_reason"] == "Monto incompleto"
    assert view.orders == []


def test_unknown_order_cannot_be_prompted():
    workflow, _ = workflow_with(make_order("a"))
    with pytest.raises(StatusTransitionError):
        workflow.prompt_for("zzz")
