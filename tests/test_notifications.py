from datetime import datetime

from wingx.application.notifications import EngineState, NotificationEngine, order_summary
from wingx.application.schemas import CustomerInfo, OrderRead, UserRead
from wingx.domain.errors import FeedError
from wingx.infrastructure.live_query import Subscription


class FakeFeed:
    def __init__(self):
        self.subscriptions = []

    def subscribe(self, role, on_snapshot, on_error=None):
        sub = Subscription(lambda: None)
        self.subscriptions.append((role, on_snapshot, on_error, sub))
        return sub

    @property
    def active(self):
        return [s for s in self.subscriptions if not s[3].cancelled]


def make_user(role="admin"):
    return UserRead(id="u1", email="a@wingx.com", display_name="Ana", role=role, provider="password")


def make_order(order_id, name="María", total=45.0):
    return OrderRead(
        id=order_id,
        items=[],
        total_price=total,
        customer=CustomerInfo(name=name, phone="04121234567"),
        status="pending_verification",
        created_at=datetime(2024, 1, 15, 10, 0),
    )


def orders(n):
    return [make_order(f"order{i}") for i in range(n)]


def engine_with_events(permission="default"):
    engine = NotificationEngine(FakeFeed())
    events = []
    engine.add_sink(events.append)
    engine.permission = permission
    return engine, events


def types(events):
    return [e["type"] for e in events]


def test_non_payment_roles_stay_idle():
    engine, events = engine_with_events()
    engine.start(make_user("user"))
    assert engine.state is EngineState.IDLE
    assert engine.feed.subscriptions == []
    engine.start(None)
    assert engine.state is EngineState.IDLE
    assert events == []


def test_first_delivery_sets_baseline_silently():
    engine, events = engine_with_events()
    engine.start(make_user("store"))
    assert engine.state is EngineState.LISTENING

    assert engine.handle_delivery(orders(3)) is False
    assert engine.previous_count == 3
    assert engine.pending_count == 3
    assert types(events) == ["pending_count"]
    assert engine.has_new_orders is False


def test_alert_only_when_count_grows():
    engine, events = engine_with_events()
    engine.start(make_user())
    engine.handle_delivery(orders(2))

    assert engine.handle_delivery(orders(3)) is True
    assert engine.has_new_orders
    assert engine.latest_order.id == "order0"
    assert engine.handle_delivery(orders(3)) is False
    assert engine.handle_delivery(orders(1)) is False
    assert engine.previous_count == 1
    # Growth is measured against the last count, not the maximum seen
    assert engine.handle_delivery(orders(2)) is True
    assert types(events).count("play_sound") == 2


def test_os_notification_needs_granted_permission():
    engine, events = engine_with_events(permission="denied")
    engine.start(make_user())
    engine.handle_delivery([])
    engine.handle_delivery([make_order("abc", name="Luis", total=1234.5)])
    assert "os_notification" not in types(events)
    assert "play_sound" in types(events)

    engine.permission = "granted"
    engine.handle_delivery([make_order("def"), make_order("abc", name="Luis", total=1234.5)])
    notification = next(e for e in events if e["type"] == "os_notification")
    assert notification["title"] == "🔔 Nuevo Pedido Web"
    assert notification["body"] == "María - $45"
    assert notification["tag"] == "new-order"


def test_clear_keeps_previous_count():
    engine, events = engine_with_events()
    engine.start(make_user())
    engine.handle_delivery(orders(1))
    engine.handle_delivery(orders(2))
    assert engine.toast()["action"]["href"] == "/verificacion-pagos"

    engine.clear_new_orders()
    assert engine.has_new_orders is False
    assert engine.latest_order is None
    assert engine.toast() is None
    assert engine.previous_count == 2


def test_stop_resets_and_next_start_is_silent():
    engine, events = engine_with_events()
    engine.start(make_user())
    engine.handle_delivery(orders(1))
    engine.handle_delivery(orders(2))

    engine.stop()
    assert engine.state is EngineState.IDLE
    assert engine.previous_count == 0
    assert engine.latest_order is None
    assert engine.feed.active == []
    assert events[-1] == {"type": "pending_count", "count": 0}

    # Deliveries from a cancelled subscription are ignored
    assert engine.handle_delivery(orders(5)) is False

    engine.start(make_user())
    assert engine.handle_delivery(orders(4)) is False
    assert engine.previous_count == 4


def test_feed_error_and_retry():
    engine, events = engine_with_events()
    engine.start(make_user())
    assert engine.retry() is False

    engine.handle_error(FeedError("No se pudieron cargar las órdenes pendientes."))
    assert engine.feed_error.startswith("No se pudieron")
    assert events[-1]["type"] == "feed_error"

    assert engine.retry() is True
    assert engine.feed_error is None
    assert len(engine.feed.subscriptions) == 2
    assert engine.handle_delivery(orders(7)) is False


def test_permission_prompt_offered_once():
    engine, _ = engine_with_events()
    assert engine.report_permission("default") is False  # no role yet

    engine.start(make_user())
    assert engine.report_permission("granted") is False
    assert engine.report_permission("default") is True
    assert engine.report_permission("default") is False


def test_failing_sink_does_not_break_delivery():
    engine, events = engine_with_events()

    def broken(event):
        raise RuntimeError("socket closed")

    engine.add_sink(broken)
    engine.start(make_user())
    engine.handle_delivery(orders(1))
    assert engine.handle_delivery(orders(2)) is True
    assert "play_sound" in types(events)


def test_removed_sink_receives_nothing():
    engine = NotificationEngine(FakeFeed())
    events = []
    remove = engine.add_sink(events.append)
    remove()
    engine.start(make_user())
    engine.handle_delivery(orders(1))
    assert events == []


def test_order_summary_falls_back_to_client_name():
    order = make_order("x", total=1234.5).model_copy(update={"customer": None, "client_name": "Pedro"})
    assert order_summary(order) == "Pedro - $1.234,5"
    order = order.model_copy(update={"client_name": None})
    assert order_summary(order) == "Cliente - $1.234,5"
