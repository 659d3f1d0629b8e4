import asyncio

from sqlalchemy.exc import OperationalError

from wingx.domain.errors import FeedError
from wingx.infrastructure.live_query import ChangeSignal, LiveQuery


class Source:
    def __init__(self, rows=None, fail=False):
        self.rows = list(rows or [])
        self.fail = fail
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.fail:
            raise OperationalError("SELECT", {}, Exception("no such table: orders"))
        return list(self.rows)


def test_delivers_on_change_signal_and_skips_duplicates():
    source = Source(rows=["a"])
    signal = ChangeSignal()
    deliveries = []

    async def scenario():
        query = LiveQuery(source.fetch, signal, poll_interval=60)
        sub = query.subscribe(deliveries.append)
        await asyncio.sleep(0.05)
        signal.notify()  # same rows, nothing new to deliver
        await asyncio.sleep(0.05)
        source.rows = ["b", "a"]
        signal.notify()
        await asyncio.sleep(0.05)
        sub.cancel()

    asyncio.run(scenario())
    assert deliveries == [["a"], ["b", "a"]]
    assert source.calls == 3


def test_poll_picks_up_external_writes():
    source = Source()
    deliveries = []

    async def scenario():
        sub = LiveQuery(source.fetch, ChangeSignal(), poll_interval=0.01).subscribe(deliveries.append)
        await asyncio.sleep(0.03)
        source.rows = ["x"]
        await asyncio.sleep(0.05)
        sub.cancel()

    asyncio.run(scenario())
    assert deliveries == [[], ["x"]]


def test_nothing_delivered_after_cancel():
    source = Source(rows=["a"])
    signal = ChangeSignal()
    deliveries = []

    async def scenario():
        sub = LiveQuery(source.fetch, signal, poll_interval=0.01).subscribe(deliveries.append)
        await asyncio.sleep(0.03)
        sub.cancel()
        sub.cancel()
        source.rows = ["b"]
        signal.notify()
        await asyncio.sleep(0.05)
        return sub

    sub = asyncio.run(scenario())
    assert sub.cancelled
    assert deliveries == [["a"]]


def test_error_delivered_once_and_subscription_ends():
    source = Source(fail=True)
    errors = []

    async def scenario():
        LiveQuery(source.fetch, ChangeSignal(), poll_interval=0.01,
                  error_message="No se pudieron cargar las órdenes pendientes.").subscribe(
            lambda rows: None, errors.append)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert source.calls == 1
    assert len(errors) == 1
    assert isinstance(errors[0], FeedError)
    assert errors[0].message == "No se pudieron cargar las órdenes pendientes."


def test_unexpected_fetch_error_ends_subscription():
    errors = []

    def fetch():
        raise ValueError("delivery_method: unexpected value 'envio'")

    async def scenario():
        LiveQuery(fetch, ChangeSignal(), poll_interval=0.01).subscribe(lambda rows: None, errors.append)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert [e.message for e in errors] == ["No se pudo consultar la base de datos."]


def test_failing_subscriber_ends_subscription():
    source = Source(rows=["a"])
    errors = []

    def on_snapshot(rows):
        raise KeyError("a")

    async def scenario():
        LiveQuery(source.fetch, ChangeSignal(), poll_interval=0.01).subscribe(on_snapshot, errors.append)
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert source.calls == 1
    assert len(errors) == 1
