import asyncio

from polling import PollingTask


def test_stops_when_tick_returns_true():
    ticks = []

    async def tick():
        ticks.append(1)
        return len(ticks) == 3

    async def runner():
        poll = PollingTask("test", 0.001, tick).start()
        await asyncio.wait_for(poll.wait(), timeout=1)
        assert not poll.running

    asyncio.run(runner())
    assert len(ticks) == 3


def test_failing_tick_is_retried():
    ticks = []

    async def tick():
        ticks.append(1)
        if len(ticks) < 3:
            raise ConnectionError("server unreachable")
        return True

    async def runner():
        await asyncio.wait_for(PollingTask("test", 0.001, tick).start().wait(), timeout=1)

    asyncio.run(runner())
    assert len(ticks) == 3


def test_deadline_runs_callback():
    expired = []

    async def tick():
        return False

    async def on_deadline():
        expired.append(True)

    async def runner():
        poll = PollingTask("test", 0.005, tick, deadline=0.02, on_deadline=on_deadline).start()
        await asyncio.wait_for(poll.wait(), timeout=1)

    asyncio.run(runner())
    assert expired == [True]


def test_cancel_from_outside():
    ticks = []

    async def tick():
        ticks.append(1)

    async def runner():
        poll = PollingTask("test", 0.001, tick).start()
        await asyncio.sleep(0.02)
        poll.cancel()
        await poll.wait()
        assert not poll.running
        count = len(ticks)
        await asyncio.sleep(0.02)
        assert len(ticks) == count

    asyncio.run(runner())


def test_tick_can_cancel_its_own_poller():
    finished = []

    async def runner():
        async def tick():
            poll.cancel()
            await asyncio.sleep(0)
            finished.append(True)

        poll = PollingTask("test", 0.001, tick).start()
        await asyncio.wait_for(poll.wait(), timeout=1)

    asyncio.run(runner())
    assert finished == [True]


def test_context_manager_stops_polling():
    async def tick():
        return False

    async def runner():
        async with PollingTask("test", 0.001, tick) as poll:
            await asyncio.sleep(0.01)
            assert poll.running
        assert not poll.running

    asyncio.run(runner())
