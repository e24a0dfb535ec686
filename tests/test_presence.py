import asyncio

from presence import PresenceTracker, run_periodically
from session_directory import SessionDirectory


def test_tracker_reports_heartbeats(directory, clock):
    presence = PresenceTracker(directory)
    presence.heartbeat("1")
    presence.heartbeat("2")
    clock.advance(20)
    presence.heartbeat("2")

    assert presence.online() == {"2"}
    assert presence.sweep() == 1
    assert presence.sweep() == 0


def test_run_periodically_until_shutdown():
    calls = []

    def job():
        calls.append(len(calls))
        if len(calls) == 2:
            raise RuntimeError("keeps going anyway")

    async def runner():
        shutdown = asyncio.Event()
        task = asyncio.create_task(run_periodically(0.01, shutdown, job, "test job"))
        while len(calls) < 4:
            await asyncio.sleep(0.005)
        shutdown.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(runner())
    assert len(calls) >= 4


def test_sweeper_stops_right_away_on_shutdown():
    async def runner():
        shutdown = asyncio.Event()
        shutdown.set()
        await asyncio.wait_for(PresenceTracker(SessionDirectory(), sweep_interval=60).run_sweeper(shutdown), timeout=1)

    asyncio.run(runner())


def test_signaling_sweep_drops_abandoned_calls(stack, clock):
    stack.signaling.initiate_call("1", "2", "offer")
    clock.advance(60)

    assert stack.signaling.sweep() == 1
    assert len(stack.directory) == 0
