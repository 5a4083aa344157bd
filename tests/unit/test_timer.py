import asyncio
import pytest
from pinquiz.game.timer import Countdown, invoke


class TestCountdown:
    """Local question countdown"""

    @pytest.mark.asyncio
    async def test_tick_decrements_and_reports(self):
        ticks = []
        countdown = Countdown(3, on_tick=ticks.append)

        await countdown.tick()
        await countdown.tick()

        assert ticks == [2, 1]
        assert countdown.remaining == 1
        assert countdown.elapsed == 2
        assert not countdown.expired

    @pytest.mark.asyncio
    async def test_expire_fires_once(self):
        expired = []

        async def on_expire():
            expired.append(True)

        countdown = Countdown(2, on_expire=on_expire)
        for _ in range(5):
            await countdown.tick()

        assert countdown.remaining == 0
        assert countdown.expired
        assert expired == [True]

    @pytest.mark.asyncio
    async def test_runs_to_expiry_on_its_own(self):
        done = asyncio.Event()
        countdown = Countdown(3, on_expire=done.set, interval=0.001)

        countdown.start()
        await asyncio.wait_for(done.wait(), timeout=2)

        assert countdown.remaining == 0
        assert not countdown.running

    @pytest.mark.asyncio
    async def test_cancel_stops_ticking(self):
        ticks = []
        countdown = Countdown(30, on_tick=ticks.append, interval=3600)

        countdown.start()
        assert countdown.running
        countdown.cancel()
        await asyncio.sleep(0)

        assert not countdown.running
        assert ticks == []
        assert countdown.remaining == 30

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        countdown = Countdown(30, interval=3600)

        countdown.start()
        task = countdown._task
        countdown.start()

        assert countdown._task is task
        countdown.cancel()

    @pytest.mark.asyncio
    async def test_invoke_accepts_sync_async_and_none(self):
        calls = []

        async def async_callback(value):
            calls.append(("async", value))

        await invoke(None, 1)
        await invoke(lambda value: calls.append(("sync", value)), 2)
        await invoke(async_callback, 3)

        assert calls == [("sync", 2), ("async", 3)]
