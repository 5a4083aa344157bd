import asyncio
import inspect

from pinquiz.config import settings


async def invoke(callback, *args):
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class Countdown:
    """Local question countdown decrementing once per tick.

    The countdown is advisory: it only drives local state (disabling answers,
    showing results) and never writes shared records itself.
    """

    def __init__(self, seconds: int, on_tick=None, on_expire=None, interval: float = None):
        self.total = seconds
        self.remaining = seconds
        self.interval = settings.tick_seconds if interval is None else interval
        self.on_tick = on_tick
        self.on_expire = on_expire
        self._task = None

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    @property
    def elapsed(self) -> int:
        return self.total - self.remaining

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def _run(self):
        while not self.expired:
            await asyncio.sleep(self.interval)
            await self.tick()

    async def tick(self):
        if self.expired:
            return
        self.remaining -= 1
        await invoke(self.on_tick, self.remaining)
        if self.expired:
            await invoke(self.on_expire)

    def cancel(self):
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()
        self._task = None
