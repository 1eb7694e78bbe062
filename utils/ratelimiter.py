import asyncio, time


class TokenBucket:
    """Allow <rate> acquisitions every <per> seconds, shared by every coroutine in the loop."""
    def __init__(self, rate: int, per: float):
        self.capacity = rate
        self.tokens   = float(rate)
        self.per      = per
        self.updated  = time.monotonic()
        self._lock    = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            now = time.monotonic()
            # refill
            refilled = (now - self.updated) * (self.capacity / self.per)
            self.tokens = min(self.capacity, self.tokens + refilled)
            self.updated = now

            if self.tokens < 1:
                wait = (1 - self.tokens) * (self.per / self.capacity)
                await asyncio.sleep(wait)
                self.tokens = 1.0
                self.updated = time.monotonic()

            self.tokens -= 1

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, *exc):
        return False


# Notion allows an average of three requests per second per integration
NOTION_RATE = 3
