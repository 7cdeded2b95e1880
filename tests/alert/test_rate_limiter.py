# tests/alert/test_rate_limiter.py
import asyncio

from src.alert.rate_limiter import RateLimiter


async def test_allows_burst_up_to_limit():
    limiter = RateLimiter(max_requests=5, window_seconds=60)

    for _ in range(5):
        await asyncio.wait_for(limiter.acquire(), timeout=0.1)

    assert limiter.in_window == 5


async def test_sixth_request_waits_for_window():
    limiter = RateLimiter(max_requests=5, window_seconds=60)
    for _ in range(5):
        await limiter.acquire()

    sixth = asyncio.create_task(limiter.acquire())
    await asyncio.sleep(0.05)

    assert not sixth.done()
    sixth.cancel()


async def test_slot_frees_after_window():
    limiter = RateLimiter(max_requests=2, window_seconds=0.1)
    await limiter.acquire()
    await limiter.acquire()

    loop = asyncio.get_running_loop()
    start = loop.time()
    await asyncio.wait_for(limiter.acquire(), timeout=1)

    assert loop.time() - start >= 0.05
    assert limiter.in_window <= 2


async def test_waiters_are_released_in_order():
    limiter = RateLimiter(max_requests=1, window_seconds=0.05)
    order: list[int] = []

    async def worker(n: int) -> None:
        await limiter.acquire()
        order.append(n)

    await asyncio.gather(*(worker(n) for n in range(4)))

    assert order == [0, 1, 2, 3]
