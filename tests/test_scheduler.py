import asyncio

from voicedial.scheduler import AsyncioScheduler


def test_run_blocking_delivers_result_on_loop():
    async def _scenario():
        scheduler = AsyncioScheduler()
        done = asyncio.get_running_loop().create_future()
        scheduler.run_blocking(lambda: 6 * 7, done.set_result, done.set_exception)
        return await asyncio.wait_for(done, timeout=5)

    assert asyncio.run(_scenario()) == 42


def test_run_blocking_delivers_errors():
    async def _scenario():
        scheduler = AsyncioScheduler()
        seen = asyncio.get_running_loop().create_future()

        def _boom():
            raise RuntimeError("backend down")

        scheduler.run_blocking(_boom, seen.set_result, lambda exc: seen.set_result(exc))
        return await asyncio.wait_for(seen, timeout=5)

    result = asyncio.run(_scenario())
    assert isinstance(result, RuntimeError)


def test_cancelled_timer_never_fires():
    async def _scenario():
        scheduler = AsyncioScheduler()
        fired = []
        handle = scheduler.call_later(0.01, lambda: fired.append("late"))
        scheduler.call_later(0.02, lambda: fired.append("kept"))
        handle.cancel()
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(_scenario()) == ["kept"]
