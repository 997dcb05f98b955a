"""Tests for CommandDispatcher ordering and concurrency"""
import asyncio

import pytest

from tierdesk.tickets.application import CommandDispatcher


@pytest.fixture
async def dispatcher():
    dispatcher = CommandDispatcher(worker_count=4)
    dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


class TestCommandDispatcher:
    async def test_returns_handler_result(self, dispatcher):
        async def handler():
            return 42

        assert await dispatcher.submit("TKT-1", handler) == 42

    async def test_propagates_handler_exception(self, dispatcher):
        async def handler():
            raise ValueError("boom")

        async def next_handler():
            return "still running"

        with pytest.raises(ValueError):
            await dispatcher.submit("TKT-1", handler)
        assert await dispatcher.submit("TKT-1", next_handler) == "still running"

    async def test_same_key_runs_in_submission_order_never_concurrently(self, dispatcher):
        log = []
        active = 0
        overlap = False

        def make(i):
            async def handler():
                nonlocal active, overlap
                active += 1
                overlap = overlap or active > 1
                await asyncio.sleep(0.001 * (5 - i))
                log.append(i)
                active -= 1
            return handler

        await asyncio.gather(*(dispatcher.submit("TKT-1", make(i)) for i in range(5)))

        assert log == [0, 1, 2, 3, 4]
        assert not overlap

    async def test_different_keys_run_in_parallel(self):
        dispatcher = CommandDispatcher(worker_count=2)
        dispatcher.start()

        # two keys on different shards
        a = "TKT-0"
        b = next(f"TKT-{i}" for i in range(1, 100) if dispatcher.shard_for(f"TKT-{i}") != dispatcher.shard_for(a))
        started = asyncio.Event()
        release = asyncio.Event()

        async def blocker():
            started.set()
            await release.wait()
            return "slow"

        async def quick():
            return "done"

        slow = asyncio.ensure_future(dispatcher.submit(a, blocker))
        await started.wait()
        assert await asyncio.wait_for(dispatcher.submit(b, quick), timeout=1) == "done"
        assert not slow.done()

        release.set()
        assert await slow == "slow"
        await dispatcher.stop()

    async def test_shard_is_stable(self, dispatcher):
        assert dispatcher.shard_for("TKT-42") == dispatcher.shard_for("TKT-42")
        assert 0 <= dispatcher.shard_for("TKT-42") < 4

    async def test_join_waits_for_background_commands(self, dispatcher):
        done = []

        async def handler():
            await asyncio.sleep(0.01)
            done.append(True)

        dispatcher.submit_background("TKT-1", handler)
        dispatcher.submit_background("TKT-2", handler)
        assert dispatcher.pending == 2

        await dispatcher.join()

        assert done == [True, True]
        assert dispatcher.pending == 0

    async def test_background_failure_is_logged_not_raised(self, dispatcher, caplog):
        async def handler():
            raise RuntimeError("lost")

        future = dispatcher.submit_background("TKT-1", handler)
        await dispatcher.join()
        await asyncio.sleep(0)

        assert isinstance(future.exception(), RuntimeError)
        assert "Background command failed" in caplog.text

    async def test_submit_requires_running_dispatcher(self):
        dispatcher = CommandDispatcher(worker_count=1)

        async def handler():
            return None

        with pytest.raises(RuntimeError):
            dispatcher.submit_nowait("TKT-1", handler)

    async def test_stop_finishes_queued_commands(self):
        dispatcher = CommandDispatcher(worker_count=1)
        dispatcher.start()
        done = []

        async def handler():
            await asyncio.sleep(0)
            done.append(True)

        futures = [dispatcher.submit_nowait("TKT-1", handler) for _ in range(3)]
        await dispatcher.stop()

        assert all(f.done() for f in futures)
        assert len(done) == 3
        assert not dispatcher.running

    def test_worker_count_must_be_positive(self):
        with pytest.raises(ValueError):
            CommandDispatcher(worker_count=0)
