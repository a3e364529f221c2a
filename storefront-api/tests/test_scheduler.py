import asyncio

from app.services.scheduler import ReplyScheduler


class TestDeliver:
    def test_delivers_after_delay(self):
        slept = []
        delivered = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        async def scenario():
            scheduler = ReplyScheduler(sleep=fake_sleep)
            return await scheduler.deliver("conv-1", 2.5, lambda: delivered.append("reply"))

        assert asyncio.run(scenario()) is True
        assert slept == [2.5]
        assert delivered == ["reply"]

    def test_zero_delay_skips_sleep(self):
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        async def scenario():
            return await ReplyScheduler(sleep=fake_sleep).deliver("conv-1", 0, lambda: None)

        assert asyncio.run(scenario()) is True
        assert slept == []

    def test_cancel_drops_reply(self):
        delivered = []

        async def scenario():
            gate = asyncio.Event()

            async def blocking_sleep(_seconds):
                await gate.wait()

            scheduler = ReplyScheduler(sleep=blocking_sleep)
            delivery = asyncio.create_task(scheduler.deliver("conv-1", 5, lambda: delivered.append("reply")))
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            cancelled = scheduler.cancel("conv-1")
            return cancelled, await delivery, scheduler.pending("conv-1")

        cancelled, result, pending = asyncio.run(scenario())
        assert cancelled is True
        assert result is False
        assert pending is None
        assert delivered == []

    def test_cancel_without_pending_reply(self):
        assert ReplyScheduler().cancel("conv-1") is False


class TestTurnOrdering:
    def test_same_conversation_runs_sequentially(self):
        events = []

        async def scenario():
            scheduler = ReplyScheduler()

            async def turn(name, pause):
                async with scheduler.turn("conv-1"):
                    events.append(f"{name}-start")
                    await asyncio.sleep(pause)
                    events.append(f"{name}-end")

            await asyncio.gather(turn("first", 0.02), turn("second", 0))

        asyncio.run(scenario())
        assert events == ["first-start", "first-end", "second-start", "second-end"]

    def test_different_conversations_interleave(self):
        events = []

        async def scenario():
            scheduler = ReplyScheduler()

            async def turn(conversation_id, pause):
                async with scheduler.turn(conversation_id):
                    events.append(f"{conversation_id}-start")
                    await asyncio.sleep(pause)
                    events.append(f"{conversation_id}-end")

            await asyncio.gather(turn("conv-1", 0.02), turn("conv-2", 0))

        asyncio.run(scenario())
        assert events.index("conv-2-end") < events.index("conv-1-end")

    def test_locks_are_released(self):
        async def scenario():
            scheduler = ReplyScheduler()
            async with scheduler.turn("conv-1"):
                pass
            return scheduler._locks

        assert asyncio.run(scenario()) == {}
