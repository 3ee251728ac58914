"""
Tests for deferred ("loading") task execution.
"""
import asyncio

import pytest

from chuksbot.orchestration import messages
from chuksbot.orchestration.locks import UserLocks
from chuksbot.orchestration.result import HandlerResult
from chuksbot.orchestration.session import PENDING_TASK_KEY
from chuksbot.orchestration.states import State

USER_ID = "2348012345678"


class TestRunDeferred:
    """Scheduling a job and delivering its result."""

    def test_interim_reply_and_final_state(self, chat_service, store, notifier, run_with_workers):
        """The interim reply comes back at once; the final reply arrives exactly once."""
        runner = chat_service.deferred

        async def task():
            return HandlerResult("Here is your quote", State.AUTO_PLANS, {"autoValue": 2_000_000})

        async def scenario():
            interim = runner.run_deferred(USER_ID, "Loading...", task)
            processing = store.get(USER_ID)
            await runner.drain()
            return interim, processing

        interim, processing = run_with_workers(scenario)

        assert interim.message == "Loading..."
        assert interim.state == State.PROCESSING
        assert processing.state == "processing"
        assert processing.pending_task == interim.data[PENDING_TASK_KEY]

        session = store.get(USER_ID)
        assert session.state == "auto_plans"
        assert session.data["autoValue"] == 2_000_000
        assert session.pending_task is None
        assert notifier.sent == [(USER_ID, "Here is your quote")]
        assert runner.has_pending(USER_ID) is False

    def test_reset_result_clears_session(self, chat_service, store, notifier, run_with_workers):
        """A completion that ends the transaction leaves only the new state."""
        runner = chat_service.deferred
        store.save(USER_ID, State.CLAIM_DOCUMENTS, {"claimType": "Auto"})

        async def task():
            return HandlerResult("Claim submitted", State.MAIN_MENU, reset=True)

        async def scenario():
            runner.run_deferred(USER_ID, "Submitting...", task)
            await runner.drain()

        run_with_workers(scenario)

        session = store.get(USER_ID)
        assert session.state == "main_menu"
        assert session.data == {}
        assert notifier.sent == [(USER_ID, "Claim submitted")]

    def test_failure_resets_and_apologises(self, chat_service, store, notifier, run_with_workers):
        """A raising task returns the participant home with an apology."""
        runner = chat_service.deferred
        store.save(USER_ID, State.HEALTH_REG_BLOODGROUP, {"surname": "Okafor"})

        async def task():
            raise RuntimeError("catalog unavailable")

        async def scenario():
            runner.run_deferred(USER_ID, "Loading...", task)
            await runner.drain()

        run_with_workers(scenario)

        session = store.get(USER_ID)
        assert session.is_new is True
        assert session.state == "main_menu"
        assert notifier.sent == [(USER_ID, messages.DEFERRED_FAILURE)]


class TestStaleAndCancelled:
    """Jobs that must not write their result."""

    def test_stale_completion_is_discarded(self, chat_service, store, notifier, run_with_workers):
        """A restart while the job is queued wins over the late completion."""
        runner = chat_service.deferred

        async def task():
            return HandlerResult("Too late", State.AUTO_PLANS, {"autoValue": 1})

        async def scenario():
            runner.run_deferred(USER_ID, "Loading...", task)
            store.delete(USER_ID)
            store.save(USER_ID, State.MAIN_MENU)
            await runner.drain()

        run_with_workers(scenario)

        session = store.get(USER_ID)
        assert session.state == "main_menu"
        assert "autoValue" not in session.data
        assert notifier.sent == []

    def test_cancel_queued_job(self, chat_service, store, notifier, run_with_workers):
        runner = chat_service.deferred

        async def task():
            return HandlerResult("Never delivered", State.AUTO_PLANS)

        async def scenario():
            runner.run_deferred(USER_ID, "Loading...", task)
            assert runner.cancel(USER_ID) is True
            await runner.drain()

        run_with_workers(scenario)

        assert notifier.sent == []
        assert runner.has_pending(USER_ID) is False
        assert runner.cancel(USER_ID) is False

    def test_cancel_running_job(self, chat_service, notifier, run_with_workers):
        """A job blocked on slow I/O is interrupted by cancel."""
        runner = chat_service.deferred
        started = asyncio.Event()

        async def task():
            started.set()
            await asyncio.sleep(3600)
            return HandlerResult("Never delivered", State.AUTO_PLANS)

        async def scenario():
            runner.run_deferred(USER_ID, "Loading...", task)
            await asyncio.wait_for(started.wait(), timeout=1)
            runner.cancel(USER_ID)
            await asyncio.wait_for(runner.drain(), timeout=1)

        run_with_workers(scenario)

        assert notifier.sent == []

    def test_newer_job_supersedes_older(self, chat_service, store, notifier, run_with_workers):
        """Only the latest job for a participant delivers a result."""
        runner = chat_service.deferred

        async def first():
            return HandlerResult("first", State.AUTO_PLANS)

        async def second():
            return HandlerResult("second", State.DEVICE_PLANS)

        async def scenario():
            runner.run_deferred(USER_ID, "Loading...", first)
            runner.run_deferred(USER_ID, "Loading...", second)
            await runner.drain()

        run_with_workers(scenario)

        assert notifier.sent == [(USER_ID, "second")]
        assert store.get(USER_ID).state == "device_plans"

    def test_jobs_of_different_users_are_independent(self, chat_service, store, notifier, run_with_workers):
        runner = chat_service.deferred

        def result(text):
            async def task():
                return HandlerResult(text, State.FAQ_CATEGORY)
            return task

        async def scenario():
            runner.run_deferred("user-a", "Loading...", result("for a"))
            runner.run_deferred("user-b", "Loading...", result("for b"))
            await runner.drain()

        run_with_workers(scenario)

        assert sorted(notifier.sent) == [("user-a", "for a"), ("user-b", "for b")]


class TestUserLocks:
    """Per-participant serialisation."""

    def test_same_user_is_serialised(self):
        locks = UserLocks()
        order = []

        async def critical(name):
            async with locks.hold("u1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        async def scenario():
            await asyncio.gather(critical("a"), critical("b"))

        asyncio.run(scenario())

        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert len(locks) == 0

    def test_lock_is_released_on_error(self):
        locks = UserLocks()

        async def scenario():
            with pytest.raises(ValueError):
                async with locks.hold("u1"):
                    assert locks.is_locked("u1")
                    raise ValueError("boom")
            return locks.is_locked("u1")

        assert asyncio.run(scenario()) is False
        assert len(locks) == 0
