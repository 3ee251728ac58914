"""
Tests for inactivity timeouts and the fallback-tier sweeper.
"""
import asyncio

from chuksbot.orchestration import messages
from chuksbot.orchestration.states import State
from chuksbot.services.timeout_monitor import SessionSweeper, TimeoutMonitor


class TestTimeoutCheck:
    """TimeoutMonitor.check at the start of a dispatch."""

    def test_new_session_never_times_out(self, store):
        monitor = TimeoutMonitor(store, timeout_ms=600_000)
        assert monitor.check("u1").timed_out is False

    def test_active_session_is_kept(self, store, clock):
        """Exactly at the threshold the session is still alive."""
        monitor = TimeoutMonitor(store, timeout_ms=600_000)
        store.save("u1", State.AUTO_BRAND, {"autoType": "Fleet"})
        clock.advance(600)

        assert monitor.check("u1").timed_out is False
        assert store.get("u1").state == "auto_brand"

    def test_idle_session_times_out_once(self, store, clock):
        """An idle session is cleared and reported exactly once."""
        monitor = TimeoutMonitor(store, timeout_ms=600_000)
        store.save("u1", State.AUTO_BRAND, {"autoType": "Fleet"})
        clock.advance(601)

        check = monitor.check("u1")
        assert check.timed_out is True
        assert check.message == messages.TIMEOUT_NOTICE

        again = monitor.check("u1")
        assert again.timed_out is False
        session = store.get("u1")
        assert session.is_new is True
        assert session.data == {}

    def test_timeout_cancels_deferred_work(self, chat_service, store, clock):
        """A queued deferred job is cancelled when its session times out."""
        async def never():
            raise AssertionError("should not run")

        chat_service.deferred.run_deferred("u1", "working", never)
        clock.advance(601)

        assert chat_service.monitor.check("u1").timed_out is True
        assert chat_service.deferred.has_pending("u1") is False


class TestSweep:
    """Periodic eviction of the in-memory tier."""

    def test_sweep_removes_idle_sessions(self, store, memory_backend, clock):
        monitor = TimeoutMonitor(store, timeout_ms=600_000)
        store.save("idle", State.MAIN_MENU)
        clock.advance(601)
        store.save("active", State.MAIN_MENU)

        assert monitor.sweep() == 1
        assert memory_backend.count() == 1
        assert store.get("active").is_new is False

    def test_sweep_without_fallback_tier(self, clock):
        from chuksbot.services.session_store import InMemorySessionBackend, SessionStore

        store = SessionStore(InMemorySessionBackend(), clock=clock)
        assert TimeoutMonitor(store).sweep() == 0

    def test_sweeper_runs_periodically(self, store, memory_backend, clock):
        """The background sweeper evicts idle sessions and stops cleanly."""
        monitor = TimeoutMonitor(store, timeout_ms=600_000)
        store.save("idle", State.MAIN_MENU)
        clock.advance(601)

        async def scenario():
            sweeper = SessionSweeper(monitor, interval_seconds=0.01)
            sweeper.start()
            assert sweeper.running is True
            await asyncio.sleep(0.05)
            await sweeper.stop()
            return sweeper.running

        assert asyncio.run(scenario()) is False
        assert memory_backend.count() == 0
