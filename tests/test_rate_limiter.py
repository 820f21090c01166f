"""Unit tests for the sliding-window rate limiter."""

import logging
from types import SimpleNamespace

import pytest

from scout.ratelimit.limiter import SlidingWindowRateLimiter, client_ip, default_key_func
from scout.ratelimit.registry import STEAM_GLOBAL_KEY, RateLimiterRegistry, default_limiters


def make_limiter(clock, **kwargs):
    kwargs.setdefault("window_seconds", 60)
    kwargs.setdefault("max_requests", 3)
    return SlidingWindowRateLimiter("test", clock=clock, **kwargs)


class TestSlidingWindow:
    """Counting, rejection and window sliding."""

    def test_max_requests_allowed_then_rejected(self, clock):
        limiter = make_limiter(clock, max_requests=5)

        decisions = [limiter.check_and_record("user:1") for _ in range(5)]
        assert all(d.allowed for d in decisions)

        rejected = limiter.check_and_record("user:1")
        assert not rejected.allowed
        assert rejected.remaining == 0
        assert rejected.ticket is None

    def test_end_to_end_example(self, clock):
        """60s / 3 requests: t=0,1,2 allowed, t=3 rejected, t=61 allowed again."""
        limiter = make_limiter(clock)

        remaining = []
        for t in (0, 1, 2):
            clock.now = t
            decision = limiter.check_and_record("ip:1.2.3.4")
            assert decision.allowed
            remaining.append(decision.remaining)
        assert remaining == [2, 1, 0]

        clock.now = 3
        rejected = limiter.check_and_record("ip:1.2.3.4")
        assert not rejected.allowed
        assert rejected.retry_after_seconds == 57

        clock.now = 61
        again = limiter.check_and_record("ip:1.2.3.4")
        assert again.allowed
        # t=0 et t=1 sont sortis de la fenêtre, restent t=2 et t=61
        assert again.remaining == 1

    def test_timestamp_exactly_window_old_has_slid_out(self, clock):
        limiter = make_limiter(clock, max_requests=1)

        assert limiter.check_and_record("k").allowed
        clock.now = 60
        assert limiter.check_and_record("k").allowed

    def test_not_a_fixed_bucket(self, clock):
        """Requests at t=50 still count at t=70 even though a minute boundary passed."""
        limiter = make_limiter(clock, max_requests=2)

        clock.now = 50
        limiter.check_and_record("k")
        limiter.check_and_record("k")
        clock.now = 70
        decision = limiter.check_and_record("k")
        assert not decision.allowed
        assert decision.retry_after_seconds == 40

    def test_retry_after_never_negative(self, clock):
        limiter = make_limiter(clock, window_seconds=1.5, max_requests=2)

        for step in range(40):
            clock.now = step * 0.1
            decision = limiter.check_and_record("k")
            assert decision.retry_after_seconds >= 0
            assert decision.remaining >= 0

    def test_explicit_now_overrides_clock(self, clock):
        limiter = make_limiter(clock, max_requests=1)

        assert limiter.check_and_record("k", now=100).allowed
        assert not limiter.check_and_record("k", now=130).allowed
        assert limiter.check_and_record("k", now=160).allowed

    def test_keys_are_independent(self, clock):
        limiter = make_limiter(clock, max_requests=1)

        assert limiter.check_and_record("user:a").allowed
        assert limiter.check_and_record("user:b").allowed
        assert not limiter.check_and_record("user:a").allowed

    def test_instances_do_not_share_entries(self, clock):
        strict = make_limiter(clock, max_requests=1)
        lenient = make_limiter(clock, max_requests=10)

        assert strict.check_and_record("user:a").allowed
        assert not strict.check_and_record("user:a").allowed
        assert lenient.check_and_record("user:a").allowed
        assert lenient.usage("user:a") == 1

    def test_invalid_configuration(self, clock):
        with pytest.raises(ValueError):
            make_limiter(clock, window_seconds=0)
        with pytest.raises(ValueError):
            make_limiter(clock, max_requests=0)


class TestRetraction:
    """Outcome reporting removes the request's own ticket, never another one."""

    def test_successful_request_retracted(self, clock):
        limiter = make_limiter(clock, skip_successful=True)

        decision = limiter.check_and_record("k")
        assert limiter.report("k", decision.ticket, 200)
        assert limiter.usage("k") == 0

    def test_failed_request_kept_when_only_skipping_successes(self, clock):
        limiter = make_limiter(clock, skip_successful=True)

        decision = limiter.check_and_record("k")
        assert not limiter.report("k", decision.ticket, 401)
        assert limiter.usage("k") == 1

    def test_skip_failed(self, clock):
        limiter = make_limiter(clock, skip_failed=True)

        ok = limiter.check_and_record("k")
        ko = limiter.check_and_record("k")
        assert not limiter.report("k", ok.ticket, 204)
        assert limiter.report("k", ko.ticket, 503)
        assert limiter.usage("k") == 1

    def test_no_skip_flags_never_retracts(self, clock):
        limiter = make_limiter(clock)

        decision = limiter.check_and_record("k")
        assert not limiter.report("k", decision.ticket, 200)
        assert not limiter.report("k", decision.ticket, 500)
        assert limiter.usage("k") == 1

    def test_retracts_by_identity_not_position(self, clock):
        """Two in-flight requests with the same timestamp: the first one to finish removes itself."""
        limiter = make_limiter(clock, skip_successful=True)

        first = limiter.check_and_record("k")
        second = limiter.check_and_record("k")
        assert first.ticket.at == second.ticket.at

        # La première requête termine après que la seconde a été enregistrée
        assert limiter.report("k", first.ticket, 200)

        remaining = list(limiter._entries["k"].requests)
        assert len(remaining) == 1
        assert remaining[0] is second.ticket

    def test_retract_twice_is_noop(self, clock):
        limiter = make_limiter(clock, skip_successful=True)

        first = limiter.check_and_record("k")
        limiter.check_and_record("k")
        assert limiter.retract("k", first.ticket)
        assert not limiter.retract("k", first.ticket)
        assert limiter.usage("k") == 1

    def test_retract_after_ticket_slid_out(self, clock):
        limiter = make_limiter(clock, skip_successful=True)

        old = limiter.check_and_record("k")
        clock.now = 61
        newer = limiter.check_and_record("k")
        assert not limiter.report("k", old.ticket, 200)
        assert list(limiter._entries["k"].requests) == [newer.ticket]

    def test_report_without_ticket(self, clock):
        limiter = make_limiter(clock, skip_successful=True)
        assert not limiter.report("k", None, 200)


class TestSweep:
    def test_sweep_removes_fully_expired_keys(self, clock):
        limiter = make_limiter(clock)

        limiter.check_and_record("old")
        clock.now = 30
        limiter.check_and_record("recent")

        clock.now = 61
        assert limiter.sweep() == 1
        assert len(limiter) == 1
        assert limiter.usage("recent") == 1

    def test_sweep_keeps_active_keys(self, clock):
        limiter = make_limiter(clock)
        limiter.check_and_record("k")
        clock.now = 59
        assert limiter.sweep() == 0
        assert len(limiter) == 1

    def test_registry_sweeps_every_limiter(self, clock):
        limiters = default_limiters(clock=clock)
        registry = RateLimiterRegistry(limiters)

        registry["read"].check_and_record("user:a")
        registry["write"].check_and_record("user:a")
        assert registry.stats()["read"] == 1

        clock.now = 120
        assert registry.sweep() == 2
        assert registry.stats()["write"] == 0


class TestFailOpen:
    def test_internal_error_allows_request(self, clock, caplog):
        limiter = make_limiter(clock, max_requests=1)
        limiter._entries["k"] = object()  # entrée corrompue

        with caplog.at_level(logging.ERROR, logger="scout.ratelimit.limiter"):
            decision = limiter.check_and_record("k")

        assert decision.allowed
        assert decision.ticket is None
        assert "Rate limiter error" in caplog.text


class TestKeys:
    def test_authenticated_user_key(self):
        request = SimpleNamespace(state=SimpleNamespace(user_id="user_123"), headers={}, client=None)
        assert default_key_func(request) == "user:user_123"

    def test_forwarded_for_first_hop(self):
        request = SimpleNamespace(
            state=SimpleNamespace(),
            headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"},
            client=SimpleNamespace(host="10.0.0.1"),
        )
        assert default_key_func(request) == "ip:203.0.113.7"

    def test_real_ip_then_peer(self):
        with_real_ip = SimpleNamespace(headers={"x-real-ip": "198.51.100.2"}, client=None)
        assert client_ip(with_real_ip) == "198.51.100.2"

        peer = SimpleNamespace(headers={}, client=SimpleNamespace(host="192.0.2.9"))
        assert client_ip(peer) == "192.0.2.9"

        assert client_ip(SimpleNamespace(headers={}, client=None)) == "unknown"

    def test_steam_profile_uses_global_key(self):
        steam = default_limiters()["steam"]
        request = SimpleNamespace(state=SimpleNamespace(user_id="u"), headers={}, client=None)
        assert steam.key_for(request) == STEAM_GLOBAL_KEY


@pytest.mark.asyncio
class TestRegistryLifecycle:
    async def test_start_and_stop_sweeper(self, clock):
        registry = RateLimiterRegistry(default_limiters(clock=clock), sweep_interval=3600)

        registry.start()
        task = registry._task
        assert task is not None and not task.done()

        await registry.stop()
        assert task.cancelled()
        assert registry._task is None
