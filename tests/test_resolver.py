"""
Tests for the Fallback Resolver — the probe decides, not the exit code.
"""

import pytest

from hostprep.core.engine.resolver import ALREADY_PRESENT, FallbackResolver
from hostprep.core.engine.runner import StepRunner
from hostprep.core.errors import StepFailure, VerificationFailure
from hostprep.core.models import ChainOutcome, FallbackChain, OnFailure, Outcome, Step
from hostprep.core.services.probes import ProbeRegistry


def _resolver(context) -> FallbackResolver:
    return FallbackResolver(StepRunner(context), ProbeRegistry(context.host.commands))


def _member(name, calls, *, installs=False, result=None, on_failure=OnFailure.ABORT):
    """A member that records its call and optionally installs the compose plugin."""

    def action(ctx):
        calls.append(name)
        if installs:
            ctx.host.machine.installed.add("docker-compose-plugin")
        return result if result is not None else Outcome.success()

    return Step(name=name, action=action, on_failure=on_failure)


@pytest.fixture
def docker_installed(fake_host):
    fake_host.machine.installed.add("docker")
    return fake_host


class TestProbeDecides:
    def test_reported_success_without_capability_falls_back(self, context, docker_installed):
        calls = []
        chain = FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[
                _member("plugin", calls),
                _member("standalone", calls, installs=True),
            ],
        )

        outcome = _resolver(context).resolve(chain)

        assert outcome.ok
        assert outcome.method_used == "standalone"
        assert calls == ["plugin", "standalone"]
        assert outcome.attempts[0].outcome.ok
        assert not outcome.attempts[0].probe.present
        assert outcome.result.present

    def test_reported_failure_with_capability_is_accepted(self, context, docker_installed):
        calls = []
        chain = FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[
                _member("plugin", calls, installs=True, result=Outcome.failure("exit 1")),
                _member("standalone", calls),
            ],
        )

        outcome = _resolver(context).resolve(chain)

        assert outcome.method_used == "plugin"
        assert calls == ["plugin"]

    def test_first_passing_member_stops_the_chain(self, context, docker_installed):
        calls = []
        chain = FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[
                _member("first", calls, installs=True),
                _member("second", calls),
                _member("third", calls),
            ],
        )

        assert _resolver(context).resolve(chain).method_used == "first"
        assert calls == ["first"]

    def test_raising_member_moves_on(self, context, docker_installed):
        calls = []

        def broken(ctx):
            calls.append("broken")
            raise OSError("disk full")

        chain = FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[Step(name="broken", action=broken), _member("good", calls, installs=True)],
        )

        outcome = _resolver(context).resolve(chain)

        assert outcome.method_used == "good"
        assert calls == ["broken", "good"]
        assert "OSError" in outcome.attempts[0].outcome.error

    def test_fallback_is_logged(self, context, docker_installed):
        calls = []
        chain = FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[_member("plugin", calls), _member("standalone", calls, installs=True)],
        )
        _resolver(context).resolve(chain)

        messages = [r.message for r in context.run_log.records]
        assert any("falling back (1/2)" in m for m in messages)
        assert any("using standalone" in m for m in messages)


class TestPreProbe:
    def test_present_capability_skips_members(self, context, docker_installed):
        docker_installed.machine.installed.add("docker-compose-plugin")
        calls = []
        chain = FallbackChain(
            name="Docker Compose", capability="compose", members=[_member("plugin", calls)],
        )

        outcome = _resolver(context).resolve(chain)

        assert outcome.ok
        assert outcome.method_used == ALREADY_PRESENT
        assert outcome.attempts == []
        assert calls == []

    def test_probe_first_disabled_always_runs(self, context, docker_installed):
        docker_installed.machine.installed.add("docker-compose-plugin")
        calls = []
        chain = FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[_member("plugin", calls)],
            probe_first=False,
        )

        outcome = _resolver(context).resolve(chain)

        assert outcome.method_used == "plugin"
        assert calls == ["plugin"]


class TestExhaustion:
    def _failing_chain(self, calls, *, required=True):
        return FallbackChain(
            name="Docker Compose",
            capability="compose",
            members=[
                _member("plugin", calls, result=Outcome.failure("no match")),
                _member("standalone", calls, result=Outcome.failure("HTTP 404")),
            ],
            required=required,
        )

    def test_required_chain_raises(self, context, docker_installed):
        calls = []
        with pytest.raises(StepFailure) as exc_info:
            _resolver(context).resolve(self._failing_chain(calls))

        exc = exc_info.value
        assert calls == ["plugin", "standalone"]
        assert exc.step == "Docker Compose"
        assert exc.attempt == "standalone"
        assert isinstance(exc.__cause__, VerificationFailure)
        assert isinstance(exc.outcome, ChainOutcome)
        assert not exc.outcome.ok
        assert len(exc.outcome.attempts) == 2
        assert context.run_log.records[-1].level == "fail"

    def test_optional_chain_returns_failed_outcome(self, context, docker_installed):
        calls = []
        outcome = _resolver(context).resolve(self._failing_chain(calls, required=False))

        assert not outcome.ok
        assert outcome.method_used is None
        assert calls == ["plugin", "standalone"]


class TestChainModel:
    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError, match="no members"):
            FallbackChain(name="empty", capability="compose", members=[])
