"""
Tests for the Sequencer — ordering, abort handling, final verification.
"""

import json

from hostprep.core.engine.sequencer import Sequencer
from hostprep.core.models import FallbackChain, OnFailure, Outcome, Profile, Step
from hostprep.core.services.probes import ProbeRegistry


def _sequencer(context) -> Sequencer:
    return Sequencer(context, ProbeRegistry(context.host.commands))


def _recording(name, calls, result=None, on_failure=OnFailure.ABORT, install=None):
    def action(ctx):
        calls.append(name)
        if install:
            ctx.host.machine.installed.add(install)
        return result if result is not None else Outcome.success()

    return Step(name=name, action=action, on_failure=on_failure)


class TestOrdering:
    def test_entries_run_in_declared_order(self, context):
        calls = []
        profile = Profile(
            name="test",
            entries=[
                _recording("one", calls, install="docker"),
                FallbackChain(
                    name="compose",
                    capability="compose",
                    members=[_recording("two", calls, install="docker-compose-plugin")],
                ),
                _recording("three", calls),
            ],
            required_probes=["docker", "compose"],
        )

        report = _sequencer(context).run(profile)

        assert calls == ["one", "two", "three"]
        assert [o.step for o in report.outcomes] == ["one", "three"]
        assert report.chains[0].method_used == "two"
        assert report.ok
        assert report.status == "ok"
        assert report.readiness.ready

    def test_continue_failure_does_not_stop(self, context):
        calls = []
        profile = Profile(
            name="test",
            entries=[
                _recording("cleanup", calls, Outcome.failure("busy"), OnFailure.CONTINUE),
                _recording("after", calls),
            ],
        )

        report = _sequencer(context).run(profile)

        assert calls == ["cleanup", "after"]
        assert report.ok


class TestAbort:
    def test_abort_skips_remaining_entries_and_verification(self, context):
        calls = []
        profile = Profile(
            name="test",
            entries=[
                _recording("first", calls),
                _recording("broken", calls, Outcome.failure("exit 1")),
                _recording("never", calls),
            ],
            required_probes=["docker"],
        )

        report = _sequencer(context).run(profile)

        assert calls == ["first", "broken"]
        assert report.aborted_at == "broken"
        assert report.status == "aborted"
        assert report.readiness is None
        assert not report.ok
        assert "broken failed: exit 1" in report.error
        assert report.outcomes[-1].step == "broken"

    def test_required_chain_exhaustion_aborts(self, context):
        calls = []
        profile = Profile(
            name="test",
            entries=[
                FallbackChain(
                    name="Docker Compose",
                    capability="compose",
                    members=[_recording("plugin", calls), _recording("standalone", calls)],
                ),
                _recording("after", calls),
            ],
        )

        report = _sequencer(context).run(profile)

        assert report.aborted_at == "Docker Compose"
        assert calls == ["plugin", "standalone"]
        assert not report.chains[0].ok


class TestVerification:
    def test_not_ready_reports_missing(self, context):
        profile = Profile(name="test", entries=[], required_probes=["docker", "aws"])

        report = _sequencer(context).run(profile)

        assert report.status == "not-ready"
        assert report.readiness.missing == ["docker", "aws"]
        assert "docker, aws is not available" in report.error
        assert "Not ready, missing: docker, aws" in context.run_log.records[-1].message

    def test_verify_only_runs_no_entries(self, context):
        calls = []
        context.host.machine.installed.add("docker")
        profile = Profile(
            name="test",
            entries=[_recording("install", calls)],
            required_probes=["docker"],
        )

        report = _sequencer(context).run(profile, install=False)

        assert calls == []
        assert report.ok
        assert report.outcomes == []

    def test_optional_probe_logged_but_not_required(self, context):
        context.host.machine.installed.add("docker")
        report = _sequencer(context).verify(["docker"], ["compose"])

        assert report.ready
        messages = [r.message for r in context.run_log.records]
        assert any("compose ... not available (optional)" in m for m in messages)
        assert any(m.startswith("Ready: docker") for m in messages)

    def test_report_is_json_serializable(self, context):
        calls = []
        profile = Profile(
            name="test",
            entries=[_recording("one", calls, install="docker")],
            required_probes=["docker"],
        )
        data = _sequencer(context).run(profile).to_dict()

        encoded = json.loads(json.dumps(data))
        assert encoded["status"] == "ok"
        assert encoded["steps"][0]["step"] == "one"
        assert encoded["readiness"]["ready"] is True
