"""
Tests for backend availability probing and the backends' offline behavior.
"""

import asyncio

import pytest

from invoice_checker.availability import AvailabilityProbe, AvailabilitySnapshot
from invoice_checker.backends import CloudBackend
from invoice_checker.errors import BackendUnavailable
from invoice_checker.schemas import ActiveMode


class TestAvailabilitySnapshot:
    """Tests for AvailabilitySnapshot."""

    def test_default_is_deterministic(self):
        snapshot = AvailabilitySnapshot()
        assert snapshot.active_mode == ActiveMode.DETERMINISTIC
        status = snapshot.status()
        assert status.cloud is False
        assert status.local is False
        assert status.fallback_always_available is True

    @pytest.mark.parametrize("cloud,local,mode", [
        (True, True, ActiveMode.CLOUD),
        (True, False, ActiveMode.CLOUD),
        (False, True, ActiveMode.LOCAL),
    ])
    def test_active_mode(self, cloud, local, mode):
        assert AvailabilitySnapshot(cloud=cloud, local=local).active_mode == mode

    def test_is_immutable(self):
        snapshot = AvailabilitySnapshot()
        with pytest.raises(AttributeError):
            snapshot.cloud = True


class TestAvailabilityProbe:
    """Tests for AvailabilityProbe."""

    def test_before_run(self, make_backend):
        probe = AvailabilityProbe(make_backend("OpenAI"), make_backend("Ollama"))
        assert probe.done is False
        assert probe.snapshot == AvailabilitySnapshot()

    def test_run(self, make_backend):
        probe = AvailabilityProbe(make_backend("OpenAI", available=False), make_backend("Ollama"))
        snapshot = asyncio.run(probe.run())
        assert snapshot == AvailabilitySnapshot(cloud=False, local=True)
        assert probe.snapshot is snapshot
        assert probe.done is True

    def test_probes_only_once(self, make_backend):
        cloud = make_backend("OpenAI")
        local = make_backend("Ollama")
        probe = AvailabilityProbe(cloud, local)

        async def scenario():
            first = await probe.run()
            cloud.available = False
            second = await probe.run()
            return first, second

        first, second = asyncio.run(scenario())
        assert first is second
        assert cloud.probe_calls == 1
        assert local.probe_calls == 1

    def test_failing_probe_marks_unavailable(self, make_backend):
        probe = AvailabilityProbe(make_backend("OpenAI", error=RuntimeError("boom")), None)
        snapshot = asyncio.run(probe.run())
        assert snapshot.cloud is False
        assert snapshot.local is False

    def test_slow_probe_times_out(self, make_backend, monkeypatch):
        monkeypatch.setattr("invoice_checker.availability.PROBE_TIMEOUT_MS", 20)
        probe = AvailabilityProbe(make_backend("OpenAI", delay=1.0), make_backend("Ollama"))
        snapshot = asyncio.run(probe.run())
        assert snapshot.cloud is False
        assert snapshot.local is True


class TestCloudBackend:
    """Tests for CloudBackend without credentials."""

    def test_probe_without_key(self):
        assert asyncio.run(CloudBackend(api_key=None).probe()) is False

    def test_generate_without_key(self):
        with pytest.raises(BackendUnavailable):
            asyncio.run(CloudBackend(api_key="").generate("prompt", 1000))

    def test_engine_name(self):
        assert CloudBackend(api_key=None, model="gpt-4o").engine_name == "OpenAI gpt-4o"
