"""
Runtime Metrics Agent - Tests

Pytest tests for the agent's sampler, reporter and configuration.
"""

import asyncio
import gzip
import json

import httpx
import pytest

from metrics_store import MemStorage


def _recording_client(requests, status_for=None):
    """AsyncClient whose transport records decoded request bodies."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(gzip.decompress(request.content))
        requests.append({"headers": request.headers, "path": request.url.path, "body": body})
        status = status_for(body) if status_for else 200
        return httpx.Response(status, json=body)

    return httpx.AsyncClient(base_url="http://testserver", transport=httpx.MockTransport(handler))


class TestRuntimeSampler:
    """Test runtime sampling."""

    def test_collect_once_writes_fixed_gauge_set(self):
        """One tick writes every runtime gauge, RandomValue and PollCount."""
        from metrics_agent.telemetry import POLL_COUNT, RANDOM_VALUE, RUNTIME_GAUGES, RuntimeSampler

        storage = MemStorage()
        sampler = RuntimeSampler(storage)

        assert sampler.collect_once() == 1

        counters, gauges = storage.snapshot()
        assert set(gauges) == set(RUNTIME_GAUGES) | {RANDOM_VALUE}
        assert counters == {POLL_COUNT: 1}
        assert all(isinstance(v, float) for v in gauges.values())
        assert 0.0 <= gauges[RANDOM_VALUE] < 1.0

    def test_poll_count_increments_per_tick(self):
        from metrics_agent.telemetry import POLL_COUNT, RuntimeSampler

        storage = MemStorage()
        sampler = RuntimeSampler(storage)
        for _ in range(3):
            sampler.collect_once()

        assert storage.get_counter(POLL_COUNT) == 3

    @pytest.mark.asyncio
    async def test_loop_runs_until_stopped(self):
        """The periodic loop samples repeatedly and stops cleanly."""
        from metrics_agent.telemetry import POLL_COUNT, RuntimeSampler

        storage = MemStorage()
        sampler = RuntimeSampler(storage, interval=0.01)

        await sampler.start()
        assert sampler.is_running
        await asyncio.sleep(0.1)
        await sampler.stop()

        assert not sampler.is_running
        polls = storage.get_counter(POLL_COUNT)
        assert polls >= 2

        await asyncio.sleep(0.05)
        assert storage.get_counter(POLL_COUNT) == polls


class TestMetricsReporter:
    """Test metric reporting."""

    @pytest.mark.asyncio
    async def test_one_gzip_json_request_per_metric(self):
        from metrics_agent.transport import MetricsReporter

        storage = MemStorage()
        storage.accumulate_counter("PollCount", 4)
        storage.record_gauge("Alloc", 1024.0)
        storage.record_gauge("RandomValue", 0.5)

        requests = []
        async with _recording_client(requests) as client:
            reporter = MetricsReporter(storage, "http://testserver", client=client)
            sent = await reporter.report_once()

        assert sent == 3
        assert len(requests) == 3
        for req in requests:
            assert req["path"] == "/update/"
            assert req["headers"]["content-type"] == "application/json"
            assert req["headers"]["content-encoding"] == "gzip"

        bodies = sorted((r["body"] for r in requests), key=lambda b: b["id"])
        assert bodies == [
            {"id": "Alloc", "type": "gauge", "value": 1024.0},
            {"id": "PollCount", "type": "counter", "delta": 4},
            {"id": "RandomValue", "type": "gauge", "value": 0.5},
        ]

    @pytest.mark.asyncio
    async def test_counters_are_sent_as_deltas(self):
        """Acknowledged counter totals are not sent again."""
        from metrics_agent.transport import MetricsReporter

        storage = MemStorage()
        storage.accumulate_counter("PollCount", 5)

        requests = []
        async with _recording_client(requests) as client:
            reporter = MetricsReporter(storage, "http://testserver", client=client)
            await reporter.report_once()
            storage.accumulate_counter("PollCount", 3)
            await reporter.report_once()

        assert [r["body"]["delta"] for r in requests] == [5, 3]

    @pytest.mark.asyncio
    async def test_failed_counter_delta_is_carried_forward(self):
        """A rejected counter is re-sent with the accumulated delta next time."""
        from metrics_agent.transport import MetricsReporter

        storage = MemStorage()
        storage.accumulate_counter("PollCount", 2)

        statuses = iter([500, 200])
        requests = []
        async with _recording_client(requests, lambda body: next(statuses)) as client:
            reporter = MetricsReporter(storage, "http://testserver", client=client)
            assert await reporter.report_once() == 0
            storage.accumulate_counter("PollCount", 1)
            assert await reporter.report_once() == 1

        assert [r["body"]["delta"] for r in requests] == [2, 3]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_remaining_metrics(self):
        """A failing metric is skipped and the rest are still sent."""
        from metrics_agent.transport import MetricsReporter

        storage = MemStorage()
        storage.record_gauge("bad", 1.0)
        storage.record_gauge("good", 2.0)

        requests = []
        status_for = lambda body: 400 if body["id"] == "bad" else 200
        async with _recording_client(requests, status_for) as client:
            reporter = MetricsReporter(storage, "http://testserver", client=client)
            sent = await reporter.report_once()

        assert sent == 1
        assert {r["body"]["id"] for r in requests} == {"bad", "good"}

    @pytest.mark.asyncio
    async def test_transport_error_is_skipped(self):
        """Connection errors are logged and skipped, not raised."""
        from metrics_agent.transport import MetricsReporter

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        storage = MemStorage()
        storage.accumulate_counter("PollCount", 1)
        storage.record_gauge("Alloc", 1.0)

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(base_url="http://testserver", transport=transport) as client:
            reporter = MetricsReporter(storage, "http://testserver", client=client)
            assert await reporter.report_once() == 0
            assert reporter.build_metrics()[0].delta == 1

    @pytest.mark.asyncio
    async def test_out_of_range_counter_delta_does_not_block_cycle(self):
        """A counter whose delta leaves int64 is skipped; the rest are still sent."""
        from metrics_agent.transport import MetricsReporter
        from metrics_store.models import INT64_MAX

        storage = MemStorage()
        storage.accumulate_counter("Big", INT64_MAX)
        storage.accumulate_counter("PollCount", 2)
        storage.record_gauge("Alloc", 1.0)

        requests = []
        async with _recording_client(requests) as client:
            reporter = MetricsReporter(storage, "http://testserver", client=client)
            reporter._acknowledged["Big"] = -1
            assert await reporter.report_once() == 2

        assert {r["body"]["id"] for r in requests} == {"PollCount", "Alloc"}
        assert reporter._acknowledged["Big"] == -1

    @pytest.mark.asyncio
    async def test_report_once_requires_client(self):
        """Without start() or an injected client, no client is created implicitly."""
        from metrics_agent.transport import MetricsReporter

        storage = MemStorage()
        storage.record_gauge("Alloc", 1.0)
        reporter = MetricsReporter(storage, "http://testserver")

        with pytest.raises(RuntimeError):
            await reporter.report_once()
        assert reporter._client is None

    @pytest.mark.asyncio
    async def test_stop_closes_owned_client(self):
        from metrics_agent.transport import MetricsReporter

        reporter = MetricsReporter(MemStorage(), "http://testserver", interval=60)
        await reporter.start()
        client = reporter._client
        assert client is not None

        await reporter.stop()
        assert client.is_closed
        assert reporter._client is None


class TestAgentSettings:
    """Test configuration loading."""

    def test_defaults(self, monkeypatch):
        from metrics_agent.config import parse_args

        for name in ("ADDRESS", "POLL_INTERVAL", "REPORT_INTERVAL"):
            monkeypatch.delenv(name, raising=False)

        settings = parse_args([])

        assert settings.server_address == "localhost:8080"
        assert settings.poll_interval == 2
        assert settings.report_interval == 10
        assert settings.server_url == "http://localhost:8080"

    def test_flags(self, monkeypatch):
        from metrics_agent.config import parse_args

        for name in ("ADDRESS", "POLL_INTERVAL", "REPORT_INTERVAL"):
            monkeypatch.delenv(name, raising=False)

        settings = parse_args(["-a", "example:9090", "-p", "1", "-r", "5"])

        assert settings.server_address == "example:9090"
        assert settings.poll_interval == 1
        assert settings.report_interval == 5

    def test_environment_overrides_flags(self, monkeypatch):
        from metrics_agent.config import parse_args

        monkeypatch.setenv("ADDRESS", "env-host:7070")
        monkeypatch.setenv("REPORT_INTERVAL", "30")

        settings = parse_args(["-a", "flag-host:9090", "-r", "5"])

        assert settings.server_address == "env-host:7070"
        assert settings.report_interval == 30

    def test_rejects_non_positive_interval(self, monkeypatch):
        from pydantic import ValidationError
        from metrics_agent.config import parse_args

        monkeypatch.delenv("POLL_INTERVAL", raising=False)
        with pytest.raises(ValidationError):
            parse_args(["-p", "0"])


class TestMetricsAgent:
    """Test agent lifecycle."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, monkeypatch):
        """The agent samples, reports and shuts down on stop()."""
        from metrics_agent.config import AgentSettings
        from metrics_agent.main import MetricsAgent

        requests = []
        settings = AgentSettings(server_address="testserver", poll_interval=0.01, report_interval=0.05)
        agent = MetricsAgent(settings)
        agent.reporter._client = _recording_client(requests)

        runner = asyncio.create_task(agent.start())
        await asyncio.sleep(0.2)
        await agent.stop()
        await asyncio.wait_for(runner, timeout=1)

        assert agent.storage.get_counter("PollCount") >= 2
        assert any(r["body"]["id"] == "PollCount" for r in requests)
