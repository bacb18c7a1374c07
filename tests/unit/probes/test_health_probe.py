"""
Unit tests for HealthProbe.

Tests every probe kind against local collaborators:
- TCP against a real asyncio server
- HTTP through httpx.MockTransport
- Process, command and file probes
- Retry loop with fixed and exponential backoff
"""
import asyncio
import shutil
from unittest.mock import AsyncMock

import httpx
import pytest

from cyberblue_deploy.models.service_descriptor import Backoff, ProbeSpec
from cyberblue_deploy.models.service_run import FailureReason
from cyberblue_deploy.services.health_probe import HealthProbe

from fixtures import FakeRuntime


def _transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


class TestProbeSpec:
    """Unit tests for probe declaration and delays."""

    @pytest.mark.unit
    def test_fixed_delay(self):
        spec = ProbeSpec.tcp("localhost", 80, interval=3.0)

        assert [spec.delay_after(n) for n in (1, 2, 5)] == [3.0, 3.0, 3.0]

    @pytest.mark.unit
    def test_exponential_delay_is_capped(self):
        spec = ProbeSpec.tcp(
            "localhost", 80, interval=1.0, max_interval=4.0, backoff=Backoff.EXPONENTIAL
        )

        assert [spec.delay_after(n) for n in (1, 2, 3, 4, 5)] == [1.0, 2.0, 4.0, 4.0, 4.0]

    @pytest.mark.unit
    def test_invalid_declarations_rejected(self):
        with pytest.raises(ValueError):
            ProbeSpec.tcp("localhost", 80, timeout=0)
        with pytest.raises(ValueError):
            ProbeSpec.http("http://localhost", max_attempts=0)
        with pytest.raises(ValueError):
            ProbeSpec.command_exits_zero([])

    @pytest.mark.unit
    def test_describe(self):
        assert ProbeSpec.tcp("localhost", 7000).describe() == "tcp://localhost:7000"
        assert ProbeSpec.http("http://localhost:7001").describe() == "GET http://localhost:7001"
        assert ProbeSpec.process("suricata").describe() == "running suricata"


class TestTcpProbe:
    """Unit tests for TCP connect probes."""

    @pytest.mark.unit
    async def test_listening_port_is_healthy(self):
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        try:
            result = await HealthProbe().check(ProbeSpec.tcp("127.0.0.1", port, timeout=2.0))
        finally:
            server.close()
            await server.wait_closed()

        assert result.healthy
        assert result.response_time_ms is not None

    @pytest.mark.unit
    async def test_closed_port_is_unhealthy(self):
        server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

        result = await HealthProbe().check(ProbeSpec.tcp("127.0.0.1", port, timeout=2.0))

        assert not result.healthy
        assert result.reason == FailureReason.PROBE_FAILED
        assert f"tcp://127.0.0.1:{port}" in result.detail


class TestHttpProbe:
    """Unit tests for HTTP status probes."""

    @pytest.mark.unit
    async def test_accepted_status(self):
        probe = HealthProbe(http_transport=_transport(lambda request: httpx.Response(200)))

        result = await probe.check(ProbeSpec.http("http://localhost:7004"))

        assert result.healthy

    @pytest.mark.unit
    async def test_redirect_accepted_when_declared(self):
        probe = HealthProbe(http_transport=_transport(lambda request: httpx.Response(302)))

        result = await probe.check(
            ProbeSpec.http("http://localhost:7007", accepted_codes=(200, 302, 404))
        )

        assert result.healthy

    @pytest.mark.unit
    async def test_unexpected_status(self):
        probe = HealthProbe(http_transport=_transport(lambda request: httpx.Response(503)))

        result = await probe.check(ProbeSpec.http("http://localhost:7005"))

        assert not result.healthy
        assert result.reason == FailureReason.PROBE_FAILED
        assert "HTTP 503" in result.detail

    @pytest.mark.unit
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        probe = HealthProbe(http_transport=_transport(handler))

        result = await probe.check(ProbeSpec.http("http://localhost:7002"))

        assert result.reason == FailureReason.PROBE_FAILED
        assert "Connection refused" in result.detail

    @pytest.mark.unit
    async def test_client_timeout_is_probe_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        probe = HealthProbe(http_transport=_transport(handler))

        result = await probe.check(ProbeSpec.http("http://localhost:7013"))

        assert result.reason == FailureReason.PROBE_TIMEOUT

    @pytest.mark.unit
    async def test_hanging_check_bounded_by_timeout(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        probe = HealthProbe(http_transport=_transport(handler))

        result = await asyncio.wait_for(
            probe.check(ProbeSpec.http("http://localhost:7003", timeout=0.05)), timeout=2
        )

        assert not result.healthy
        assert result.reason == FailureReason.PROBE_TIMEOUT

    @pytest.mark.unit
    async def test_basic_auth_sent(self):
        seen = {}

        def handler(request):
            seen["authorization"] = request.headers.get("authorization", "")
            return httpx.Response(200, json={"status": "green"})

        probe = HealthProbe(http_transport=_transport(handler))
        spec = ProbeSpec.http(
            "https://localhost:9200/_cluster/health",
            verify_tls=False,
            auth=("admin", "SecretPassword"),
        )

        result = await probe.check(spec)

        assert result.healthy
        assert seen["authorization"].startswith("Basic ")


class TestProcessProbe:
    """Unit tests for ProcessRunning probes."""

    @pytest.mark.unit
    async def test_running_container(self):
        probe = HealthProbe(runtime=FakeRuntime(running=["suricata"]))

        assert (await probe.check(ProbeSpec.process("suricata"))).healthy

    @pytest.mark.unit
    async def test_stopped_container(self):
        probe = HealthProbe(runtime=FakeRuntime())

        result = await probe.check(ProbeSpec.process("suricata"))

        assert result.reason == FailureReason.PROBE_FAILED
        assert "suricata is not running" in result.detail

    @pytest.mark.unit
    async def test_without_runtime_is_unhealthy(self):
        result = await HealthProbe().check(ProbeSpec.process("suricata"))

        assert not result.healthy
        assert "needs a container runtime" in result.detail


@pytest.mark.skipif(shutil.which("sleep") is None, reason="coreutils not available")
class TestCommandProbe:
    """Unit tests for CommandExitsZero probes."""

    @pytest.mark.unit
    async def test_exit_zero(self):
        assert (await HealthProbe().check(ProbeSpec.command_exits_zero(["true"]))).healthy

    @pytest.mark.unit
    async def test_non_zero_exit(self):
        result = await HealthProbe().check(ProbeSpec.command_exits_zero(["false"]))

        assert result.reason == FailureReason.PROBE_FAILED
        assert "exit 1" in result.detail

    @pytest.mark.unit
    async def test_hanging_command_times_out(self):
        result = await HealthProbe().check(
            ProbeSpec.command_exits_zero(["sleep", "5"], timeout=0.1)
        )

        assert result.reason == FailureReason.PROBE_TIMEOUT


class TestFileProbe:
    """Unit tests for FileExists probes."""

    @pytest.mark.unit
    async def test_present_file(self, tmp_path):
        (tmp_path / "admin.pem").write_text("cert")

        result = await HealthProbe().check(ProbeSpec.file(str(tmp_path / "admin.pem")))

        assert result.healthy

    @pytest.mark.unit
    async def test_missing_file(self, tmp_path):
        result = await HealthProbe().check(ProbeSpec.file(str(tmp_path / "admin.pem")))

        assert result.reason == FailureReason.PROBE_FAILED


class TestRetryLoop:
    """Unit tests for wait_until_healthy."""

    @pytest.mark.unit
    async def test_healthy_after_retries(self):
        responses = iter([503, 503, 200])
        sleep = AsyncMock()
        probe = HealthProbe(
            http_transport=_transport(lambda request: httpx.Response(next(responses))),
            sleep=sleep,
        )

        result = await probe.wait_until_healthy(
            ProbeSpec.http("http://localhost:7001", interval=2.0, max_attempts=5), "dashboard"
        )

        assert result.healthy
        assert result.attempts == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 2.0]

    @pytest.mark.unit
    async def test_exponential_backoff_until_exhausted(self):
        sleep = AsyncMock()
        probe = HealthProbe(runtime=FakeRuntime(), sleep=sleep)
        spec = ProbeSpec.process(
            "wazuh-manager",
            interval=1.0,
            max_interval=4.0,
            max_attempts=5,
            backoff=Backoff.EXPONENTIAL,
        )

        result = await probe.wait_until_healthy(spec, "wazuh-manager")

        assert not result.healthy
        assert result.attempts == 5
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0, 4.0, 4.0]

    @pytest.mark.unit
    async def test_no_sleep_after_single_attempt(self):
        sleep = AsyncMock()
        probe = HealthProbe(runtime=FakeRuntime(), sleep=sleep)

        result = await probe.wait_until_healthy(ProbeSpec.process("evebox", max_attempts=1))

        assert result.attempts == 1
        sleep.assert_not_awaited()
