"""Health Probe für gestartete Services.

Jeder einzelne Check ist durch das Probe-Timeout begrenzt. Die festen
`sleep`-Wartezeiten der Installationsskripte werden durch eine deklarierte
Retry-Schleife (fixed oder exponential) ersetzt.
"""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx
from loguru import logger

from ..models.service_descriptor import ProbeKind, ProbeSpec
from ..models.service_run import FailureReason
from .container_runtime import ContainerRuntime

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class ProbeResult:
    """Healthy oder Unhealthy(reason)."""

    healthy: bool
    reason: Optional[FailureReason] = None
    detail: str = ""
    attempts: int = 1
    response_time_ms: Optional[float] = None

    @classmethod
    def ok(cls, response_time_ms: Optional[float] = None) -> "ProbeResult":
        return cls(healthy=True, response_time_ms=response_time_ms)

    @classmethod
    def unhealthy(cls, reason: FailureReason, detail: str) -> "ProbeResult":
        return cls(healthy=False, reason=reason, detail=detail)

    def with_attempts(self, attempts: int) -> "ProbeResult":
        return ProbeResult(self.healthy, self.reason, self.detail, attempts, self.response_time_ms)


class HealthProbe:
    """Prüft, ob ein gestarteter Service benutzbar ist."""

    def __init__(
        self,
        runtime: Optional[ContainerRuntime] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialisiert die Health Probe.

        Args:
            runtime: Container-Runtime für ProcessRunning-Probes
            http_transport: Optionaler httpx-Transport (Tests)
            sleep: Wartefunktion zwischen Versuchen
        """
        self.runtime = runtime
        self.http_transport = http_transport
        self._sleep = sleep

    async def check(self, spec: ProbeSpec) -> ProbeResult:
        """
        Führt genau einen Check aus.

        Args:
            spec: Probe-Konfiguration

        Returns:
            ProbeResult; ein überschrittenes Timeout ergibt Unhealthy(ProbeTimeout)
        """
        start_time = time.monotonic()
        try:
            result = await asyncio.wait_for(self._dispatch(spec), timeout=spec.timeout)
        except asyncio.TimeoutError:
            return ProbeResult.unhealthy(
                FailureReason.PROBE_TIMEOUT, f"{spec.describe()}: no answer within {spec.timeout}s"
            )
        except Exception as e:
            return ProbeResult.unhealthy(FailureReason.PROBE_FAILED, f"{spec.describe()}: {e}")

        if result.healthy:
            return ProbeResult.ok((time.monotonic() - start_time) * 1000)
        return result

    async def wait_until_healthy(self, spec: ProbeSpec, name: str = "") -> ProbeResult:
        """
        Wiederholt den Check bis Healthy oder bis max_attempts erreicht ist.

        Args:
            spec: Probe-Konfiguration
            name: Service-Name für das Logging

        Returns:
            Letztes ProbeResult mit Anzahl der Versuche
        """
        label = name or spec.describe()
        result = ProbeResult.unhealthy(FailureReason.PROBE_FAILED, "not checked")

        for attempt in range(1, spec.max_attempts + 1):
            result = await self.check(spec)
            if result.healthy:
                logger.debug(f"{label}: healthy after {attempt} attempt(s)")
                return result.with_attempts(attempt)

            if attempt < spec.max_attempts:
                delay = spec.delay_after(attempt)
                logger.debug(
                    f"{label}: probe {attempt}/{spec.max_attempts} failed "
                    f"({result.detail}), retry in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.warning(f"{label}: unhealthy after {spec.max_attempts} attempt(s): {result.detail}")
        return result.with_attempts(spec.max_attempts)

    async def _dispatch(self, spec: ProbeSpec) -> ProbeResult:
        if spec.kind == ProbeKind.TCP_CONNECT:
            return await self._check_tcp(spec)
        if spec.kind == ProbeKind.HTTP_STATUS:
            return await self._check_http(spec)
        if spec.kind == ProbeKind.PROCESS_RUNNING:
            return await self._check_process(spec)
        if spec.kind == ProbeKind.COMMAND_EXITS_ZERO:
            return await self._check_command(spec)
        if spec.kind == ProbeKind.FILE_EXISTS:
            return self._check_file(spec)
        raise ValueError(f"unsupported probe kind {spec.kind}")

    async def _check_tcp(self, spec: ProbeSpec) -> ProbeResult:
        try:
            _, writer = await asyncio.open_connection(spec.target, spec.port)
        except OSError as e:
            return ProbeResult.unhealthy(
                FailureReason.PROBE_FAILED, f"{spec.describe()}: {e.strerror or e}"
            )
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"{spec.describe()}: close after connect failed: {e}")
        return ProbeResult.ok()

    async def _check_http(self, spec: ProbeSpec) -> ProbeResult:
        client_args = {"timeout": spec.timeout, "verify": spec.verify_tls}
        if spec.auth:
            client_args["auth"] = spec.auth
        if self.http_transport is not None:
            client_args["transport"] = self.http_transport

        try:
            async with httpx.AsyncClient(**client_args) as client:
                response = await client.get(spec.target)
        except httpx.TimeoutException:
            return ProbeResult.unhealthy(FailureReason.PROBE_TIMEOUT, f"{spec.describe()}: Timeout")
        except httpx.ConnectError:
            return ProbeResult.unhealthy(
                FailureReason.PROBE_FAILED, f"{spec.describe()}: Connection refused"
            )

        if response.status_code in spec.accepted_codes:
            return ProbeResult.ok()
        return ProbeResult.unhealthy(
            FailureReason.PROBE_FAILED, f"{spec.describe()}: HTTP {response.status_code}"
        )

    async def _check_process(self, spec: ProbeSpec) -> ProbeResult:
        if self.runtime is None:
            raise RuntimeError("process probe needs a container runtime")
        if await self.runtime.is_running(spec.target):
            return ProbeResult.ok()
        return ProbeResult.unhealthy(FailureReason.PROBE_FAILED, f"{spec.target} is not running")

    async def _check_command(self, spec: ProbeSpec) -> ProbeResult:
        process = await asyncio.create_subprocess_exec(
            *spec.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            # Timeout von check(): Prozess nicht verwaist zurücklassen
            process.kill()
            await process.wait()
            raise

        if process.returncode == 0:
            return ProbeResult.ok()
        output = stdout.decode("utf-8", errors="replace").strip()
        last_line = output.splitlines()[-1] if output else ""
        return ProbeResult.unhealthy(
            FailureReason.PROBE_FAILED,
            f"{spec.describe()}: exit {process.returncode}{' ' + last_line if last_line else ''}",
        )

    def _check_file(self, spec: ProbeSpec) -> ProbeResult:
        if Path(spec.target).is_file():
            return ProbeResult.ok()
        return ProbeResult.unhealthy(FailureReason.PROBE_FAILED, f"{spec.target} does not exist")
