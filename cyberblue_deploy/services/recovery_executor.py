"""Recovery Executor.

Führt die deklarierte Recovery-Aktion eines Services begrenzt und mit eigenem
Timeout aus. Ressourcen, die die Aktion verändert, werden für die Dauer der
Aktion exklusiv gesperrt.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from loguru import logger

from ..models.service_run import FailureReason, RunState, ServiceRun
from .resource_locks import ResourceLocks

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RecoveryResult:
    """Recovered oder RecoveryFailed(reason)."""

    recovered: bool
    reason: Optional[FailureReason] = None
    detail: str = ""

    @classmethod
    def ok(cls) -> "RecoveryResult":
        return cls(recovered=True)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str) -> "RecoveryResult":
        return cls(recovered=False, reason=reason, detail=detail)


class RecoveryExecutor:
    """Führt Recovery-Aktionen aus und zählt die Versuche pro ServiceRun."""

    def __init__(self, locks: Optional[ResourceLocks] = None, sleep: Sleep = asyncio.sleep):
        """
        Initialisiert den Recovery Executor.

        Args:
            locks: Gemeinsame Ressourcen-Locks (Default: eigene Instanz)
            sleep: Wartefunktion für den Backoff zwischen Versuchen
        """
        self.locks = locks or ResourceLocks()
        self._sleep = sleep

    def can_recover(self, run: ServiceRun) -> bool:
        descriptor = run.descriptor
        return (
            descriptor.recovery_action is not None
            and run.attempts < descriptor.max_recovery_attempts
        )

    async def recover(self, run: ServiceRun) -> RecoveryResult:
        """
        Führt einen Recovery-Versuch aus.

        Args:
            run: ServiceRun nach fehlgeschlagener Probe

        Returns:
            RecoveryResult; RecoveryTimeout wenn die Aktion das Timeout überschreitet
        """
        descriptor = run.descriptor

        if descriptor.recovery_action is None:
            return RecoveryResult.failed(
                FailureReason.RECOVERY_EXHAUSTED, "no recovery action declared"
            )
        if run.attempts >= descriptor.max_recovery_attempts:
            return RecoveryResult.failed(
                FailureReason.RECOVERY_EXHAUSTED,
                f"{run.attempts}/{descriptor.max_recovery_attempts} recovery attempts used",
            )

        if run.attempts > 0 and descriptor.recovery_backoff > 0:
            delay = descriptor.recovery_backoff * (2 ** (run.attempts - 1))
            logger.debug(f"{run.name}: recovery backoff {delay:.1f}s")
            await self._sleep(delay)

        run.attempts += 1
        run.transition(RunState.RECOVERING)
        logger.warning(
            f"{run.name}: recovery attempt {run.attempts}/{descriptor.max_recovery_attempts}"
            f" (last error: {run.last_error})"
        )

        # Das Timeout gilt nur für die Aktion, nicht für das Warten auf den Lock
        async with self.locks.acquire(*descriptor.recovery_resources):
            try:
                await asyncio.wait_for(
                    descriptor.recovery_action(), timeout=descriptor.recovery_timeout
                )
            except asyncio.TimeoutError:
                logger.error(f"{run.name}: recovery timed out after {descriptor.recovery_timeout}s")
                return RecoveryResult.failed(
                    FailureReason.RECOVERY_TIMEOUT,
                    f"recovery action exceeded {descriptor.recovery_timeout}s",
                )
            except Exception as e:
                logger.error(f"{run.name}: recovery action failed: {e}")
                return RecoveryResult.failed(FailureReason.RECOVERY_FAILED, str(e))

        logger.info(f"{run.name}: recovery action completed")
        return RecoveryResult.ok()
