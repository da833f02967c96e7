"""
Backend availability tracking.

The probe runs once per process: each backend is checked a single time at
startup and the result is frozen into an AvailabilitySnapshot. Until the
probe finishes the snapshot reports every backend as unavailable, so early
requests go straight to the pattern matcher.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from .backends import Backend
from .config import PROBE_TIMEOUT_MS, logger
from .schemas import ActiveMode, AvailabilityStatus


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Immutable view of which backends passed their probe."""
    cloud: bool = False
    local: bool = False

    @property
    def active_mode(self) -> ActiveMode:
        if self.cloud:
            return ActiveMode.CLOUD
        if self.local:
            return ActiveMode.LOCAL
        return ActiveMode.DETERMINISTIC

    def status(self) -> AvailabilityStatus:
        return AvailabilityStatus(
            cloud=self.cloud,
            local=self.local,
            fallback_always_available=True,
            active_mode=self.active_mode,
        )


class AvailabilityProbe:
    """
    Probes the cloud and local backends once and holds the result.

    A failed or timed-out probe marks the backend unavailable for the rest
    of the process lifetime; there is no automatic re-probe.
    """

    def __init__(self, cloud: Optional[Backend], local: Optional[Backend]):
        self.cloud = cloud
        self.local = local
        self._snapshot = AvailabilitySnapshot()
        self._done = False
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> AvailabilitySnapshot:
        return self._snapshot

    @property
    def done(self) -> bool:
        return self._done

    async def run(self) -> AvailabilitySnapshot:
        """Probe both backends concurrently; later calls return the first result."""
        async with self._lock:
            if self._done:
                return self._snapshot

            cloud_ok, local_ok = await asyncio.gather(
                _probe_backend(self.cloud),
                _probe_backend(self.local),
            )
            self._snapshot = AvailabilitySnapshot(cloud=cloud_ok, local=local_ok)
            self._done = True

        logger.info(
            f"Backend availability: cloud={cloud_ok} local={local_ok} "
            f"active_mode={self._snapshot.active_mode.value}"
        )
        return self._snapshot


async def _probe_backend(backend: Optional[Backend]) -> bool:
    if backend is None:
        return False
    try:
        return bool(await asyncio.wait_for(backend.probe(), timeout=PROBE_TIMEOUT_MS / 1000))
    except asyncio.TimeoutError:
        logger.warning(f"{backend.name} probe timed out after {PROBE_TIMEOUT_MS} ms")
    except Exception as e:
        logger.warning(f"{backend.name} probe failed: {e}")
    return False
