import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from portly.errors import BindError, NoPortAvailableError
from portly.models.assignment import HIGHEST_PORT, PortRange
from portly.services.assignment_store import AssignmentStore
from portly.services.owner_check import ProcessOwnerCheck
from portly.services.reservation import PortReservation
from portly.utils.port_probe import DEFAULT_HOST, is_port_in_use

logger = logging.getLogger(__name__)

# Range expansion step, as a share of the ports left above the current max
EXPANSION_RATIO = 0.10
MIN_INCREMENT = 50
MAX_INCREMENT = 2000


@dataclass
class Allocation:
    port: int
    reservation: PortReservation
    reused: bool = False


class PortAllocator:
    """Chooses and reserves the port for this run"""

    def __init__(
        self,
        port_range: PortRange,
        store: AssignmentStore,
        key: str,
        app_name: str,
        owner_check: Optional[ProcessOwnerCheck] = None,
        host: str = DEFAULT_HOST,
        forced: bool = False,
        expand_max: bool = False,
        probe: Optional[Callable[..., bool]] = None,
        reserve: Optional[Callable[..., PortReservation]] = None
    ):
        self.port_range = port_range
        self.store = store
        self.key = key
        self.app_name = app_name
        self.owner_check = owner_check or ProcessOwnerCheck()
        self.host = host
        self.forced = forced
        self.expand_max = expand_max
        self._probe = probe or is_port_in_use
        self._reserve = reserve or PortReservation.hold
        self._lock = asyncio.Lock()

    async def allocate(self) -> Allocation:
        """
        Reserve the previous port if it is still usable, otherwise the first free one.

        Raises:
            BindError: If the previous port looked free but could not be bound
            NoPortAvailableError: If no port in the range could be bound
        """
        async with self._lock:
            if not self.forced:
                reused = await self._reuse_previous()
                if reused is not None:
                    return reused
            else:
                logger.info("Forced allocation, ignoring any previous assignment")

            return self._scan()

    async def _reuse_previous(self) -> Optional[Allocation]:
        previous = self.store.read(self.key)
        if previous is None:
            return None

        if not self.port_range.contains(previous):
            logger.info(f"Previous port {previous} is outside {self.port_range}, scanning")
            return None

        in_use = self._probe(previous, self.host)
        owned = await self.owner_check.is_owned_by_self(previous, self.app_name)

        if in_use:
            if owned:
                logger.info(f"Previous port {previous} is still held by {self.app_name}, scanning")
            else:
                logger.info(f"Previous port {previous} is taken by another process, scanning")
            return None

        # A lost race here surfaces as BindError, no retry
        reservation = self._reserve(previous, self.host)
        logger.info(f"Reusing previous port: {previous}")
        return Allocation(port=previous, reservation=reservation, reused=True)

    def _scan(self) -> Allocation:
        low, high = self.port_range.min_port, self.port_range.max_port

        while True:
            allocation = self._scan_between(low, high)
            if allocation is not None:
                logger.info(f"Found available port: {allocation.port}")
                return allocation

            if not self.expand_max:
                raise NoPortAvailableError(
                    f"No available port found in range {self.port_range.min_port}-{high}"
                )

            new_high = self._expanded_max(high)
            if new_high is None:
                raise NoPortAvailableError(
                    f"No available port found in range {self.port_range.min_port}-{high}; "
                    f"reached max port limit ({HIGHEST_PORT})"
                )

            logger.info(
                f"No port found in {self.port_range.min_port}-{high}, "
                f"expanding max from {high} to {new_high} (Inc={new_high - high})"
            )
            low, high = high + 1, new_high

    def _scan_between(self, low: int, high: int) -> Optional[Allocation]:
        for port in range(low, high + 1):
            try:
                reservation = self._reserve(port, self.host)
            except BindError:
                continue
            return Allocation(port=port, reservation=reservation)
        return None

    @staticmethod
    def _expanded_max(current_max: int) -> Optional[int]:
        remaining = HIGHEST_PORT - current_max
        if remaining <= 0:
            return None

        increment = int(remaining * EXPANSION_RATIO)
        increment = max(MIN_INCREMENT, min(increment, MAX_INCREMENT))
        new_max = min(current_max + increment, HIGHEST_PORT)

        if new_max > 60000 >= current_max:
            logger.warning("Approaching high port range (> 60000)")
        if new_max > 65000 >= current_max:
            logger.warning("Very close to port upper limit (> 65000)")

        return new_max
