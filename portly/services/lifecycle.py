"""
Lifecycle Controller

Runs one port-management session: allocate and hold a port, persist it,
render the proxy config, signal readiness, then keep the port held until
shutdown is requested.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Optional

from portly.errors import ConfigurationError
from portly.models.assignment import PortRange
from portly.services.assignment_store import AssignmentStore
from portly.services.owner_check import ProcessOwnerCheck
from portly.services.renderer import (
    read_template,
    remove_ready_marker,
    render_template,
    write_config,
    write_ready_marker,
)
from portly.services.reservation import PortReservation
from portly.settings import Settings
from portly.utils.port_allocator import PortAllocator

logger = logging.getLogger(__name__)


class PortLifecycle:
    """
    Owns the reservation for the whole run.

    start() commits port ownership and writes every output file. If any
    step after the bind fails, the reservation is released before the
    error propagates, so no half-started state is left behind.
    """

    def __init__(self, settings: Settings, owner_check: Optional[ProcessOwnerCheck] = None):
        self.settings = settings
        self.owner_check = owner_check or ProcessOwnerCheck(
            supervisor_command=settings.supervisor_command,
            lsof_command=settings.lsof_command,
            timeout=settings.lookup_timeout
        )
        self.store = AssignmentStore(settings.state_file)
        self.reservation: Optional[PortReservation] = None
        self.config_path: Optional[Path] = None
        self._stop_event = asyncio.Event()
        self._shutdown_lock = threading.Lock()
        self._shut_down = False

    @property
    def port(self) -> Optional[int]:
        return self.reservation.port if self.reservation else None

    def validate(self) -> PortRange:
        """
        Check required settings.

        Raises:
            ConfigurationError: If the app name, domain or range is missing or invalid
        """
        if not self.settings.app_name:
            raise ConfigurationError("Missing required environment variable APP_NAME")
        if not self.settings.domain:
            raise ConfigurationError("Missing required environment variable DOMAIN")
        # DOMAIN is used as a filename under CONFIG_DIR
        if any(sep in self.settings.domain for sep in ("/", "\\", "..")):
            raise ConfigurationError(
                f"DOMAIN must be a plain host name, got {self.settings.domain!r}"
            )
        if not self.settings.port_env_name:
            raise ConfigurationError("PORT_ENV_NAME must not be empty")

        try:
            return PortRange(min_port=self.settings.port_min, max_port=self.settings.port_max)
        except ValueError as e:
            raise ConfigurationError(f"Invalid port range: {e}") from e

    async def start(self) -> int:
        """Allocate, persist, render and mark ready. Returns the held port."""
        port_range = self.validate()
        settings = self.settings

        allocator = PortAllocator(
            port_range=port_range,
            store=self.store,
            key=settings.port_env_name,
            app_name=settings.app_name,
            owner_check=self.owner_check,
            host=settings.bind_host,
            forced=settings.forced,
            expand_max=settings.expand_max
        )
        allocation = await allocator.allocate()
        self.reservation = allocation.reservation

        try:
            self.store.write(settings.port_env_name, allocation.port)

            template = read_template(settings.template_path)
            placeholders = [
                ("DOMAIN", settings.domain),
                ("PORT", ""),
                *settings.template_vars.items()
            ]
            content = render_template(template, placeholders, allocation.port)
            self.config_path = write_config(settings.config_dir, settings.domain, content)

            write_ready_marker(settings.ready_file)
        except BaseException:
            self.release()
            raise

        logger.info(
            f"{settings.app_name} assigned {settings.port_env_name}={allocation.port} "
            f"for {settings.domain}"
        )
        return allocation.port

    def request_shutdown(self) -> None:
        """Ask wait_for_shutdown() to return. Safe to call from a signal handler."""
        if not self._stop_event.is_set():
            logger.info("Shutdown requested")
            self._stop_event.set()

    async def wait_for_shutdown(self) -> None:
        await self._stop_event.wait()

    def release(self) -> None:
        if self.reservation is not None:
            self.reservation.release()

    def shutdown(self) -> None:
        """Release the reservation and remove the readiness marker, once"""
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        self.release()
        remove_ready_marker(self.settings.ready_file)
        logger.info("Portly stopped")

    async def run(self) -> int:
        """start(), then hold the port until shutdown is requested"""
        try:
            port = await self.start()
            logger.info(f"Holding port {port}, waiting for termination signal")
            await self.wait_for_shutdown()
            return port
        finally:
            self.shutdown()
