"""
Process Owner Check

Tells whether the process listening on a port is the one the process
supervisor (pm2 by default) reports for our application. Advisory only:
every failure resolves to False.
"""

import asyncio
import logging
from typing import List, Set

from portly.errors import LookupFailure

logger = logging.getLogger(__name__)


class ProcessOwnerCheck:
    """Correlates a port's listening pid with the supervisor's pid for an app"""

    def __init__(
        self,
        supervisor_command: str = "pm2",
        lsof_command: str = "lsof",
        timeout: float = 5.0
    ):
        self.supervisor_command = supervisor_command
        self.lsof_command = lsof_command
        self.timeout = timeout

    async def is_owned_by_self(self, port: int, app_name: str) -> bool:
        """Return True iff the port's listener pid is one the supervisor reports for app_name"""
        try:
            port_pids = await self.port_pids(port)
            app_pids = await self.supervisor_pids(app_name)
        except LookupFailure as e:
            logger.debug(f"Owner check for port {port} ({app_name}) inconclusive: {e}")
            return False

        owned = bool(port_pids & app_pids)
        logger.debug(
            f"Owner check for port {port}: port pids={sorted(port_pids)}, "
            f"{app_name} pids={sorted(app_pids)}, owned={owned}"
        )
        return owned

    async def port_pids(self, port: int) -> Set[int]:
        """Pids listening on the port, via lsof"""
        stdout = await self._run([self.lsof_command, "-t", f"-iTCP:{port}", "-sTCP:LISTEN"])
        return self._parse_pids(stdout, f"{self.lsof_command} for port {port}")

    async def supervisor_pids(self, app_name: str) -> Set[int]:
        """Pids the supervisor reports for the app, via `<supervisor> pid <app>`"""
        stdout = await self._run([self.supervisor_command, "pid", app_name])
        return self._parse_pids(stdout, f"{self.supervisor_command} for {app_name}")

    async def _run(self, command: List[str]) -> str:
        """
        Run a lookup command and return its stdout.

        Raises:
            LookupFailure: If the tool is missing, times out or exits non-zero
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL
            )
        except OSError as e:
            raise LookupFailure(f"Cannot run {command[0]}: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise LookupFailure(f"{command[0]} timed out after {self.timeout} seconds")

        if process.returncode != 0:
            raise LookupFailure(f"{command[0]} exited with code {process.returncode}")

        return stdout.decode('utf-8', errors='replace')

    @staticmethod
    def _parse_pids(output: str, source: str) -> Set[int]:
        pids = {
            int(line.strip())
            for line in output.splitlines()
            if line.strip().isdigit() and int(line.strip()) > 0
        }
        if not pids:
            raise LookupFailure(f"No pid reported by {source}")
        return pids
