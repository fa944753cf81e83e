"""Unit tests for the process owner check"""
import stat

import pytest

from portly.errors import LookupFailure
from portly.services.owner_check import ProcessOwnerCheck


def make_tool(directory, name, body):
    """Write a small executable shell script standing in for lsof/pm2"""
    path = directory / name
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


class TestProcessOwnerCheck:
    """Test pid correlation between the port and the supervisor"""

    @pytest.mark.asyncio
    async def test_matching_pids(self, tmp_path):
        """Test the same pid on both sides means owned"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(tmp_path, "pm2", "echo 4242"),
            lsof_command=make_tool(tmp_path, "lsof", "echo 4242")
        )

        assert await check.is_owned_by_self(3000, "chat") is True

    @pytest.mark.asyncio
    async def test_different_pids(self, tmp_path):
        """Test an unrelated listener is not owned"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(tmp_path, "pm2", "echo 4242"),
            lsof_command=make_tool(tmp_path, "lsof", "echo 1111")
        )

        assert await check.is_owned_by_self(3000, "chat") is False

    @pytest.mark.asyncio
    async def test_any_shared_pid(self, tmp_path):
        """Test cluster-mode apps with several pids still match"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(tmp_path, "pm2", "printf '100\\n200\\n'"),
            lsof_command=make_tool(tmp_path, "lsof", "printf '300\\n200\\n'")
        )

        assert await check.is_owned_by_self(3000, "chat") is True

    @pytest.mark.asyncio
    async def test_supervisor_receives_app_name(self, tmp_path):
        """Test the supervisor is asked for `pid <app>`"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(
                tmp_path, "pm2", '[ "$1" = pid ] && [ "$2" = chat ] && echo 4242'
            ),
            lsof_command=make_tool(tmp_path, "lsof", "echo 4242")
        )

        assert await check.is_owned_by_self(3000, "chat") is True
        assert await check.is_owned_by_self(3000, "other") is False

    @pytest.mark.asyncio
    async def test_missing_tools(self, tmp_path):
        """Test absent tools resolve to False"""
        check = ProcessOwnerCheck(
            supervisor_command=str(tmp_path / "no-pm2"),
            lsof_command=str(tmp_path / "no-lsof")
        )

        assert await check.is_owned_by_self(3000, "chat") is False

    @pytest.mark.asyncio
    async def test_unbound_port(self, tmp_path):
        """Test lsof finding nothing (exit 1) resolves to False"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(tmp_path, "pm2", "echo 4242"),
            lsof_command=make_tool(tmp_path, "lsof", "exit 1")
        )

        assert await check.is_owned_by_self(3000, "chat") is False

    @pytest.mark.asyncio
    async def test_app_not_running(self, tmp_path):
        """Test pm2 reporting pid 0 for a stopped app resolves to False"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(tmp_path, "pm2", "echo 0"),
            lsof_command=make_tool(tmp_path, "lsof", "echo 0")
        )

        assert await check.is_owned_by_self(3000, "chat") is False

    @pytest.mark.asyncio
    async def test_lookup_timeout(self, tmp_path):
        """Test a hanging tool is killed and resolves to False"""
        check = ProcessOwnerCheck(
            supervisor_command=make_tool(tmp_path, "pm2", "echo 4242"),
            lsof_command=make_tool(tmp_path, "lsof", "exec sleep 5"),
            timeout=0.2
        )

        assert await check.is_owned_by_self(3000, "chat") is False

    @pytest.mark.asyncio
    async def test_port_pids_raises_lookup_failure(self, tmp_path):
        """Test the lower-level lookup reports failures as LookupFailure"""
        check = ProcessOwnerCheck(lsof_command=make_tool(tmp_path, "lsof", "echo none"))

        with pytest.raises(LookupFailure):
            await check.port_pids(3000)

    @pytest.mark.asyncio
    async def test_port_pids_lsof_arguments(self, tmp_path):
        """Test lsof is asked for listeners on the given port"""
        check = ProcessOwnerCheck(
            lsof_command=make_tool(tmp_path, "lsof", '[ "$2" = "-iTCP:3042" ] && echo 77')
        )

        assert await check.port_pids(3042) == {77}
