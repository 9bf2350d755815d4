"""Unit tests for async subprocess utilities."""

import asyncio
import subprocess
import sys

import pytest

from olm_installer.utils.async_subprocess import run_async


class TestRunAsync:
    """Test run_async against real short-lived processes."""

    @pytest.mark.asyncio
    async def test_captures_output(self):
        result = await run_async([sys.executable, "-c", "print('hello')"])

        assert result.returncode == 0
        assert result.stdout.strip() == "hello"
        assert result.stderr == ""

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        result = await run_async([sys.executable, "-c", "import sys; sys.exit(3)"])

        assert result.returncode == 3

    @pytest.mark.asyncio
    async def test_check_raises(self):
        with pytest.raises(subprocess.CalledProcessError):
            await run_async([sys.executable, "-c", "import sys; sys.exit(1)"], check=True)

    @pytest.mark.asyncio
    async def test_stdin(self):
        result = await run_async(
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            stdin="olm",
        )

        assert result.stdout.strip() == "OLM"

    @pytest.mark.asyncio
    async def test_timeout(self):
        with pytest.raises(TimeoutError):
            await run_async([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.2)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.2):
                await run_async([sys.executable, "-c", "import time; time.sleep(30)"])

    @pytest.mark.asyncio
    async def test_missing_executable(self):
        with pytest.raises(FileNotFoundError):
            await run_async(["definitely-not-a-real-binary-olm"])
