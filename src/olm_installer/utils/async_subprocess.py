"""Async subprocess utilities for non-blocking command execution.

Commands started here are bound to the awaiting task: if the task is
cancelled (for example when an operation's timeout expires) the child
process is killed before the cancellation propagates.
"""

import asyncio
import logging
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class AsyncCompletedProcess:
    """Async version of subprocess.CompletedProcess.

    Mirrors the interface of subprocess.CompletedProcess for compatibility
    with code that expects returncode, stdout, stderr attributes.
    """

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


async def run_async(
    cmd: list[str],
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    check: bool = False,
    stdin: str | None = None,
) -> AsyncCompletedProcess:
    """Run a command asynchronously without blocking the event loop.

    Args:
        cmd: Command and arguments as a list
        env: Optional environment variables
        timeout: Optional timeout in seconds
        check: If True, raise CalledProcessError on non-zero exit
        stdin: Optional text fed to the process on standard input

    Returns:
        AsyncCompletedProcess with returncode, stdout, stderr

    Raises:
        TimeoutError: If command times out
        subprocess.CalledProcessError: If check=True and command fails
        FileNotFoundError: If the executable does not exist

    Example:
        result = await run_async(["kubectl", "get", "csv", "-n", "olm"], timeout=30)
        if result.returncode == 0:
            print(result.stdout)
    """
    logger.debug(f"Running async command: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except FileNotFoundError:
        logger.error(f"Command not found: {cmd[0]}")
        raise

    input_bytes = stdin.encode("utf-8") if stdin is not None else None

    try:
        if timeout:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(input_bytes), timeout=timeout
            )
        else:
            stdout_bytes, stderr_bytes = await process.communicate(input_bytes)
    except (TimeoutError, asyncio.CancelledError):
        # Kill the process so no orphaned kubectl outlives its operation
        if process.returncode is None:
            process.kill()
            await process.wait()
        logger.debug(f"Command aborted: {' '.join(cmd)}")
        raise

    stdout = stdout_bytes.decode("utf-8") if stdout_bytes else ""
    stderr = stderr_bytes.decode("utf-8") if stderr_bytes else ""

    result = AsyncCompletedProcess(
        args=cmd, returncode=process.returncode or 0, stdout=stdout, stderr=stderr
    )

    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            returncode=result.returncode,
            cmd=cmd,
            output=stdout,
            stderr=stderr,
        )

    logger.debug(
        f"Command completed: returncode={result.returncode}, "
        f"stdout_len={len(stdout)}, stderr_len={len(stderr)}"
    )

    return result
