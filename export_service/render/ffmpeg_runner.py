"""Time-bounded execution of FFmpeg commands."""

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# Number of stderr lines kept as the diagnostic of a failed run
STDERR_TAIL_LINES = 20


class FFmpegError(Exception):
    """FFmpeg exited with an error, timed out, or could not be started."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out
        super().__init__(message)

    @property
    def diagnostic(self) -> str:
        """Short description suitable for logs and error responses."""
        tail = stderr_tail(self.stderr)
        return f"{self} | {tail}" if tail else str(self)


# Signature shared by run_ffmpeg and test doubles
FFmpegRunner = Callable[..., Awaitable[None]]


def stderr_tail(stderr: str, lines: int = STDERR_TAIL_LINES) -> str:
    return "\n".join(stderr.strip().splitlines()[-lines:])


async def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass  # already exited
    await proc.wait()


async def run_ffmpeg(cmd: list[str], *, timeout_s: float) -> None:
    """Run an FFmpeg command and wait for it to finish.

    Args:
        cmd: Full command line (executable first, output path last)
        timeout_s: Maximum wall time before the process is killed

    Raises:
        FFmpegError: On non-zero exit, timeout, or if the binary is missing
    """
    logger.debug(f"[FFMPEG] Command: {' '.join(cmd)}")

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise FFmpegError(f"Failed to start {cmd[0]}: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError:
        await _kill(proc)
        raise FFmpegError(f"{cmd[0]} timed out after {timeout_s}s", timed_out=True)
    except asyncio.CancelledError:
        await _kill(proc)
        raise

    if proc.returncode != 0:
        stderr_text = stderr.decode("utf-8", errors="replace")
        raise FFmpegError(
            f"{cmd[0]} exited with code {proc.returncode}",
            returncode=proc.returncode,
            stderr=stderr_text,
        )
