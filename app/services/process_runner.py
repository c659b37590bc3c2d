"""
Process Runner - bounded execution of external tools (ffprobe, ffmpeg).

Commands are always launched from an argument vector, never through a shell.
Each run races the process against a wall-clock timer; whichever finishes
first decides the outcome and the other task is cancelled. The child is
killed and reaped whenever the run ends early (timeout or caller cancellation),
so no process outlives the request that started it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


_CHUNK_SIZE = 64 * 1024


@dataclass
class ProcessResult:
    """Outcome of a process that exited on its own."""

    returncode: int
    stdout: bytes
    stderr: bytes
    truncated: bool
    elapsed_seconds: float


class _CappedBuffer:
    """
    Byte buffer with a hard size limit.

    Keeps either the first `limit` bytes (head) or the last `limit` bytes
    (tail). Anything beyond the limit is counted and dropped.
    """

    def __init__(self, limit: int, keep_tail: bool = False):
        self.limit = limit
        self.keep_tail = keep_tail
        self.dropped = 0
        self._data = bytearray()

    def feed(self, chunk: bytes) -> None:
        if self.keep_tail:
            self._data.extend(chunk)
            overflow = len(self._data) - self.limit
            if overflow > 0:
                del self._data[:overflow]
                self.dropped += overflow
            return

        room = self.limit - len(self._data)
        if room > 0:
            self._data.extend(chunk[:room])
        self.dropped += max(0, len(chunk) - max(room, 0))

    def getvalue(self) -> bytes:
        return bytes(self._data)


async def _drain(stream: Optional[asyncio.StreamReader], buffer: _CappedBuffer) -> None:
    # Keep reading after the cap is hit so the child never blocks on a full pipe
    if stream is None:
        return
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buffer.feed(chunk)


async def _collect(
    proc: asyncio.subprocess.Process,
    stdout_buffer: _CappedBuffer,
    stderr_buffer: _CappedBuffer,
) -> int:
    await asyncio.gather(
        _drain(proc.stdout, stdout_buffer),
        _drain(proc.stderr, stderr_buffer),
    )
    return await proc.wait()


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    await proc.wait()


async def run_process(
    cmd: Sequence[str],
    timeout_seconds: float,
    max_output_bytes: int,
) -> ProcessResult:
    """
    Run an external command with a timeout and capped output capture.

    Args:
        cmd: Argument vector; cmd[0] is the executable
        timeout_seconds: Wall-clock limit before the process is killed
        max_output_bytes: Combined cap for captured stdout + stderr. Stdout
            keeps its head, stderr keeps its tail (where ffmpeg reports errors).

    Returns:
        ProcessResult for a process that exited by itself (any exit code)

    Raises:
        ProcessLaunchError: If the executable could not be started
        ProcessTimeout: If the timer fired first (the process has been killed)
    """
    argv = [str(part) for part in cmd]
    logger.debug(f"Running: {' '.join(argv[:10])}...")

    started = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise ProcessLaunchError(argv[0], str(e)) from e

    per_stream = max(1, max_output_bytes // 2)
    stdout_buffer = _CappedBuffer(per_stream)
    stderr_buffer = _CappedBuffer(per_stream, keep_tail=True)

    collector = asyncio.create_task(_collect(proc, stdout_buffer, stderr_buffer))
    timer = asyncio.create_task(asyncio.sleep(timeout_seconds))

    try:
        await asyncio.wait({collector, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Runs on normal completion, on timeout and when the caller is cancelled
        timer.cancel()
        if not collector.done():
            collector.cancel()
            await _kill(proc)
            await asyncio.gather(collector, return_exceptions=True)
            logger.warning(f"Killed {argv[0]} (pid {proc.pid}) before it finished")

    if collector.cancelled():
        raise ProcessTimeout(argv[0], timeout_seconds)

    returncode = collector.result()
    elapsed = time.monotonic() - started
    truncated = bool(stdout_buffer.dropped or stderr_buffer.dropped)
    if truncated:
        logger.warning(
            f"{argv[0]} output truncated "
            f"(dropped {stdout_buffer.dropped + stderr_buffer.dropped} bytes)"
        )

    return ProcessResult(
        returncode=returncode,
        stdout=stdout_buffer.getvalue(),
        stderr=stderr_buffer.getvalue(),
        truncated=truncated,
        elapsed_seconds=elapsed,
    )


class ProcessLaunchError(Exception):
    """Exception raised when an external tool cannot be started."""

    def __init__(self, executable: str, cause: str):
        self.executable = executable
        self.cause = cause
        super().__init__(f"Failed to start {executable}: {cause}")


class ProcessTimeout(Exception):
    """Exception raised when an external tool exceeds its timeout."""

    def __init__(self, executable: str, timeout_seconds: float):
        self.executable = executable
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{executable} timed out after {timeout_seconds:g}s")
