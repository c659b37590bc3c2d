"""
Tests for the bounded process runner, using real Python child processes.
"""

import asyncio
import os
import sys
import time

import pytest

from app.services.process_runner import (
    ProcessLaunchError,
    ProcessTimeout,
    _CappedBuffer,
    run_process,
)


def _python(code):
    return [sys.executable, "-c", code]


def _pid_alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class TestCappedBuffer:
    """Tests for _CappedBuffer."""

    def test_head(self):
        buffer = _CappedBuffer(5)
        buffer.feed(b"abc")
        buffer.feed(b"defgh")
        assert buffer.getvalue() == b"abcde"
        assert buffer.dropped == 3

    def test_tail(self):
        buffer = _CappedBuffer(5, keep_tail=True)
        buffer.feed(b"abc")
        buffer.feed(b"defgh")
        assert buffer.getvalue() == b"defgh"
        assert buffer.dropped == 3

    def test_under_limit(self):
        buffer = _CappedBuffer(10)
        buffer.feed(b"abc")
        assert buffer.getvalue() == b"abc"
        assert buffer.dropped == 0


class TestRunProcess:
    """Tests for run_process."""

    def test_captures_output(self):
        result = asyncio.run(
            run_process(
                _python("import sys; print('out'); print('err', file=sys.stderr)"),
                timeout_seconds=30,
                max_output_bytes=4096,
            )
        )
        assert result.returncode == 0
        assert result.stdout.strip() == b"out"
        assert result.stderr.strip() == b"err"
        assert result.truncated is False

    def test_nonzero_exit_is_returned(self):
        result = asyncio.run(
            run_process(_python("import sys; sys.exit(3)"), timeout_seconds=30, max_output_bytes=1024)
        )
        assert result.returncode == 3

    def test_arguments_not_shell_interpreted(self, tmp_path):
        """Test that shell metacharacters reach the child verbatim."""
        marker = tmp_path / "pwned"
        hostile = f"x; touch {marker}"
        result = asyncio.run(
            run_process(
                _python("import sys; print(sys.argv[1])") + [hostile],
                timeout_seconds=30,
                max_output_bytes=1024,
            )
        )
        assert result.stdout.strip().decode() == hostile
        assert not marker.exists()

    def test_timeout_kills_process(self, tmp_path):
        """Test that a hanging process is killed and ProcessTimeout raised."""
        pid_file = tmp_path / "pid"
        code = (
            "import os, sys, time\n"
            f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
            "time.sleep(60)\n"
        )
        started = time.monotonic()
        with pytest.raises(ProcessTimeout):
            asyncio.run(run_process(_python(code), timeout_seconds=1.0, max_output_bytes=1024))
        assert time.monotonic() - started < 30
        pid = int(pid_file.read_text())
        assert not _pid_alive(pid)

    def test_output_is_capped(self):
        """Test that a chatty process cannot grow the buffers past the cap."""
        code = (
            "import sys\n"
            "sys.stdout.write('o' * 200000)\n"
            "sys.stderr.write('e' * 200000 + 'END')\n"
        )
        result = asyncio.run(run_process(_python(code), timeout_seconds=30, max_output_bytes=2048))
        assert result.returncode == 0
        assert len(result.stdout) + len(result.stderr) <= 2048
        assert result.truncated is True
        assert result.stderr.endswith(b"END")

    def test_launch_error(self):
        with pytest.raises(ProcessLaunchError):
            asyncio.run(
                run_process(["/nonexistent/tool-xyz"], timeout_seconds=5, max_output_bytes=1024)
            )

    def test_cancellation_kills_process(self, tmp_path):
        """Test that cancelling the awaiting task terminates the child."""
        pid_file = tmp_path / "pid"
        code = (
            "import os, time\n"
            f"open({str(pid_file)!r}, 'w').write(str(os.getpid()))\n"
            "time.sleep(60)\n"
        )

        async def scenario():
            task = asyncio.create_task(
                run_process(_python(code), timeout_seconds=60, max_output_bytes=1024)
            )
            for _ in range(200):
                if pid_file.exists() and pid_file.read_text():
                    break
                await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        pid = int(pid_file.read_text())
        assert not _pid_alive(pid)
