"""Common utilities for driving the provisioning tool.

Line sinks used to stream child process output into logging, and a small
one-shot command helper.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Trimmer:
    """Strip trailing whitespace from a line before handing it on."""

    def __init__(self, print_fn: Callable[[str], None]):
        self.print_fn = print_fn

    def __call__(self, line: str) -> None:
        self.print_fn(line.rstrip())


class LinePrinter:
    """Writer that calls print_fn once per complete line.

    Partial writes are buffered until a newline arrives. Whatever is left
    in the buffer is printed by close().
    """

    def __init__(self, print_fn: Callable[[str], None]):
        self.print_fn = print_fn
        self._buf = ''

    def write(self, data: str) -> int:
        self._buf += data
        while '\n' in self._buf:
            line, self._buf = self._buf.split('\n', 1)
            self.print_fn(line)
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        if self._buf:
            self.print_fn(self._buf)
            self._buf = ''


class MultiWriter:
    """Duplicate every write to all of the wrapped writers."""

    def __init__(self, *writers):
        self.writers = writers

    def write(self, data: str) -> int:
        for writer in self.writers:
            writer.write(data)
        return len(data)


def log_printer(log_fn: Callable[[str], None]) -> LinePrinter:
    """Build a line printer that logs trimmed lines with log_fn."""
    return LinePrinter(Trimmer(log_fn))


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: int = 60,
    env: Optional[dict] = None
) -> tuple[int, str, str]:
    """Run a short command to completion and return (rc, stdout, stderr).

    Failure to start or a timeout is reported as rc -1 with the reason in
    stderr, never raised.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        process = subprocess.Popen(
            cmd,
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors='replace',
        )
    except OSError as e:
        return -1, '', str(e)

    with process:
        try:
            out, err = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            return -1, '', f"{cmd[0]} timed out after {timeout}s"
    return process.returncode, out, err
