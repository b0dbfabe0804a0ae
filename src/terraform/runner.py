"""Process runner for the provisioning tool.

Each lifecycle verb spawns the tool as a child process and streams its
stdout and stderr, line by line as they are produced, into caller supplied
sinks. The exit code is returned uninterpreted.
"""

import logging
import os
import signal
import subprocess
import threading
from pathlib import Path
from typing import Optional

from terraform.errors import TerraformNotFoundError, TerraformTimeoutError

logger = logging.getLogger(__name__)


def _kill(process: subprocess.Popen) -> None:
    """Kill the child and everything sharing its process group.

    Grandchildren inherit the output pipes, so killing only the direct
    child would leave the readers waiting on them.
    """
    if hasattr(os, 'killpg'):
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"Process group {process.pid} already gone")
    else:
        process.kill()


def _pump(stream, sink) -> None:
    """Copy lines from a child pipe into a sink until EOF."""
    for line in iter(stream.readline, ''):
        sink.write(line)
    stream.close()


class TerraformRunner:
    """Runs init/apply/destroy for a given tool binary.

    Attributes:
        binary: Tool executable name or path
        timeout: Seconds to wait for the child, None waits forever
    """

    def __init__(self, binary: str = 'terraform', timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"TerraformRunner(binary={self.binary!r}, timeout={self.timeout!r})"

    def run(
        self,
        verb: str,
        args: list[str],
        stdout,
        stderr,
        cwd: Optional[Path] = None,
        env: Optional[dict] = None,
    ) -> int:
        """Run ``<binary> <verb> <args...>`` and return its exit code.

        Raises:
            TerraformNotFoundError: binary could not be started
            TerraformTimeoutError: child outlived the timeout and was killed
        """
        cmd = [self.binary, verb, *args]
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
                bufsize=1,  # Line buffered
                start_new_session=hasattr(os, 'killpg'),
            )
        except FileNotFoundError as e:
            raise TerraformNotFoundError(self.binary) from e

        with process:
            readers = [
                threading.Thread(target=_pump, args=(process.stdout, stdout), daemon=True),
                threading.Thread(target=_pump, args=(process.stderr, stderr), daemon=True),
            ]
            for reader in readers:
                reader.start()

            try:
                rc = process.wait(timeout=self.timeout)
            except subprocess.TimeoutExpired as e:
                _kill(process)
                process.wait()
                raise TerraformTimeoutError(verb, self.timeout) from e
            except BaseException:
                _kill(process)
                raise
            finally:
                for reader in readers:
                    reader.join()

        logger.debug(f"{self.binary} {verb} exited with {rc}")
        return rc

    def init(self, args: list[str], stdout, stderr, **kwargs) -> int:
        return self.run('init', args, stdout, stderr, **kwargs)

    def apply(self, args: list[str], stdout, stderr, **kwargs) -> int:
        return self.run('apply', args, stdout, stderr, **kwargs)

    def destroy(self, args: list[str], stdout, stderr, **kwargs) -> int:
        return self.run('destroy', args, stdout, stderr, **kwargs)
