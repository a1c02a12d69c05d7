"""Backup source that runs a shell command and captures its stdout."""

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import BinaryIO

from restorable.errors import EnvironmentFailureError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 600


class CommandSource:
    """Runs ``sh -c <exec>`` and uses its stdout as the backup artifact.

    Stdout goes straight to a temporary file, so large dumps are never
    held in memory.

    Args:
        exec_: Shell command line to run.
        timeout_seconds: Maximum run time before the command is killed.
        temp_dir: Directory for the captured output (system default if None).
    """

    def __init__(
        self,
        exec_: str,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        temp_dir: Path | None = None,
    ):
        self._exec = exec_
        self._timeout = timeout_seconds
        self._temp_dir = temp_dir

    async def acquire(self) -> BinaryIO:
        if self._temp_dir is not None:
            self._temp_dir.mkdir(parents=True, exist_ok=True)
        output = tempfile.TemporaryFile(dir=self._temp_dir)
        try:
            await self._run(output)
        except BaseException:
            output.close()
            raise
        output.seek(0)
        return output

    async def _run(self, output: BinaryIO) -> None:
        logger.info("Running backup command: %s", self._exec)
        process = await asyncio.create_subprocess_shell(
            self._exec,
            stdout=output,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self._timeout)
        except TimeoutError:
            process.kill()
            await process.wait()
            raise EnvironmentFailureError(
                f"Backup command timed out after {self._timeout} seconds: {self._exec}"
            ) from None
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        if process.returncode != 0:
            raise EnvironmentFailureError(
                f"Backup command failed (exit {process.returncode}): {self._exec}\n"
                f"stderr: {stderr.decode('utf-8', errors='replace')}"
            )

    def identifier(self) -> str:
        return f"command:{self._exec}"
