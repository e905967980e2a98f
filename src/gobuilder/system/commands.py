"""
External command execution.

This module provides the ProcessRunner used for every external command the
builder issues: version-control operations under the short administrative
timeout and build/test commands under the long build timeout.

Output is captured through a single pipe shared by stdout and stderr so the
log preserves the order in which a failing build wrote its messages. A
reader thread drains the pipe while the caller waits on the process, which
lets the timeout fire even when the command produces no output at all.
"""

import logging
import os
import subprocess
import threading
import time
from pathlib import Path
from typing import IO, Dict, List, Optional, Sequence, Union

from ..models.results import CommandResult
from ..validation import CommandExecutionError, ProcessTimeout
from .processes import TimeoutConstants, terminate_process_tree

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_READ_CHUNK = 64 * 1024


class ProcessRunner:
    """
    Run external commands with a hard timeout and full output capture.
    """

    def __init__(self, default_env: Optional[Dict[str, str]] = None):
        """
        Args:
            default_env: Environment used when a call passes ``env=None``.
                None means inherit the builder's own environment.
        """
        self.default_env = default_env

    def run(
        self,
        argv: Sequence[PathLike],
        workdir: PathLike,
        timeout: float,
        env: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        Run a command whose output only matters when it fails.

        Returns:
            The exit status of the command

        Raises:
            ProcessTimeout: If the command exceeded the timeout
            CommandExecutionError: If the command could not be started
        """
        result = self.run_captured(argv, workdir, timeout, env=env)
        if result.exit_status != 0:
            tail = result.output.strip()[-2000:]
            logger.warning(
                f"'{_format_argv(argv)}' exited with status {result.exit_status}:\n{tail}"
            )
        return result.exit_status

    def run_captured(
        self,
        argv: Sequence[PathLike],
        workdir: PathLike,
        timeout: float,
        env: Optional[Dict[str, str]] = None,
        logfile: Optional[PathLike] = None,
    ) -> CommandResult:
        """
        Run a command and return its interleaved stdout/stderr and exit status.

        Args:
            argv: Command and arguments; no shell is involved
            workdir: Working directory for the command
            timeout: Seconds before the process tree is killed
            env: Complete environment for the command
            logfile: Optional path that receives a copy of the output as it
                is produced

        Raises:
            ProcessTimeout: If the command exceeded the timeout; carries the
                output captured so far
            CommandExecutionError: If the command could not be started
        """
        argv = [str(a) for a in argv]
        if env is None:
            env = self.default_env
        logger.debug(f"Executing command: '{_format_argv(argv)}' in '{workdir}'")

        log_handle: Optional[IO[bytes]] = None
        if logfile is not None:
            try:
                log_handle = open(logfile, "wb")
            except OSError as e:
                raise CommandExecutionError(argv, e)

        start = time.monotonic()
        try:
            try:
                process = subprocess.Popen(
                    argv,
                    cwd=str(workdir),
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    start_new_session=(os.name == "posix"),
                )
            except (OSError, ValueError) as e:
                raise CommandExecutionError(argv, e)

            chunks: List[bytes] = []
            reader = threading.Thread(
                target=_drain_pipe,
                args=(process.stdout, chunks, log_handle),
                name=f"output-{process.pid}",
                daemon=True,
            )
            reader.start()

            timed_out = False
            try:
                exit_status = process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                timed_out = True
                logger.warning(f"'{_format_argv(argv)}' timed out after {timeout:g}s, killing it")
                terminate_process_tree(process.pid, argv[0])
                exit_status = process.wait()

            reader.join(TimeoutConstants.OUTPUT_DRAIN_TIMEOUT)
            if reader.is_alive():
                # A surviving grandchild still holds the pipe open.
                logger.warning(f"Output of '{_format_argv(argv)}' still open after exit, closing it")
                terminate_process_tree(process.pid, argv[0])
                process.stdout.close()
                reader.join(TimeoutConstants.OUTPUT_DRAIN_TIMEOUT)
        finally:
            if log_handle is not None:
                log_handle.close()

        output = b"".join(chunks).decode("utf-8", errors="replace")
        duration = time.monotonic() - start

        if timed_out:
            raise ProcessTimeout(argv, timeout, output)

        logger.debug(f"'{_format_argv(argv)}' exited with status {exit_status} in {duration:.1f}s")
        return CommandResult(output=output, exit_status=exit_status, duration=duration)


def _drain_pipe(stream: IO[bytes], chunks: List[bytes], log_handle: Optional[IO[bytes]]) -> None:
    try:
        while True:
            data = stream.read1(_READ_CHUNK)
            if not data:
                break
            chunks.append(data)
            if log_handle is not None:
                log_handle.write(data)
                log_handle.flush()
    except (OSError, ValueError):
        # Pipe closed underneath us after a forced shutdown.
        pass


def _format_argv(argv: Sequence[PathLike]) -> str:
    return " ".join(str(a) for a in argv)
