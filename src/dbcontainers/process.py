"""
Process execution for dbcontainers

Runs one external command, blocks until it exits and captures its output.
Nonzero exit codes, missing executables and timeouts are reported through
the returned ProcessResult rather than raised.
"""

import logging
import subprocess
import time
from typing import Dict, List, Optional

from .logging_config import SubprocessLogHandler, mask_command
from .models import ProcessResult

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


class ProcessExecutor:
    """Runs external commands and captures stdout/stderr as lines."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        log_handler: Optional[SubprocessLogHandler] = None,
    ):
        """
        Initialize the executor.

        Args:
            timeout: Per-command timeout in seconds, None waits until exit
            log_handler: Optional dedicated log file for commands and output
        """
        self.timeout = timeout
        self.log_handler = log_handler

    def run(
        self,
        command: List[str],
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """
        Run a command and wait for it to finish.

        Args:
            command: Program and arguments
            env: Environment for the child process (inherits when None)
            timeout: Override of the executor timeout for this command

        Returns:
            ProcessResult with exit code and captured output lines
        """
        timeout = timeout if timeout is not None else self.timeout
        logger.debug(f"Running: {mask_command(command)}")
        if self.log_handler:
            self.log_handler.log_command(command)

        start_time = time.time()
        try:
            process = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=env,
            )
            result = ProcessResult(
                command=command,
                returncode=process.returncode,
                stdout_lines=(process.stdout or "").splitlines(),
                stderr_lines=(process.stderr or "").splitlines(),
                elapsed=time.time() - start_time,
            )

        except subprocess.TimeoutExpired:
            result = ProcessResult(
                command=command,
                returncode=TIMEOUT_EXIT_CODE,
                stderr_lines=[f"Command timed out after {timeout} seconds"],
                elapsed=time.time() - start_time,
            )
            logger.error(f"Command timed out: {mask_command(command)}")

        except FileNotFoundError as e:
            result = ProcessResult(
                command=command,
                returncode=NOT_FOUND_EXIT_CODE,
                stderr_lines=[str(e)],
                elapsed=time.time() - start_time,
            )
            logger.error(f"Executable not found for command {command[0]}: {e}")

        if self.log_handler:
            self.log_handler.log_output("\n".join(result.stdout_lines))
            self.log_handler.log_output("\n".join(result.stderr_lines), logging.WARNING)
            self.log_handler.log_completion(result.returncode, result.elapsed)

        if not result.success:
            logger.debug(
                f"Exit code {result.returncode} from {command[0]}: {result.stderr_lines}"
            )
        return result
