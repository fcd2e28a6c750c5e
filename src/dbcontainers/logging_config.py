"""
Logging configuration for dbcontainers

Provides console and file logging for container operations. Commands sent to
the container runtime can additionally be written to dedicated per-operation
files in the logs/ directory.
"""

import logging
import logging.handlers
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional


def setup_logging(
    log_dir: str = "logs",
    verbose: bool = False,
    log_level: Optional[str] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Set up logging for dbcontainers operations.

    Args:
        log_dir: Directory for log files
        verbose: Enable verbose console output
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        enable_file_logging: Whether to write logs to files

    Returns:
        Configured logger instance
    """
    log_path = Path(log_dir)

    if log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if enable_file_logging:
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"dbcontainers_{timestamp}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger("dbcontainers")
    logger.debug(f"Logging initialized - Level: {logging.getLevelName(level)}")
    if enable_file_logging:
        logger.debug(f"Log directory: {log_path.absolute()}")

    return logger


def get_subprocess_log_file(operation: str, log_dir: str = "logs") -> str:
    """
    Generate timestamped log file path for command output.

    Args:
        operation: Operation name (e.g., 'container_postgres')
        log_dir: Base log directory

    Returns:
        Full path to log file for command output
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = Path(log_dir) / "containers" / f"{operation}_{timestamp}.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return str(log_file)


_MASK_PATTERNS = [
    # passwords embedded in connection URLs
    (re.compile(r"(\w+://[^:/\s]+:)[^@\s]+(@)"), r"\1***\2"),
    # create role x password 'secret' / with password = N'secret' / identified by 'secret'
    (re.compile(r"(password\s*=?\s*N?)'[^']*'", re.IGNORECASE), r"\1'***'"),
    (re.compile(r"(identified\s+by\s+)'[^']*'", re.IGNORECASE), r"\1'***'"),
    # POSTGRES_PASSWORD=x, MYSQL_ROOT_PASSWORD=x, MYSQL_PWD=x
    (re.compile(r"(\w*(?:PASSWORD|PWD)=)\S+"), r"\1***"),
]


def mask_sensitive_data(message: str) -> str:
    """
    Mask sensitive information in log messages.

    Args:
        message: Log message that may contain sensitive data

    Returns:
        Message with sensitive information masked
    """
    for pattern, replacement in _MASK_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def mask_command(command: List[str]) -> str:
    """Render a command for logging with secrets masked."""
    return " ".join(mask_sensitive_data(arg) for arg in command)


class SubprocessLogHandler:
    """
    Handler for runtime commands with a dedicated log file.
    """

    def __init__(self, operation: str, log_dir: str = "logs"):
        """
        Initialize subprocess log handler.

        Handlers share one logger per operation, so a second handler for the
        same operation and directory reuses the open log file instead of
        adding another file handler.

        Args:
            operation: Name of the operation being logged
            log_dir: Base directory for log files
        """
        self.operation = operation
        self.logger = logging.getLogger(f"dbcontainers.subprocess.{operation}")
        self.logger.setLevel(logging.DEBUG)

        containers_dir = (Path(log_dir) / "containers").absolute()
        for handler in self.logger.handlers[:]:
            if not isinstance(handler, logging.FileHandler):
                continue
            if Path(handler.baseFilename).parent == containers_dir:
                self.log_file = handler.baseFilename
                return
            # a different log directory replaces the old file
            self.logger.removeHandler(handler)
            handler.close()

        self.log_file = get_subprocess_log_file(operation, log_dir)
        handler = logging.FileHandler(self.log_file)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        self.logger.addHandler(handler)

    def log_command(self, command: List[str]) -> None:
        """Log the command being executed."""
        self.logger.info(f"Executing command: {mask_command(command)}")

    def log_output(self, output: str, level: int = logging.INFO) -> None:
        """Log command output."""
        if output.strip():
            self.logger.log(level, mask_sensitive_data(output.strip()))

    def log_completion(self, return_code: int, elapsed_time: float) -> None:
        """Log command completion."""
        if return_code == 0:
            self.logger.info(
                f"✓ {self.operation} command completed in {elapsed_time:.2f}s"
            )
        else:
            self.logger.error(
                f"✗ {self.operation} command failed with return code {return_code} after {elapsed_time:.2f}s"
            )

    def get_log_file_path(self) -> str:
        """Get the path to the log file for this operation."""
        return self.log_file

    def close(self) -> None:
        """Close and detach the log file handlers of this operation."""
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
            handler.close()


def configure_third_party_loggers() -> None:
    """Configure third-party library loggers to reduce noise."""
    logging.getLogger("psycopg2").setLevel(logging.WARNING)
    logging.getLogger("pymysql").setLevel(logging.WARNING)


configure_third_party_loggers()
