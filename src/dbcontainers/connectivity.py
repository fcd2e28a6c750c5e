"""
Client connectivity checks for dbcontainers

A prober opens a client connection to the containerised database and closes
it straight away. It never retries; that is the job of the ReadinessPoller.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Tuple, Type

from .models import ContainerDescriptor, DatabaseResourceSpec

logger = logging.getLogger(__name__)


class ConnectivityProber(ABC):
    """Open-then-close connection check with admin or target-user credentials."""

    # Exceptions from the client library that mean "not reachable (yet)"
    connection_errors: Tuple[Type[BaseException], ...] = (OSError,)

    def __init__(
        self,
        descriptor: ContainerDescriptor,
        spec: DatabaseResourceSpec,
        host: str = "localhost",
        connect_timeout: int = 5,
    ):
        self.descriptor = descriptor
        self.spec = spec
        self.host = host
        self.connect_timeout = connect_timeout

    @abstractmethod
    def connect(self, admin: bool) -> Any:
        """Open a client connection, raising a connection error on failure."""

    def check(self, admin: bool = False) -> bool:
        """
        Return True if a client connection can be opened.

        Args:
            admin: Use the administrative credentials instead of the target user
        """
        who = "admin" if admin else self.spec.db_user
        try:
            connection = self.connect(admin)
            connection.close()
        except self.connection_errors as e:
            logger.debug(
                f"Connection as {who} to {self.host}:{self.descriptor.port} failed: {e}"
            )
            return False
        logger.debug(f"Connectivity confirmed for {self.descriptor.name} as {who}")
        return True

    def check_admin(self) -> bool:
        return self.check(admin=True)

    def check_user(self) -> bool:
        return self.check(admin=False)
