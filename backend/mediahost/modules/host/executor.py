"""Remote command execution on streaming hosts.

The executor runs a shell command line on a host and returns whatever the
command printed. A non-zero exit status is not an error here: callers decide
success from markers echoed into stdout. Only a broken channel (connection,
authentication, transport) raises RemoteChannelError.
"""

import asyncio
import logging
import shlex
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import paramiko

from mediahost.core.config import settings
from mediahost.core.exceptions import RemoteChannelError

logger = logging.getLogger(__name__)

STAT_EXISTS_MARKER = "EXISTS"
STAT_MISSING_MARKER = "NOT_EXISTS"


@dataclass
class RemoteResult:
    """Captured output of a remote command."""
    stdout: str
    stderr: str = ""
    exit_status: int = 0


@dataclass
class RemoteStat:
    """Existence and size of a remote file."""
    exists: bool
    size: int = 0


@dataclass
class HostConnection:
    """Network address of a host as stored in the metadata store."""
    address: str
    port: int = 22
    username: Optional[str] = None


HostLoader = Callable[[uuid.UUID], Awaitable[HostConnection]]


def build_stat_command(path: str) -> str:
    """Build the command that prints an existence marker and the file size."""
    quoted = shlex.quote(path)
    return (
        f"if [ -f {quoted} ]; then echo {STAT_EXISTS_MARKER}; stat -c %s {quoted}; "
        f"else echo {STAT_MISSING_MARKER}; fi"
    )


def parse_stat_output(stdout: str) -> RemoteStat:
    """Parse the output of build_stat_command.

    The marker must match a whole line: NOT_EXISTS contains EXISTS, so a
    substring check would report missing files as present.
    """
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    if not lines or lines[0] != STAT_EXISTS_MARKER:
        return RemoteStat(exists=False)

    size = 0
    if len(lines) > 1 and lines[1].isdigit():
        size = int(lines[1])
    return RemoteStat(exists=True, size=size)


class RemoteExecutor(ABC):
    """Runs command lines on a specific streaming host."""

    @abstractmethod
    async def execute(self, host_id: uuid.UUID, command: str) -> RemoteResult:
        """Run a command on the host and capture its output.

        Raises:
            RemoteChannelError: If the command could not be delivered
        """

    async def stat(self, host_id: uuid.UUID, path: str) -> RemoteStat:
        """Report whether a regular file exists on the host and its size."""
        result = await self.execute(host_id, build_stat_command(path))
        return parse_stat_output(result.stdout)


async def load_host_connection(host_id: uuid.UUID) -> HostConnection:
    """Read a host's connection details from the database."""
    from mediahost.core.database import async_session_maker
    from mediahost.modules.host.repository import HostRepository

    async with async_session_maker() as session:
        host = await HostRepository(session).get_by_id(host_id)

    if host is None:
        raise RemoteChannelError(
            "Streaming host is not registered",
            detail={"host_id": str(host_id)},
        )
    return HostConnection(
        address=host.address,
        port=host.ssh_port or settings.SSH_PORT,
        username=host.ssh_user,
    )


class SSHRemoteExecutor(RemoteExecutor):
    """Remote executor over SSH using paramiko.

    paramiko is blocking, so every command runs in the default thread pool.
    One client is cached per host and replaced when its transport drops.
    """

    def __init__(
        self,
        host_loader: Optional[HostLoader] = None,
        username: Optional[str] = None,
        key_filename: Optional[str] = None,
        password: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        command_timeout: Optional[float] = None,
    ):
        self._host_loader = host_loader or load_host_connection
        self.username = username or settings.SSH_USER
        self.key_filename = key_filename or settings.SSH_KEY_FILE
        self.password = password or settings.SSH_PASSWORD
        self.connect_timeout = connect_timeout or settings.SSH_CONNECT_TIMEOUT_SECONDS
        self.command_timeout = command_timeout or settings.SSH_COMMAND_TIMEOUT_SECONDS
        self._clients: dict[uuid.UUID, paramiko.SSHClient] = {}
        self._lock = threading.Lock()

    def _connect(self, connection: HostConnection) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        client.connect(
            hostname=connection.address,
            port=connection.port,
            username=connection.username or self.username,
            key_filename=self.key_filename,
            password=self.password,
            timeout=self.connect_timeout,
            look_for_keys=self.key_filename is None and self.password is None,
        )
        logger.info(
            "SSH connection established",
            extra={"address": connection.address, "port": connection.port},
        )
        return client

    def _get_client(
        self, host_id: uuid.UUID, connection: HostConnection
    ) -> paramiko.SSHClient:
        with self._lock:
            client = self._clients.get(host_id)
            transport = client.get_transport() if client is not None else None
            if transport is None or not transport.is_active():
                if client is not None:
                    client.close()
                client = self._connect(connection)
                self._clients[host_id] = client
            return client

    def _discard(self, host_id: uuid.UUID) -> None:
        with self._lock:
            client = self._clients.pop(host_id, None)
        if client is not None:
            client.close()

    def _run(
        self, host_id: uuid.UUID, connection: HostConnection, command: str
    ) -> RemoteResult:
        client = self._get_client(host_id, connection)
        _, stdout, stderr = client.exec_command(command, timeout=self.command_timeout)
        out = stdout.read().decode("utf-8", errors="replace")
        err = stderr.read().decode("utf-8", errors="replace")
        exit_status = stdout.channel.recv_exit_status()
        return RemoteResult(stdout=out, stderr=err, exit_status=exit_status)

    async def execute(self, host_id: uuid.UUID, command: str) -> RemoteResult:
        connection = await self._host_loader(host_id)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, self._run, host_id, connection, command
            )
        except (paramiko.SSHException, OSError) as e:
            self._discard(host_id)
            logger.error(
                "SSH command channel failed",
                extra={"host_id": str(host_id), "address": connection.address, "error": str(e)},
            )
            raise RemoteChannelError(
                "Could not run command on streaming host",
                detail=str(e),
            ) from e

    def close(self) -> None:
        """Close every cached SSH connection."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()


_executor: Optional[SSHRemoteExecutor] = None


def get_remote_executor() -> RemoteExecutor:
    """Get the process-wide SSH executor."""
    global _executor
    if _executor is None:
        _executor = SSHRemoteExecutor()
    return _executor
