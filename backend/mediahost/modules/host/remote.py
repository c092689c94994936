"""Typed file-system operations on streaming hosts.

RemoteShell turns folder and conversion steps into quoted shell command lines
for a RemoteExecutor and interprets their output. Commands whose outcome
matters are suffixed with a success marker so that a failing step is detected
without relying on the exit status of the SSH channel.
"""

import logging
import shlex
import time
import uuid
from typing import Optional

from mediahost.core.config import settings
from mediahost.core.exceptions import RemoteChannelError, RemoteCommandFailed
from mediahost.core.metrics import (
    REMOTE_COMMAND_DURATION_SECONDS,
    REMOTE_COMMANDS_TOTAL,
)
from mediahost.modules.host.executor import (
    RemoteExecutor,
    RemoteResult,
    RemoteStat,
    get_remote_executor,
    build_stat_command,
    parse_stat_output,
)

logger = logging.getLogger(__name__)

COMMAND_OK_MARKER = "COMMAND_OK"
COMMAND_FAILED_MARKER = "COMMAND_FAILED"

# Leftovers of interrupted uploads and conversions
PARTIAL_FILE_PATTERNS = ("*.tmp", "*.part")


def has_marker(stdout: str, marker: str) -> bool:
    """Check whether a marker was printed on a line of its own."""
    return any(line.strip() == marker for line in stdout.splitlines())


def _parse_count(stdout: str) -> int:
    value = stdout.strip().split()[0] if stdout.strip() else "0"
    return int(value) if value.isdigit() else 0


class RemoteShell:
    """File-system operations on a host through a RemoteExecutor."""

    def __init__(
        self,
        executor: RemoteExecutor,
        owner: Optional[str] = None,
        directory_mode: Optional[str] = None,
    ):
        self.executor = executor
        self.owner = owner or settings.CONTENT_OWNER
        self.directory_mode = directory_mode or settings.DIRECTORY_MODE

    async def run(
        self, host_id: uuid.UUID, operation: str, command: str
    ) -> RemoteResult:
        """Run a raw command line and record channel metrics."""
        start_time = time.perf_counter()
        try:
            result = await self.executor.execute(host_id, command)
        except RemoteChannelError:
            REMOTE_COMMANDS_TOTAL.labels(operation=operation, outcome="channel_error").inc()
            raise
        finally:
            REMOTE_COMMAND_DURATION_SECONDS.labels(operation=operation).observe(
                time.perf_counter() - start_time
            )
        REMOTE_COMMANDS_TOTAL.labels(operation=operation, outcome="ok").inc()
        return result

    async def run_checked(
        self, host_id: uuid.UUID, operation: str, command: str
    ) -> RemoteResult:
        """Run a command that must succeed.

        Raises:
            RemoteCommandFailed: If the command did not print the success marker
        """
        result = await self.run(
            host_id,
            operation,
            f"{command} && echo {COMMAND_OK_MARKER} || echo {COMMAND_FAILED_MARKER}",
        )
        if not has_marker(result.stdout, COMMAND_OK_MARKER):
            REMOTE_COMMANDS_TOTAL.labels(operation=operation, outcome="failed").inc()
            logger.warning(
                "Remote command reported failure",
                extra={
                    "host_id": str(host_id),
                    "operation": operation,
                    "stderr": result.stderr.strip(),
                },
            )
            raise RemoteCommandFailed(
                f"Remote {operation} failed",
                detail={
                    "operation": operation,
                    "stderr": result.stderr.strip(),
                    "exit_status": result.exit_status,
                },
            )
        return result

    async def stat(self, host_id: uuid.UUID, path: str) -> RemoteStat:
        """Report whether a file exists and its size."""
        result = await self.run(host_id, "stat", build_stat_command(path))
        return parse_stat_output(result.stdout)

    async def directory_exists(self, host_id: uuid.UUID, path: str) -> bool:
        quoted = shlex.quote(path)
        result = await self.run(
            host_id,
            "directory_exists",
            f"if [ -d {quoted} ]; then echo EXISTS; else echo NOT_EXISTS; fi",
        )
        return has_marker(result.stdout, "EXISTS")

    async def ensure_directory(self, host_id: uuid.UUID, path: str) -> None:
        """Create a directory and its parents if missing."""
        await self.run_checked(host_id, "mkdir", f"mkdir -p {shlex.quote(path)}")

    async def normalize_permissions(
        self, host_id: uuid.UUID, path: str, recursive: bool = False
    ) -> None:
        """Apply the content directory mode and hand ownership to the streaming server."""
        quoted = shlex.quote(path)
        chmod = "chmod -R" if recursive else "chmod"
        await self.run_checked(
            host_id,
            "permissions",
            f"{chmod} {self.directory_mode} {quoted} && "
            f"chown -R {shlex.quote(self.owner)} {quoted}",
        )

    async def chmod(self, host_id: uuid.UUID, path: str, mode: str) -> None:
        await self.run_checked(
            host_id, "chmod", f"chmod {mode} {shlex.quote(path)}"
        )

    async def rename(self, host_id: uuid.UUID, source: str, target: str) -> None:
        await self.run_checked(
            host_id, "rename", f"mv -T {shlex.quote(source)} {shlex.quote(target)}"
        )

    async def count_files(self, host_id: uuid.UUID, path: str) -> int:
        """Count regular files below a directory."""
        result = await self.run(
            host_id,
            "count_files",
            f"find {shlex.quote(path)} -type f 2>/dev/null | wc -l",
        )
        return _parse_count(result.stdout)

    async def directory_size(self, host_id: uuid.UUID, path: str) -> int:
        """Total size of a directory in bytes."""
        result = await self.run(
            host_id,
            "directory_size",
            f"du -sb {shlex.quote(path)} 2>/dev/null | cut -f1",
        )
        return _parse_count(result.stdout)

    async def list_files(self, host_id: uuid.UUID, path: str) -> list[str]:
        """List regular files below a directory, relative to it."""
        result = await self.run(
            host_id,
            "list_files",
            f"find {shlex.quote(path)} -type f -printf '%P\\n' 2>/dev/null",
        )
        return sorted(line for line in result.stdout.splitlines() if line.strip())

    async def cleanup_partial_files(self, host_id: uuid.UUID, path: str) -> int:
        """Delete temporary, partial and empty files. Returns how many were removed."""
        names = " -o ".join(f"-name {shlex.quote(p)}" for p in PARTIAL_FILE_PATTERNS)
        result = await self.run(
            host_id,
            "cleanup",
            f"find {shlex.quote(path)} -type f \\( {names} -o -size 0 \\) "
            f"-print -delete 2>/dev/null | wc -l",
        )
        return _parse_count(result.stdout)

    async def remove_empty_directory(self, host_id: uuid.UUID, path: str) -> None:
        await self.run_checked(host_id, "rmdir", f"rmdir {shlex.quote(path)}")

    async def remove_file(self, host_id: uuid.UUID, path: str) -> None:
        await self.run_checked(host_id, "remove_file", f"rm -f {shlex.quote(path)}")


def get_remote_shell() -> RemoteShell:
    """Dependency providing a RemoteShell over the process-wide executor."""
    return RemoteShell(get_remote_executor())
