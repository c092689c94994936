"""Streaming host module.

Host registry, remote command execution over SSH and host selection.
"""

from mediahost.modules.host.executor import (
    RemoteExecutor,
    RemoteResult,
    RemoteStat,
    SSHRemoteExecutor,
    get_remote_executor,
)
from mediahost.modules.host.models import HostStatus, StreamingHost
from mediahost.modules.host.remote import RemoteShell

__all__ = [
    "HostStatus",
    "StreamingHost",
    "RemoteExecutor",
    "RemoteResult",
    "RemoteStat",
    "SSHRemoteExecutor",
    "RemoteShell",
    "get_remote_executor",
]
