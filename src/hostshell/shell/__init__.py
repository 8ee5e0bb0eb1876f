"""Interactive shell sessions attached to a long-running host process.

Public API:
- ShellServer: host side; one REPL session per client connection
- ShellClient: client side; connect, pipe the terminal, reconnect
- open_history / merge_history: shared persistent command history
- bind_endpoint / unbind_endpoint: socket file management

Protocol:
- Raw byte stream, ``\\n``-delimited; EXIT_SENTINEL as the final line marks an
  intentional stop.
"""

from hostshell.shell.client import ConnectionState, ShellClient
from hostshell.shell.endpoint import EndpointError, bind_endpoint, unbind_endpoint
from hostshell.shell.evaluator import Evaluator, PythonEvaluator
from hostshell.shell.history import HistoryHandle, merge_history, open_history
from hostshell.shell.protocol import EXIT_MESSAGE, EXIT_SENTINEL, SentinelScanner
from hostshell.shell.server import ShellServer
from hostshell.shell.session import SessionEnd, ShellSession
from hostshell.shell.terminal import Terminal

__all__ = [
    # Host
    "ShellServer",
    "ShellSession",
    "SessionEnd",
    "Evaluator",
    "PythonEvaluator",
    # Client
    "ShellClient",
    "ConnectionState",
    "Terminal",
    # History
    "HistoryHandle",
    "merge_history",
    "open_history",
    # Endpoint
    "EndpointError",
    "bind_endpoint",
    "unbind_endpoint",
    # Protocol
    "EXIT_MESSAGE",
    "EXIT_SENTINEL",
    "SentinelScanner",
]
