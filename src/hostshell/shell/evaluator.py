"""Command evaluation for shell sessions.

The session host treats evaluation as an opaque capability: it hands over one
command and the session's namespace, and gets back a value or an exception.
``PythonEvaluator`` is the built-in implementation.
"""

from __future__ import annotations

import ast
import asyncio
import codeop
import inspect
import itertools
import logging
import threading
import traceback
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "<shell>"

_worker_ids = itertools.count(1)


class Evaluator(Protocol):
    """Capability that runs commands against a session-local context."""

    def is_incomplete(self, source: str) -> bool:
        """Whether more input lines are needed before ``source`` can run."""
        ...

    async def evaluate(self, source: str, context: dict[str, Any]) -> Any:
        """Run ``source`` in ``context`` and return its value.

        State stored in ``context`` stays visible to later commands of the
        same session. Errors propagate as exceptions.
        """
        ...

    def format_error(self, exc: BaseException) -> str:
        """Render an evaluation error for the session output."""
        ...


class PythonEvaluator:
    """Evaluates Python source, including top-level ``await``.

    Source containing top-level ``await`` runs as a coroutine on the event
    loop, so it can suspend without holding anything up. Everything else runs
    on a thread of its own, so a blocking command only stalls its session.
    """

    def __init__(self, filename: str = DEFAULT_FILENAME) -> None:
        self.filename = filename

    def is_incomplete(self, source: str) -> bool:
        compiler = codeop.CommandCompiler()
        compiler.compiler.flags |= ast.PyCF_ALLOW_TOP_LEVEL_AWAIT
        try:
            return compiler(source, self.filename, "single") is None
        except (SyntaxError, ValueError, OverflowError):
            # Let evaluate() report it
            return False

    def _compile(self, source: str, mode: str):
        return compile(
            source,
            self.filename,
            mode,
            flags=ast.PyCF_ALLOW_TOP_LEVEL_AWAIT,
            dont_inherit=True,
        )

    def _prepare(self, source: str):
        try:
            return self._compile(source, "eval")
        except SyntaxError:
            pass
        # Outside the handler so a real syntax error carries no context
        return self._compile(source, "exec")

    async def evaluate(self, source: str, context: dict[str, Any]) -> Any:
        code = self._prepare(source)
        if code.co_flags & inspect.CO_COROUTINE:
            return await eval(code, context)
        return await run_in_thread(eval, code, context)

    def format_error(self, exc: BaseException) -> str:
        # Hide the evaluator's own frames; only the user's code is relevant
        summary = traceback.TracebackException.from_exception(exc)
        summary.stack = traceback.StackSummary.from_list(
            [frame for frame in summary.stack if frame.filename == self.filename]
        )
        return "".join(summary.format())


async def run_in_thread(func: Callable[..., Any], /, *args: Any) -> Any:
    """Run ``func(*args)`` on a new daemon thread and await its result.

    Threads are not pooled. A call that blocks forever occupies only its own
    thread, and being a daemon it does not delay interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()

    def settle(result: Any, exc: BaseException | None) -> None:
        if future.done():
            # The awaiting session was cancelled
            return
        if exc is not None:
            future.set_exception(exc)
        else:
            future.set_result(result)

    def work() -> None:
        try:
            result, exc = func(*args), None
        except BaseException as e:
            result, exc = None, e
        try:
            loop.call_soon_threadsafe(settle, result, exc)
        except RuntimeError:
            # Loop closed; nobody is waiting for the result
            logger.debug(
                "evaluation_result_dropped",
                extra={"thread": threading.current_thread().name},
            )

    thread = threading.Thread(
        target=work,
        name=f"hostshell-eval-{next(_worker_ids)}",
        daemon=True,
    )
    thread.start()
    return await future
