# src/jobs/presenter.py — v1
"""Operator-facing seam of the administrative operations.

An editor integration implements ``Presenter`` with its own dialogs and
notification popups; ``ConsolePresenter`` is the terminal implementation
used by the CLI.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncContextManager, AsyncIterator, Protocol, TextIO

from iscadmin.core.models import OutcomeCategory, OutcomeReport
from iscadmin.jobs.poller import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class ProgressScope:
    """A visible, cancellable "operation in progress" indicator."""

    title: str
    token: CancellationToken = field(default_factory=CancellationToken)
    last_message: str = ""

    def report(self, message: str) -> None:
        self.last_message = message
        logger.debug("%s: %s", self.title, message)


class Presenter(Protocol):
    async def confirm(self, question: str) -> bool:
        ...

    def show(self, report: OutcomeReport) -> None:
        ...

    def progress(self, title: str) -> AsyncContextManager[ProgressScope]:
        ...


_PREFIXES = {
    OutcomeCategory.SUCCESS: "OK",
    OutcomeCategory.WARNING: "WARNING",
    OutcomeCategory.FAILURE: "ERROR",
}


class ConsolePresenter:
    """Terminal presenter: y/N prompts, one line per outcome, Ctrl-C cancels polling."""

    def __init__(self, assume_yes: bool = False, stream: TextIO | None = None) -> None:
        self._assume_yes = assume_yes
        self._stream = stream or sys.stdout

    async def confirm(self, question: str) -> bool:
        if self._assume_yes:
            return True
        answer = await asyncio.to_thread(input, f"{question} [y/N] ")
        return answer.strip().lower() in {"y", "yes"}

    def show(self, report: OutcomeReport) -> None:
        if report.category == OutcomeCategory.CANCELLED:
            return
        print(f"{_PREFIXES[report.category]}: {report.text}", file=self._stream)

    @asynccontextmanager
    async def progress(self, title: str) -> AsyncIterator[ProgressScope]:
        scope = ProgressScope(title)
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, scope.token.cancel)
            installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            installed = False
        logger.info("%s...", title)
        try:
            yield scope
        finally:
            if installed:
                loop.remove_signal_handler(signal.SIGINT)
