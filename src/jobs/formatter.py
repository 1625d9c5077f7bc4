# src/jobs/formatter.py — v1
"""Turn a classified job outcome into the message shown to the operator."""

from __future__ import annotations

import re
from typing import Sequence

from pydantic import BaseModel, ConfigDict

from iscadmin.core.models import Job, JobMessage, OutcomeCategory, OutcomeReport

_PLACEHOLDER_RE = re.compile(r"\{(\d+)\}")


class MessageTemplates(BaseModel):
    """One template per category, with positional ``{n}`` placeholders.

    success: ``{0}`` = resource label.
    warning: ``{0}`` = label, ``{1}`` = diagnostic messages.
    failure: ``{0}`` = label, ``{1}`` = error code, ``{2}`` = error message.
    """

    model_config = ConfigDict(frozen=True)

    success: str
    warning: str
    failure: str


def substitute(template: str, args: Sequence[str]) -> str:
    """Replace ``{n}`` with ``args[n]``; out-of-range placeholders are left as is."""

    def replace(match: re.Match[str]) -> str:
        index = int(match.group(1))
        return args[index] if index < len(args) else match.group(0)

    return _PLACEHOLDER_RE.sub(replace, template)


def _first_error(messages: list[JobMessage]) -> JobMessage | None:
    for message in messages:
        if message.type.upper() == "ERROR":
            return message
    return messages[0] if messages else None


def format_outcome(
    category: OutcomeCategory,
    label: str,
    templates: MessageTemplates,
    job: Job | None = None,
) -> str:
    """Format the operator message for ``category``.

    A cancelled operation produces an empty string.
    """
    messages = job.messages if job is not None else []

    if category == OutcomeCategory.SUCCESS:
        return substitute(templates.success, [label])

    if category == OutcomeCategory.WARNING:
        details = ", ".join(m.text for m in messages if m.text)
        return substitute(templates.warning, [label, details])

    if category == OutcomeCategory.FAILURE:
        error = _first_error(messages)
        code = error.key if error else ""
        text = error.text if error else ""
        return substitute(templates.failure, [label, code, text])

    return ""


def build_report(
    category: OutcomeCategory,
    label: str,
    templates: MessageTemplates,
    job: Job | None = None,
) -> OutcomeReport:
    return OutcomeReport(category=category, text=format_outcome(category, label, templates, job))
