from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from pydantic import ValidationError

logger = logging.getLogger(__name__)

IssueKind = Literal["decode", "validation", "migration", "update", "persist", "environment"]

IssueCallback = Callable[["StorageIssue"], None]


@dataclass(frozen=True)
class StorageIssue:
    """
    A recovered failure, tagged with the storage key it happened on.

    `details` holds the field-level validation errors when the failure came
    from the schema, otherwise it is empty.
    """

    key: str
    kind: IssueKind
    message: str
    error: BaseException | None = None
    details: list[dict[str, Any]] = field(default_factory=list)


def validation_details(error: ValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in error.errors(include_url=False)
    ]


def report_issue(issue: StorageIssue, on_error: IssueCallback | None = None) -> None:
    """
    Log an issue and hand it to the optional callback.

    Never raises: a failing callback is logged and dropped.
    """
    prefix = f"SAFE STORAGE {issue.kind.upper()}"
    if issue.kind == "environment":
        logger.debug("%s: %r %s", prefix, issue.key, issue.message)
    elif issue.details:
        logger.error("%s: %r %s: %s", prefix, issue.key, issue.message, issue.details)
    else:
        logger.error("%s: %r %s: %r", prefix, issue.key, issue.message, issue.error)

    if on_error is None:
        return
    try:
        on_error(issue)
    except Exception:
        logger.exception("SAFE STORAGE REPORT: error callback failed for %r", issue.key)
