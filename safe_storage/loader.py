from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar

from .diagnostics import IssueCallback, IssueKind, StorageIssue, report_issue
from .envelope import decode
from .errors import DecodeError
from .options import StorageOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ValidatedLoader(Generic[T]):
    """
    Turns a raw stored record (or its absence) into a schema-valid value.

    Every failure is reported and answered with the default value; `load`
    never raises.
    """

    def __init__(self, options: StorageOptions[T], *, on_error: IssueCallback | None = None):
        self._options = options
        self._on_error = on_error

    def load(self, raw: str | None) -> T:
        opts = self._options
        if not raw:
            return opts.default_value

        try:
            envelope = decode(raw)
        except DecodeError as e:
            self._report("decode", "could not decode stored record", e)
            return opts.default_value

        data: Any = envelope.data
        stored_version = envelope.version

        if stored_version < opts.version and opts.migrate is not None:
            try:
                data = opts.migrate(data, stored_version)
            except Exception as e:
                self._report("migration", f"migration from version {stored_version} failed", e)
                return opts.default_value
            logger.debug("SAFE STORAGE MIGRATE: %r v%d -> v%d", opts.key, stored_version, opts.version)

        try:
            result = opts.schema.safe_parse(data)
        except Exception as e:
            self._report("validation", "validator raised", e)
            return opts.default_value
        if not result.success:
            issue = StorageIssue(
                key=opts.key,
                kind="validation",
                message="stored data failed validation",
                error=result.error,
                details=result.issues(),
            )
            report_issue(issue, self._on_error)
            return opts.default_value

        return result.data  # type: ignore[return-value]

    def _report(self, kind: IssueKind, message: str, error: BaseException) -> None:
        report_issue(StorageIssue(key=self._options.key, kind=kind, message=message, error=error), self._on_error)
