"""
Errors raised by the Legalpad read layer.

Storage failures are always wrapped in QueryExecutionError so callers never
see a half-built page. Data conditions (stale signatures, missing bodies,
empty filters) are not errors.
"""


class LegalpadError(RuntimeError):
    pass


class QueryExecutionError(LegalpadError):
    pass


class QueryTimeoutError(QueryExecutionError):
    pass


class InvalidCursorError(LegalpadError, ValueError):
    pass


class AttachmentNotLoadedError(LegalpadError):
    def __init__(self, owner: object, attachment: str) -> None:
        super().__init__(f"{attachment!r} was not loaded on {owner!r}")
        self.attachment = attachment
