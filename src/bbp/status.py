"""Response codes for the Book Builder Protocol.

Error replies are a single ``ERR <CODE>`` line. Success replies are ``OK``,
``OK <payload>``, or a block whose header is one of the OkCode values,
followed by content lines and the ``.END`` sentinel.
"""

from __future__ import annotations

from enum import Enum

END_SENTINEL = ".END"


class ErrorCode(Enum):
    MALFORMED_REQUEST = "MALFORMED-REQUEST"
    MALFORMED_ID = "MALFORMED-ID"
    MALFORMED_TYPE = "MALFORMED-TYPE"
    UNKNOWN_TYPE = "UNKNOWN-TYPE"
    UNKNOWN_ID = "UNKNOWN-ID"
    NOT_FOUND = "NOT-FOUND"
    EMPTY_REQUEST = "EMPTY-REQUEST"
    COMMAND_NOT_FOUND = "COMMAND-NOT-FOUND"
    TYPE_NOT_FOUND = "TYPE-NOT-FOUND"
    MISSING_BODY = "MISSING-BODY"
    MISSING_TITLE = "MISSING-TITLE"
    ITEM_EXISTS = "ITEM-EXISTS"
    LINK_EXISTS = "LINK-EXISTS"
    UNKNOWN_REQUEST = "UNKNOWN-REQUEST"
    INVALID_BOOK_NAME = "INVALID-BOOK-NAME"
    BOOK_EXISTS = "BOOK-EXISTS"
    BOOK_NOT_FOUND = "BOOK-NOT-FOUND"
    BOOK_CREATE_FAILED = "BOOK-CREATE-FAILED"
    BOOK_LOAD_FAILED = "BOOK-LOAD-FAILED"
    BOOK_DELETE_FAILED = "BOOK-DELETE-FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"
    ACTIVE_BOOK = "ACTIVE-BOOK"

    @property
    def line(self) -> str:
        return f"ERR {self.value}"


class OkCode(Enum):
    SIMPLE = "OK"
    CONTEXT = "OK CONTEXT"
    OUTLINE = "OK OUTLINE"


class ProtocolError(Exception):
    """Raised by a command handler to reply with a single error line."""

    def __init__(self, code: ErrorCode) -> None:
        super().__init__(code.value)
        self.code = code
