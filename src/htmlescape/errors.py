"""Parse error records and exceptions for character reference decoding.

The decoder itself never fails on input. Malformed references are decoded by
their fallback rules and, when error collection is enabled, reported as
``ParseError`` records using the WHATWG error codes.
"""

_MESSAGES = {
    "missing-semicolon-after-character-reference": "Missing semicolon after character reference",
    "unknown-named-character-reference": "Unknown named character reference",
    "absence-of-digits-in-numeric-character-reference": "Numeric character reference has no digits",
    "null-character-reference": "Numeric character reference to U+0000 NULL",
    "character-reference-outside-unicode-range": "Numeric character reference beyond U+10FFFF",
    "surrogate-character-reference": "Numeric character reference to a surrogate",
    "noncharacter-character-reference": "Numeric character reference to a noncharacter",
    "control-character-reference": "Numeric character reference to a control character",
}


def generate_error_message(code):
    """Return a human-readable message for an error code.

    Falls back to the code itself for unknown codes.
    """
    return _MESSAGES.get(code, code)


class ParseError:
    """A malformed character reference, located by its leading ``&``."""

    __slots__ = ("code", "column", "line", "message", "offset")

    __hash__ = None  # Unhashable since we define __eq__

    def __init__(self, code, offset=None, line=None, column=None, message=None):
        self.code = code
        self.offset = offset
        self.line = line
        self.column = column
        self.message = message or generate_error_message(code)

    def __repr__(self):
        if self.line is not None and self.column is not None:
            return f"ParseError({self.code!r}, line={self.line}, column={self.column})"
        return f"ParseError({self.code!r})"

    def __str__(self):
        if self.line is not None and self.column is not None:
            return f"({self.line},{self.column}): {self.code} - {self.message}"
        return f"{self.code} - {self.message}"

    def __eq__(self, other):
        if not isinstance(other, ParseError):
            return NotImplemented
        return self.code == other.code and self.offset == other.offset


class StrictModeError(ValueError):
    """Raised by a strict decoder at the first malformed reference."""

    def __init__(self, error):
        self.error = error
        super().__init__(str(error))


class DecoderFinishedError(RuntimeError):
    """Raised when a finished decoder is fed again without ``reset()``."""
