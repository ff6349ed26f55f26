"""ASCII character classes used by the reference scanner."""


class SmallCharSet:
    __slots__ = ("_mask",)

    def __init__(self, chars):
        mask = 0
        for c in chars:
            code = ord(c)
            if code >= 128:
                raise ValueError("SmallCharSet only supports ASCII")
            mask |= 1 << code
        self._mask = mask

    def contains(self, c):
        code = ord(c)
        if code >= 128:
            return False
        return (self._mask >> code) & 1 == 1

    __contains__ = contains

    def matches_all(self, text):
        for c in text:
            if not self.contains(c):
                return False
        return bool(text)


ASCII_DIGITS = SmallCharSet("0123456789")
ASCII_HEX_DIGITS = SmallCharSet("0123456789abcdefABCDEF")
ASCII_ALPHANUMERIC = SmallCharSet(
    "0123456789"
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
)
