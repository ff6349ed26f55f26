"""Streaming HTML character reference decoder.

Resolves named references (&amp;, &rarr;, legacy &copy without ``;``) and
numeric references (&#60; or &#x3C;) in text that may arrive in arbitrary
chunks. A reference split across ``feed`` calls is suspended in a
``PendingReference`` and resumed with the next chunk; ``finish`` resolves
whatever is still open at end of input.

Decoding never fails on input: every malformed reference has a fallback, and
is additionally reported as a ``ParseError`` when error collection is on.
"""

import logging

from .entities import HTML5_ENTITIES, MAX_CODEPOINT, decode_numeric_reference
from .errors import DecoderFinishedError, ParseError, StrictModeError
from .smallset import ASCII_ALPHANUMERIC, ASCII_DIGITS, ASCII_HEX_DIGITS

logger = logging.getLogger(__name__)

# Numeric values saturate here; anything larger decodes the same way.
_CLAMPED_CODEPOINT = MAX_CODEPOINT + 1


class DecoderOpts:
    __slots__ = ("remap_controls",)

    def __init__(self, remap_controls=False):
        # Map &#128;-&#159; through the windows-1252 table like browsers do
        self.remap_controls = bool(remap_controls)


class PendingReference:
    """A reference opened by ``&`` that has not been resolved yet."""

    UNKNOWN = 0  # just saw "&"
    NUMERIC = 1  # saw "&#"
    DECIMAL = 2
    HEX = 3
    NAMED = 4
    AMBIGUOUS = 5  # alphanumeric run that can no longer match a name

    __slots__ = (
        "best_entity",
        "best_length",
        "column",
        "digits",
        "kind",
        "line",
        "node",
        "offset",
        "raw",
        "value",
    )

    def __init__(self, offset, line=None, column=None):
        self.offset = offset
        self.line = line
        self.column = column
        self.kind = self.UNKNOWN
        self.raw = ["&"]  # consumed text, digits excluded
        self.value = 0
        self.digits = 0
        self.node = None
        self.best_entity = None
        self.best_length = 0  # len(raw) when best_entity was found

    @property
    def text(self):
        return "".join(self.raw)

    def __repr__(self):
        return f"<PendingReference {self.text!r} kind={self.kind} at {self.offset}>"


class Decoder:
    """Incremental character reference decoder.

    Usage:
        decoder = Decoder()
        out = decoder.feed("Fish &am")   # "Fish "
        out += decoder.feed("p; Chips")  # "& Chips"
        out += decoder.finish()          # ""

    ``table`` defaults to the WHATWG table. With ``collect_errors`` the
    decoder records a ``ParseError`` for every malformed reference in
    ``errors``; ``strict`` raises ``StrictModeError`` at the first one
    instead. Collected errors never change the decoded output.
    """

    SCANNING = 0
    IN_REFERENCE = 1

    __slots__ = (
        "_line",
        "_line_start",
        "_offset",
        "_root",
        "collect_errors",
        "debug",
        "errors",
        "finished",
        "opts",
        "pending",
        "state",
        "strict",
        "table",
    )

    def __init__(self, table=None, opts=None, *, collect_errors=False, strict=False, debug=False):
        self.table = table if table is not None else HTML5_ENTITIES
        self.opts = opts or DecoderOpts()
        self.strict = bool(strict)
        self.collect_errors = bool(collect_errors) or self.strict
        self.debug = bool(debug)
        self._root = self.table.trie.root
        self.reset()

    def reset(self):
        """Return to the initial state so the decoder can take a new input."""
        self.state = self.SCANNING
        self.pending = None
        self.finished = False
        self.errors = []
        self._offset = 0
        self._line = 1
        self._line_start = 0

    def feed(self, chunk):
        """Decode the next chunk of input.

        Returns the decoded text that is final so far. Text belonging to a
        reference that may still continue in the next chunk is held back.
        """
        if self.finished:
            raise DecoderFinishedError("feed() called after finish(); call reset() first")
        if not chunk:
            return ""

        out = []
        pos = 0
        length = len(chunk)
        while pos < length:
            if self.state == self.SCANNING:
                amp = chunk.find("&", pos)
                if amp == -1:
                    out.append(chunk[pos:])
                    break
                if amp > pos:
                    out.append(chunk[pos:amp])
                self._open_reference(chunk, amp)
                pos = amp + 1
            elif self._consume(chunk[pos], out):
                pos += 1

        self._advance(chunk)
        return "".join(out)

    def finish(self):
        """Resolve any reference still open at end of input.

        End of input is handled like a character that ends the reference, with
        nothing left to reprocess. The decoder accepts no more input until
        ``reset()`` is called.
        """
        if self.finished:
            raise DecoderFinishedError("finish() called twice; call reset() first")

        out = []
        ref = self.pending
        if ref is not None:
            if self.debug:
                logger.debug("Resolving %r at end of input", ref)
            kind = ref.kind
            if kind == PendingReference.NAMED:
                self._resolve_named(ref, None, out)
            elif kind == PendingReference.UNKNOWN:
                out.append("&")
                self._close()
            elif kind == PendingReference.AMBIGUOUS:
                self._close()
            else:
                self._resolve_numeric(ref, False, out)
        self.finished = True
        return "".join(out)

    # ---------------------
    # Reference states
    # ---------------------

    def _consume(self, c, out):
        """Feed one character to the pending reference.

        Returns False when the reference ended without consuming ``c``; the
        caller then rescans it as ordinary text.
        """
        ref = self.pending
        kind = ref.kind

        if kind == PendingReference.NAMED:
            return self._consume_named(ref, c, out)

        if kind == PendingReference.DECIMAL or kind == PendingReference.HEX:
            return self._consume_digit(ref, c, out)

        if kind == PendingReference.UNKNOWN:
            if c == "#":
                ref.kind = PendingReference.NUMERIC
                ref.raw.append(c)
                return True
            if c in ASCII_ALPHANUMERIC:
                ref.kind = PendingReference.NAMED
                ref.node = self._root
                return self._consume_named(ref, c, out)
            # Bare ampersand
            out.append("&")
            self._close()
            return False

        if kind == PendingReference.NUMERIC:
            if c == "x" or c == "X":
                ref.kind = PendingReference.HEX
                ref.raw.append(c)
                return True
            ref.kind = PendingReference.DECIMAL
            return self._consume_digit(ref, c, out)

        # AMBIGUOUS: the run was already flushed, keep copying it
        if c in ASCII_ALPHANUMERIC:
            out.append(c)
            return True
        if c == ";":
            self._error("unknown-named-character-reference", ref)
        self._close()
        return False

    def _consume_named(self, ref, c, out):
        if c == ";":
            entity = ref.node.entity
            if entity is not None:
                out.append(entity.chars)
                self._close()
                return True
            self._resolve_named(ref, c, out)
            return False

        if c not in ASCII_ALPHANUMERIC:
            self._resolve_named(ref, c, out)
            return False

        ref.raw.append(c)
        child = ref.node.children.get(c)
        if child is None:
            # No table name starts with the accumulated run
            if ref.best_entity is not None:
                self._resolve_named(ref, None, out)
            else:
                out.append("".join(ref.raw))
                ref.kind = PendingReference.AMBIGUOUS
                ref.node = None
            return True

        ref.node = child
        entity = child.entity
        if entity is not None and not entity.requires_terminator:
            ref.best_entity = entity
            ref.best_length = len(ref.raw)
        return True

    def _consume_digit(self, ref, c, out):
        if ref.kind == PendingReference.HEX:
            is_digit = c in ASCII_HEX_DIGITS
            base = 16
        else:
            is_digit = c in ASCII_DIGITS
            base = 10

        if is_digit:
            if ref.value < _CLAMPED_CODEPOINT:
                ref.value = min(ref.value * base + int(c, 16), _CLAMPED_CODEPOINT)
            ref.digits += 1
            return True

        if c == ";" and ref.digits:
            self._resolve_numeric(ref, True, out)
            return True

        self._resolve_numeric(ref, False, out)
        return False

    # ---------------------
    # Resolution
    # ---------------------

    def _resolve_named(self, ref, next_char, out):
        """Resolve a named reference whose run ended without a usable ``;``."""
        entity = ref.best_entity
        if entity is not None:
            self._error("missing-semicolon-after-character-reference", ref)
            out.append(entity.chars)
            # Characters read past the legacy match go back out as text
            out.append("".join(ref.raw[ref.best_length:]))
        else:
            if next_char == ";":
                self._error("unknown-named-character-reference", ref)
            out.append("".join(ref.raw))
        self._close()

    def _resolve_numeric(self, ref, terminated, out):
        if not ref.digits:
            self._error("absence-of-digits-in-numeric-character-reference", ref)
            out.append("".join(ref.raw))
            self._close()
            return

        if not terminated:
            self._error("missing-semicolon-after-character-reference", ref)
        text, code = decode_numeric_reference(ref.value, self.opts.remap_controls)
        if code is not None:
            self._error(code, ref)
        out.append(text)
        self._close()

    # ---------------------
    # Low-level helpers
    # ---------------------

    def _open_reference(self, chunk, index):
        if self.collect_errors:
            line, column = self._locate(chunk, index)
        else:
            line = column = None
        self.pending = PendingReference(self._offset + index, line, column)
        self.state = self.IN_REFERENCE

    def _close(self):
        if self.debug:
            logger.debug("Closed %r", self.pending)
        self.pending = None
        self.state = self.SCANNING

    def _locate(self, chunk, index):
        newlines = chunk.count("\n", 0, index)
        if newlines:
            return self._line + newlines, index - chunk.rfind("\n", 0, index)
        return self._line, self._offset + index - self._line_start + 1

    def _advance(self, chunk):
        if self.collect_errors:
            newlines = chunk.count("\n")
            if newlines:
                self._line += newlines
                self._line_start = self._offset + chunk.rfind("\n") + 1
        self._offset += len(chunk)

    def _error(self, code, ref):
        if not self.collect_errors:
            return
        error = ParseError(code, ref.offset, ref.line, ref.column)
        if self.debug:
            logger.debug("Parse error: %s", error)
        self.errors.append(error)
        if self.strict:
            raise StrictModeError(error)
