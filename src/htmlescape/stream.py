"""Adaptors that push text through the escaper or the decoder.

Any object with a ``write(str)`` method works as a target: ``sys.stdout``,
an open text file, ``io.StringIO``, or another writer.
"""

from .decoder import Decoder
from .escape import escape


class EscapeWriter:
    """Write escaped text to ``target``."""

    __slots__ = ("closed", "target")

    def __init__(self, target):
        self.target = target
        self.closed = False

    def write(self, text):
        if self.closed:
            raise ValueError("write to closed EscapeWriter")
        if text:
            self.target.write(escape(text))
        return len(text)

    def flush(self):
        flush = getattr(self.target, "flush", None)
        if flush is not None:
            flush()

    def close(self):
        """Mark the writer closed. The target is left open."""
        if not self.closed:
            self.closed = True
            self.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class UnescapeWriter:
    """Write decoded text to ``target``.

    A reference split across ``write`` calls is held back until it resolves,
    so ``close()`` must be called (or the writer used as a context manager)
    to flush a reference left open at the end.
    """

    __slots__ = ("closed", "decoder", "target")

    def __init__(self, target, table=None, opts=None, *, collect_errors=False, strict=False, debug=False):
        self.target = target
        self.decoder = Decoder(table, opts, collect_errors=collect_errors, strict=strict, debug=debug)
        self.closed = False

    @property
    def errors(self):
        return self.decoder.errors

    def write(self, text):
        if self.closed:
            raise ValueError("write to closed UnescapeWriter")
        decoded = self.decoder.feed(text)
        if decoded:
            self.target.write(decoded)
        return len(text)

    def flush(self):
        # Pending reference text stays buffered; only the target is flushed
        flush = getattr(self.target, "flush", None)
        if flush is not None:
            flush()

    def close(self):
        """Resolve any open reference and write the remainder.

        The target is left open.
        """
        if self.closed:
            return
        self.closed = True
        remainder = self.decoder.finish()
        if remainder:
            self.target.write(remainder)
        self.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            # Leave a failed decode unflushed
            self.closed = True


def iter_unescape(chunks, table=None, opts=None, *, collect_errors=False, strict=False):
    """
    Decode an iterable of text chunks lazily.
    Yields non-empty decoded fragments in input order.
    """
    decoder = Decoder(table, opts, collect_errors=collect_errors, strict=strict)
    for chunk in chunks:
        decoded = decoder.feed(chunk)
        if decoded:
            yield decoded
    remainder = decoder.finish()
    if remainder:
        yield remainder
