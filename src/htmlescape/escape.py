"""One-shot escaping and unescaping of HTML text."""

from .decoder import Decoder


def escape(text):
    """Replace ``& < > " '`` with their named entities.

    ``unescape(escape(s)) == s`` always holds; the converse does not, since
    ``unescape`` understands far more references than ``escape`` produces.
    Escaping is stateless, so chunks can be escaped independently.
    """
    if text is None:
        return ""
    # "&" first so the other replacements are not escaped twice
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def unescape(text, table=None, *, opts=None):
    """Decode every character reference in text.

    Named references (``&aacute;``), legacy names without ``;``
    (``&aacute``) and numeric references (``&#225;``, ``&#xE1;``) all decode
    to "á". Malformed references are passed through as text.
    """
    if not text:
        return ""
    if "&" not in text:
        return text
    decoder = Decoder(table, opts)
    return decoder.feed(text) + decoder.finish()
