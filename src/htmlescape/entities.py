"""HTML5 named character references and numeric reference policy.

Provides the immutable ``EntityTable`` consumed by the decoder, the default
WHATWG table built from the standard library's entity data, and the validity
policy for numeric references (&#60; or &#x3C;).
"""

import html.entities
from collections.abc import Mapping
from types import MappingProxyType

from .entity_trie import Trie
from .smallset import ASCII_ALPHANUMERIC

MAX_CODEPOINT = 0x10FFFF
REPLACEMENT_CHARACTER = "\ufffd"

# HTML5 numeric character reference replacements (§13.2.5.80)
# Only applied when a decoder opts in with DecoderOpts(remap_controls=True).
NUMERIC_REPLACEMENTS = {
    0x80: "\u20ac",  # EURO SIGN
    0x82: "\u201a",  # SINGLE LOW-9 QUOTATION MARK
    0x83: "\u0192",  # LATIN SMALL LETTER F WITH HOOK
    0x84: "\u201e",  # DOUBLE LOW-9 QUOTATION MARK
    0x85: "\u2026",  # HORIZONTAL ELLIPSIS
    0x86: "\u2020",  # DAGGER
    0x87: "\u2021",  # DOUBLE DAGGER
    0x88: "\u02c6",  # MODIFIER LETTER CIRCUMFLEX ACCENT
    0x89: "\u2030",  # PER MILLE SIGN
    0x8a: "\u0160",  # LATIN CAPITAL LETTER S WITH CARON
    0x8b: "\u2039",  # SINGLE LEFT-POINTING ANGLE QUOTATION MARK
    0x8c: "\u0152",  # LATIN CAPITAL LIGATURE OE
    0x8e: "\u017d",  # LATIN CAPITAL LETTER Z WITH CARON
    0x91: "\u2018",  # LEFT SINGLE QUOTATION MARK
    0x92: "\u2019",  # RIGHT SINGLE QUOTATION MARK
    0x93: "\u201c",  # LEFT DOUBLE QUOTATION MARK
    0x94: "\u201d",  # RIGHT DOUBLE QUOTATION MARK
    0x95: "\u2022",  # BULLET
    0x96: "\u2013",  # EN DASH
    0x97: "\u2014",  # EM DASH
    0x98: "\u02dc",  # SMALL TILDE
    0x99: "\u2122",  # TRADE MARK SIGN
    0x9a: "\u0161",  # LATIN SMALL LETTER S WITH CARON
    0x9b: "\u203a",  # SINGLE RIGHT-POINTING ANGLE QUOTATION MARK
    0x9c: "\u0153",  # LATIN SMALL LIGATURE OE
    0x9e: "\u017e",  # LATIN SMALL LETTER Z WITH CARON
    0x9f: "\u0178",  # LATIN CAPITAL LETTER Y WITH DIAERESIS
}

# ASCII whitespace is allowed through numeric references without an error
_ALLOWED_CONTROLS = frozenset({0x09, 0x0A, 0x0C, 0x20})


def is_surrogate(codepoint):
    return 0xD800 <= codepoint <= 0xDFFF


def is_noncharacter(codepoint):
    return 0xFDD0 <= codepoint <= 0xFDEF or (codepoint & 0xFFFE) == 0xFFFE


def is_control(codepoint):
    if codepoint in _ALLOWED_CONTROLS:
        return False
    return codepoint < 0x20 or 0x7F <= codepoint <= 0x9F


def decode_numeric_reference(codepoint, remap_controls=False):
    """Apply the numeric reference validity policy to a parsed value.

    Zero, surrogates and values past U+10FFFF become U+FFFD. Every other value
    is emitted as the corresponding character, except that C1 controls are
    mapped through ``NUMERIC_REPLACEMENTS`` when ``remap_controls`` is set.

    Returns:
        tuple: (decoded text, error code or None)
    """
    if codepoint == 0:
        return REPLACEMENT_CHARACTER, "null-character-reference"
    if codepoint > MAX_CODEPOINT:
        return REPLACEMENT_CHARACTER, "character-reference-outside-unicode-range"
    if is_surrogate(codepoint):
        return REPLACEMENT_CHARACTER, "surrogate-character-reference"
    if is_noncharacter(codepoint):
        return chr(codepoint), "noncharacter-character-reference"
    if is_control(codepoint):
        if remap_controls and codepoint in NUMERIC_REPLACEMENTS:
            return NUMERIC_REPLACEMENTS[codepoint], "control-character-reference"
        return chr(codepoint), "control-character-reference"
    return chr(codepoint), None


class Entity:
    """One named character reference: ``&name;`` -> ``chars``."""

    __slots__ = ("chars", "codepoints", "name", "requires_terminator")

    def __init__(self, name, codepoints, requires_terminator=True):
        if isinstance(codepoints, str):
            codepoints = [ord(c) for c in codepoints]
        self.name = name
        self.codepoints = tuple(codepoints)
        self.requires_terminator = bool(requires_terminator)
        self.chars = "".join(chr(cp) for cp in self.codepoints)

    def __repr__(self):
        suffix = ";" if self.requires_terminator else ""
        return f"<Entity &{self.name}{suffix} -> {self.chars!r}>"

    def __eq__(self, other):
        if not isinstance(other, Entity):
            return NotImplemented
        return (
            self.name == other.name
            and self.codepoints == other.codepoints
            and self.requires_terminator == other.requires_terminator
        )

    def __hash__(self):
        return hash((self.name, self.codepoints, self.requires_terminator))


def _validate(name, entity):
    if not ASCII_ALPHANUMERIC.matches_all(name):
        raise ValueError(f"Invalid entity name {name!r}: expected ASCII letters and digits")
    if entity.name != name:
        raise ValueError(f"Entity {entity.name!r} registered under name {name!r}")
    if not 1 <= len(entity.codepoints) <= 2:
        raise ValueError(f"Entity {name!r} must map to one or two codepoints")
    for codepoint in entity.codepoints:
        if not 0 <= codepoint <= MAX_CODEPOINT or is_surrogate(codepoint):
            raise ValueError(f"Entity {name!r} maps to invalid codepoint {codepoint:#x}")


class EntityTable(Mapping):
    """Immutable mapping of entity name -> ``Entity``.

    Accepts either ``Entity`` values or ``(codepoints, requires_terminator)``
    pairs, where codepoints is a string or a sequence of ints::

        table = EntityTable({"amp": ("&", False), "rarr": ([0x2192], True)})

    A table is never mutated after construction, so a single instance can be
    shared by any number of decoders.
    """

    __slots__ = ("_entries", "trie")

    def __init__(self, entries):
        built = {}
        for name, value in entries.items():
            if not isinstance(value, Entity):
                codepoints, requires_terminator = value
                value = Entity(name, codepoints, requires_terminator)
            _validate(name, value)
            built[name] = value
        self._entries = MappingProxyType(built)
        self.trie = Trie(built)

    @classmethod
    def from_html5(cls):
        """Build the WHATWG table from ``html.entities.html5``.

        That data lists every name with its trailing ``;`` and additionally
        lists the legacy names without it; the latter become entries that do
        not require a terminator.
        """
        source = html.entities.html5
        entries = {}
        for key, value in source.items():
            name = key[:-1] if key.endswith(";") else key
            if name in entries:
                continue
            entries[name] = Entity(name, value, requires_terminator=name not in source)
        return cls(entries)

    def __getitem__(self, name):
        return self._entries[name]

    def __iter__(self):
        return iter(self._entries)

    def __len__(self):
        return len(self._entries)

    def __contains__(self, name):
        return name in self._entries

    def __repr__(self):
        return f"<EntityTable: {len(self._entries)} entities>"

    def legacy_names(self):
        """Names usable without a trailing ``;``."""
        return frozenset(name for name, entity in self._entries.items() if not entity.requires_terminator)

    def longest_match(self, text):
        """Longest entity usable at the start of text (without the ``&``).

        Returns:
            tuple: (name, Entity), or None when nothing matches
        """
        try:
            return self.trie.longest_prefix_item(text)
        except KeyError:
            return None


HTML5_ENTITIES = EntityTable.from_html5()
