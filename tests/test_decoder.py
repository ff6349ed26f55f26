"""Tests for the streaming character reference decoder."""

import threading
import unittest

from htmlescape import (
    Decoder,
    DecoderFinishedError,
    DecoderOpts,
    EntityTable,
    ParseError,
    PendingReference,
    StrictModeError,
    escape,
    unescape,
)


def decode_in_pieces(pieces, **kwargs):
    decoder = Decoder(**kwargs)
    parts = [decoder.feed(piece) for piece in pieces]
    parts.append(decoder.finish())
    return "".join(parts), decoder


class TestUnescape(unittest.TestCase):
    def test_escaped_markup_round_trips(self):
        s = "&lt;script src=&quot;evil.domain?foo&amp;&quot; type=&#39;baz&#39;&gt;"
        assert unescape(s) == "<script src=\"evil.domain?foo&\" type='baz'>"

    def test_strict_entity_with_terminator(self):
        assert unescape("&rarr;") == "→"

    def test_strict_entity_without_terminator_is_literal(self):
        assert unescape("&rarr") == "&rarr"
        assert unescape("&rarr x") == "&rarr x"

    def test_adjacent_ampersands(self):
        assert unescape("&&amp;amp;amp;") == "&&amp;amp;"

    def test_long_entity_name(self):
        assert unescape("&CounterClockwiseContourIntegral;") == "∳"

    def test_legacy_entity_without_terminator(self):
        assert unescape("&amp") == "&"

    def test_unknown_entity_passthrough(self):
        assert unescape("&fakentity") == "&fakentity"
        assert unescape("&fakentity;") == "&fakentity;"

    def test_longest_legacy_match_wins(self):
        assert unescape("&aeligtest") == "ætest"

    def test_legacy_prefix_of_strict_name(self):
        # "not" is legacy, "notin" requires a terminator
        assert unescape("&notin;") == "∉"
        assert unescape("&notin") == "¬in"
        assert unescape("&notit;") == "¬it;"

    def test_two_codepoint_entity(self):
        assert unescape("&NotEqualTilde;") == "\u2242\u0338"

    def test_numeric_fallbacks(self):
        assert unescape("&#0abc") == "�abc"
        assert unescape("&#abc") == "&#abc"
        assert unescape("&#xgabc") == "&#xgabc"

    def test_numeric_references(self):
        assert unescape("&#225;") == "á"
        assert unescape("&#xE1;") == "á"
        assert unescape("&#XE1;") == "á"
        assert unescape("&#65") == "A"
        assert unescape("&#x41x") == "Ax"

    def test_numeric_without_digits_keeps_terminator(self):
        assert unescape("&#;") == "&#;"
        assert unescape("&#x;") == "&#x;"
        assert unescape("&#") == "&#"
        assert unescape("&#x") == "&#x"

    def test_invalid_codepoints_become_replacement_character(self):
        assert unescape("&#0;") == "�"
        assert unescape("&#xD800;") == "�"
        assert unescape("&#xDFFF;") == "�"
        assert unescape("&#x110000;") == "�"
        assert unescape("&#99999999999999999999999999999999;") == "�"

    def test_boundary_codepoints_emitted_as_is(self):
        assert unescape("&#x10FFFF;") == "\U0010ffff"
        assert unescape("&#xD7FF;") == "\ud7ff"
        assert unescape("&#xE000;") == "\ue000"

    def test_c1_controls_emitted_as_is_by_default(self):
        assert unescape("&#128;") == "\x80"
        assert unescape("&#x9F;") == "\x9f"

    def test_c1_controls_remapped_when_requested(self):
        opts = DecoderOpts(remap_controls=True)
        assert unescape("&#128;", opts=opts) == "€"
        assert unescape("&#x9F;", opts=opts) == "Ÿ"
        # No windows-1252 mapping for 0x81
        assert unescape("&#x81;", opts=opts) == "\x81"

    def test_bare_ampersands(self):
        assert unescape("&") == "&"
        assert unescape("& ") == "& "
        assert unescape("&;") == "&;"
        assert unescape("a && b") == "a && b"
        assert unescape("&&&") == "&&&"

    def test_text_without_references_is_unchanged(self):
        text = "plain text with no references"
        assert unescape(text) is text
        assert unescape("") == ""

    def test_decode_inverts_escape(self):
        for s in ["<>&'\"", "&amp;", "&&;;", "&#60;", "a < b && c > d", "'quoted' \"double\""]:
            assert unescape(escape(s)) == s


class TestStreaming(unittest.TestCase):
    def test_split_named_reference(self):
        output, _ = decode_in_pieces(["&am", "p;"])
        assert output == unescape("&amp;") == "&"

    def test_feed_holds_back_pending_reference(self):
        decoder = Decoder()
        assert decoder.feed("Fish &am") == "Fish "
        assert decoder.pending is not None
        assert decoder.feed("p; Chips") == "& Chips"
        assert decoder.pending is None
        assert decoder.finish() == ""

    def test_split_numeric_reference(self):
        output, _ = decode_in_pieces(["&", "#", "x", "2", "1", "9", "2", ";"])
        assert output == "→"

    def test_split_at_terminator(self):
        output, _ = decode_in_pieces(["&rarr", ";tail"])
        assert output == "→tail"

    def test_longest_match_across_chunks(self):
        output, _ = decode_in_pieces(["&ae", "lig", "te", "st"])
        assert output == "ætest"

    def test_every_split_matches_single_feed(self):
        text = "x &amp; &aeligtest &#0abc &notit; &&amp; &#xgabc &fake; &#65 &lt"
        expected, whole = decode_in_pieces([text], collect_errors=True)
        for index in range(len(text) + 1):
            output, split = decode_in_pieces([text[:index], text[index:]], collect_errors=True)
            assert output == expected, index
            assert split.errors == whole.errors, index

    def test_character_at_a_time(self):
        text = "&lt;p&gt;caf&eacute; &amp co&#x2122;"
        output, _ = decode_in_pieces(list(text))
        assert output == unescape(text) == "<p>café & co™"

    def test_empty_chunks_are_ignored(self):
        output, _ = decode_in_pieces(["", "&a", "", "mp", "", ";", ""])
        assert output == "&"

    def test_finish_resolves_open_reference(self):
        cases = {
            "&": "&",
            "&#": "&#",
            "&#x": "&#x",
            "&#65": "A",
            "&amp": "&",
            "&rarr": "&rarr",
            "&fake": "&fake",
            "&aelig": "æ",
        }
        for text, expected in cases.items():
            decoder = Decoder()
            assert decoder.feed(text) + decoder.finish() == expected, text

    def test_long_digit_runs_do_not_grow_state(self):
        decoder = Decoder()
        for _ in range(1000):
            decoder.feed("&#" if decoder.pending is None else "9" * 100)
        assert decoder.pending.digits == 999 * 100
        assert decoder.finish() == "�"


class TestDecoderLifecycle(unittest.TestCase):
    def test_feed_after_finish_raises(self):
        decoder = Decoder()
        decoder.feed("a")
        decoder.finish()
        with self.assertRaises(DecoderFinishedError):
            decoder.feed("b")
        with self.assertRaises(DecoderFinishedError):
            decoder.finish()

    def test_reset_allows_reuse(self):
        decoder = Decoder(collect_errors=True)
        decoder.feed("&am")
        decoder.finish()
        assert decoder.errors == []

        decoder.reset()
        assert decoder.state == Decoder.SCANNING
        assert decoder.pending is None
        assert decoder.feed("&amp") == ""
        assert decoder.finish() == "&"
        assert [e.code for e in decoder.errors] == ["missing-semicolon-after-character-reference"]

        decoder.reset()
        assert decoder.errors == []

    def test_pending_reference_tracks_kind(self):
        decoder = Decoder()
        decoder.feed("&")
        assert decoder.state == Decoder.IN_REFERENCE
        assert decoder.pending.kind == PendingReference.UNKNOWN
        decoder.feed("#")
        assert decoder.pending.kind == PendingReference.NUMERIC
        decoder.feed("x")
        assert decoder.pending.kind == PendingReference.HEX
        assert decoder.pending.text == "&#x"

        decoder.reset()
        decoder.feed("abc &#1")
        assert decoder.pending.kind == PendingReference.DECIMAL
        assert decoder.pending.offset == 4

        decoder.reset()
        decoder.feed("&am")
        assert decoder.pending.kind == PendingReference.NAMED
        assert decoder.pending.text == "&am"

    def test_unmatchable_run_is_not_buffered(self):
        decoder = Decoder()
        assert decoder.feed("&zzzz") == "&zzzz"
        assert decoder.pending.kind == PendingReference.AMBIGUOUS
        assert decoder.feed("zz;") == "zz;"
        assert decoder.pending is None

    def test_decoders_are_independent(self):
        results = {}

        def worker(index):
            decoder = Decoder()
            parts = [decoder.feed(c) for c in "&amp;&#65;&aelig" * 50]
            parts.append(decoder.finish())
            results[index] = "".join(parts)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert set(results.values()) == {"&Aæ" * 50}


class TestSyntheticTables(unittest.TestCase):
    def setUp(self):
        self.table = EntityTable({
            "ab": ("A", False),
            "abc": ("B", True),
            "abcde": ("C", False),
            "x1": ([0x1F600], True),
        })

    def decode(self, text):
        decoder = Decoder(self.table)
        return decoder.feed(text) + decoder.finish()

    def test_legacy_match_without_terminator(self):
        assert self.decode("&abz") == "Az"

    def test_strict_entry_needs_terminator(self):
        assert self.decode("&abc;") == "B"
        assert self.decode("&abcd") == "Acd"

    def test_longest_legacy_match(self):
        assert self.decode("&abcdef") == "Cf"
        assert self.decode("&abcde;") == "C"

    def test_digit_in_name(self):
        assert self.decode("&x1;") == "\U0001f600"
        assert self.decode("&x1") == "&x1"

    def test_default_table_names_unknown_here(self):
        assert self.decode("&amp;") == "&amp;"

    def test_numeric_references_do_not_use_the_table(self):
        assert self.decode("&#60;") == "<"


class TestErrorCollection(unittest.TestCase):
    def test_no_errors_by_default(self):
        decoder = Decoder()
        decoder.feed("&amp &#0; &bogus;")
        decoder.finish()
        assert decoder.errors == []

    def test_collected_error_codes(self):
        _, decoder = decode_in_pieces(["&amp &#0; &bogus; &#; &#x110000 &#xD800;"], collect_errors=True)
        assert [e.code for e in decoder.errors] == [
            "missing-semicolon-after-character-reference",
            "null-character-reference",
            "unknown-named-character-reference",
            "absence-of-digits-in-numeric-character-reference",
            "missing-semicolon-after-character-reference",
            "character-reference-outside-unicode-range",
            "surrogate-character-reference",
        ]
        assert all(isinstance(e, ParseError) for e in decoder.errors)

    def test_noncharacter_and_control_references(self):
        _, decoder = decode_in_pieces(["&#xFFFE;&#x1;&#9;&#x85;"], collect_errors=True)
        assert [e.code for e in decoder.errors] == [
            "noncharacter-character-reference",
            "control-character-reference",
            "control-character-reference",
        ]

    def test_collection_does_not_change_output(self):
        text = "&amp &#0; &bogus; &aeligtest &#x41"
        output, _ = decode_in_pieces([text], collect_errors=True)
        assert output == unescape(text)

    def test_error_positions(self):
        _, decoder = decode_in_pieces(["ab &amp\ncd\n  &#0;"], collect_errors=True)
        first, second = decoder.errors
        assert (first.offset, first.line, first.column) == (3, 1, 4)
        assert (second.offset, second.line, second.column) == (13, 3, 3)

    def test_error_positions_across_chunks(self):
        _, decoder = decode_in_pieces(["line1\nxy", "z &", "amp"], collect_errors=True)
        error = decoder.errors[0]
        assert (error.offset, error.line, error.column) == (10, 2, 5)

    def test_error_message_and_str(self):
        _, decoder = decode_in_pieces(["&amp"], collect_errors=True)
        error = decoder.errors[0]
        assert error.message == "Missing semicolon after character reference"
        assert str(error) == "(1,1): missing-semicolon-after-character-reference - Missing semicolon after character reference"
        assert repr(error) == "ParseError('missing-semicolon-after-character-reference', line=1, column=1)"


class TestStrictMode(unittest.TestCase):
    def test_strict_mode_raises(self):
        decoder = Decoder(strict=True)
        with self.assertRaises(StrictModeError) as ctx:
            decoder.feed("fish &amp chips")
        assert ctx.exception.error.code == "missing-semicolon-after-character-reference"
        assert isinstance(ctx.exception, ValueError)

    def test_strict_mode_raises_at_finish(self):
        decoder = Decoder(strict=True)
        assert decoder.feed("&#") == ""
        with self.assertRaises(StrictModeError):
            decoder.finish()

    def test_strict_mode_accepts_well_formed_input(self):
        decoder = Decoder(strict=True)
        assert decoder.feed("&amp; &#60; &rarr;") + decoder.finish() == "& < →"


class TestDebugLogging(unittest.TestCase):
    def test_debug_logs_resolution(self):
        decoder = Decoder(collect_errors=True, debug=True)
        with self.assertLogs("htmlescape.decoder", level="DEBUG") as logs:
            decoder.feed("&amp")
            decoder.finish()
        assert any("end of input" in line for line in logs.output)
        assert any("missing-semicolon" in line for line in logs.output)
