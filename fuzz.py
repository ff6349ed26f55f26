#!/usr/bin/env python3
"""
Random fuzzer for the character reference decoder.
Generates malformed references and checks the decoder's invariants.
"""

import argparse
import random
import string
import sys
import time
import traceback

from htmlescape import HTML5_ENTITIES, Decoder, DecoderOpts, escape, unescape

# Fuzzing strategies
SPECIAL_CHARS = [
    "\x00", "\x01", "\x0b", "\x0c", "\x0e", "\x0f", "\x7f",  # Control chars
    "\ufffd",  # Replacement character
    "\u00a0",  # Non-breaking space
    "\u2028", "\u2029",  # Line/paragraph separators
    "\u200b", "\u200c", "\u200d",  # Zero-width chars
    "\ufeff",  # BOM
    "\U0001f600",  # Outside the BMP
]

ENTITIES = [
    "&amp;", "&lt;", "&gt;", "&quot;", "&apos;", "&nbsp;",
    "&", "&amp", "&ampamp;", "&am", "&#", "&#x", "&#123", "&#x1f;",
    "&#xdeadbeef;", "&#99999999;", "&#-1;", "&#x;", "&unknown;",
    "&AMP;", "&AMP", "&LT", "&GT",
    # Edge case entities
    "&#0;", "&#x0;", "&#x0D;", "&#13;",  # Null and CR
    "&#128;", "&#x80;",  # C1 control range start
    "&#159;", "&#x9F;",  # C1 control range end
    "&#xD800;", "&#xDFFF;",  # Surrogate range
    "&#x10FFFF;", "&#x110000;",  # Max and over max codepoint
    "&#xFDD0;", "&#xFFFE;",  # Noncharacters
    "&NotExists;", "&notin;", "&notinva;", "&notit;",  # Legacy prefix of strict names
    "&CounterClockwiseContourIntegral;",  # Long entity name
]

ENTITY_NAMES = sorted(HTML5_ENTITIES)
LEGACY_NAMES = sorted(HTML5_ENTITIES.legacy_names())
LONGEST_NAME = max(len(name) for name in ENTITY_NAMES)


def random_string(min_len=0, max_len=20):
    """Generate random ASCII string."""
    length = random.randint(min_len, max_len)
    return "".join(random.choices(string.ascii_letters + string.digits, k=length))


def fuzz_named():
    """Generate named references, valid and damaged."""
    name = random.choice(ENTITY_NAMES)
    variants = [
        f"&{name};",
        f"&{name}",
        f"&{name}{random_string(1, 4)}",
        f"&{name}{random_string(1, 4)};",
        f"&{name[:-1]};" if len(name) > 1 else "&;",
        f"&{name.swapcase()};",
        f"&{random.choice(LEGACY_NAMES)}{random.choice(['=', ';', ' ', '&', '#', ''])}",
    ]
    return random.choice(variants)


def fuzz_numeric():
    """Generate numeric references with odd digits and terminators."""
    value = random.choice([
        random.randint(0, 0x80),
        random.randint(0x80, 0xA0),
        random.randint(0xD800, 0xE000),
        random.randint(0xFDD0, 0xFDF0),
        random.randint(0, 0x10FFFF),
        random.randint(0x110000, 0xFFFFFFFF),
    ])
    zeros = "0" * random.randint(0, 3)
    terminator = random.choice([";", "", " ", "g", "&", ";;"])
    variants = [
        f"&#{zeros}{value}{terminator}",
        f"&#x{zeros}{value:x}{terminator}",
        f"&#X{zeros}{value:X}{terminator}",
        f"&#{'9' * random.randint(8, 40)}{terminator}",
        f"&#x{random.choice(['', 'g', ';', ' '])}",
        f"&#{random.choice(['', 'a', ';', '-1'])}",
    ]
    return random.choice(variants)


def fuzz_ampersands():
    """Generate runs of bare and stacked ampersands."""
    variants = [
        "&" * random.randint(1, 10),
        "&&" + random_string(1, 10),
        "&" + random.choice(string.punctuation + string.whitespace),
        "&" + random_string(LONGEST_NAME, LONGEST_NAME + 10) + ";",
        "&#&#x&;",
    ]
    return random.choice(variants)


def fuzz_text():
    """Generate random text content."""
    strategies = [
        lambda: random_string(1, 50),
        lambda: "".join(random.choices(SPECIAL_CHARS, k=random.randint(1, 10))),
        lambda: random.choice(ENTITIES),
        lambda: "\n" * random.randint(1, 3),
        lambda: "<p class='x'>" + random_string(0, 10) + "</p>",
    ]
    return random.choice(strategies)()


def generate_fuzzed_text():
    """Generate a random mix of text and references."""
    parts = []
    num_parts = random.randint(1, 30)
    for _ in range(num_parts):
        part_type = random.choices(
            [fuzz_named, fuzz_numeric, fuzz_ampersands, fuzz_text],
            weights=[30, 25, 10, 35],
        )[0]
        parts.append(part_type())
    return "".join(parts)


def random_chunks(text):
    """Cut text at random points."""
    if len(text) < 2:
        return [text]
    cuts = sorted(random.sample(range(1, len(text)), k=min(len(text) - 1, random.randint(1, 8))))
    bounds = [0, *cuts, len(text)]
    return [text[start:end] for start, end in zip(bounds, bounds[1:])]


def decode(chunks, remap_controls):
    decoder = Decoder(opts=DecoderOpts(remap_controls=remap_controls), collect_errors=True)
    parts = [decoder.feed(chunk) for chunk in chunks]
    parts.append(decoder.finish())
    return "".join(parts), decoder.errors


def check_invariants(text, remap_controls=False):
    """Return a description of the first broken invariant, or None."""
    whole, whole_errors = decode([text], remap_controls)

    chunks = random_chunks(text)
    split, split_errors = decode(chunks, remap_controls)
    if split != whole:
        return f"output changed when split as {chunks!r}"
    if split_errors != whole_errors:
        return f"errors changed when split as {chunks!r}"

    by_char, _ = decode(list(text), remap_controls)
    if by_char != whole:
        return "output changed when fed one character at a time"

    if unescape(text, opts=DecoderOpts(remap_controls=remap_controls)) != whole:
        return "unescape() differs from the streaming decoder"

    # Every replacement is at most 2 codepoints, every reference is at least 2 characters
    if len(whole) > len(text):
        return f"output grew from {len(text)} to {len(whole)} characters"

    if unescape(escape(text)) != text:
        return "unescape(escape(text)) does not return the input"

    return None


def run_fuzzer(num_tests, seed=None, verbose=False, save_failures=False):
    """Run the fuzzer against the decoder."""
    if seed is not None:
        random.seed(seed)

    crashes = []
    violations = []
    hangs = []
    successes = 0

    print(f"Fuzzing the decoder with {num_tests} test cases...")
    start_time = time.time()

    for i in range(num_tests):
        text = generate_fuzzed_text()
        remap_controls = random.random() < 0.5

        if verbose and i % 100 == 0:
            print(f"  Test {i}/{num_tests}...")

        try:
            start = time.perf_counter()
            problem = check_invariants(text, remap_controls)
            elapsed = time.perf_counter() - start

            if problem is not None:
                violations.append({"test_num": i, "text": text, "problem": problem})
                if verbose:
                    print(f"  VIOLATION: Test {i}: {problem}")
            # Check for hangs (>5 seconds)
            elif elapsed > 5.0:
                hangs.append({"test_num": i, "text": text, "time": elapsed})
                if verbose:
                    print(f"  HANG: Test {i} took {elapsed:.2f}s")
            else:
                successes += 1

        except Exception as e:
            crashes.append({
                "test_num": i,
                "text": text,
                "error": str(e),
                "traceback": traceback.format_exc(),
            })
            if verbose:
                print(f"  CRASH: Test {i}: {e}")

    elapsed_total = time.time() - start_time

    # Report results
    print(f"\n{'='*60}")
    print("FUZZING RESULTS")
    print(f"{'='*60}")
    print(f"Total tests:    {num_tests}")
    print(f"Successes:      {successes}")
    print(f"Crashes:        {len(crashes)}")
    print(f"Violations:     {len(violations)}")
    print(f"Hangs (>5s):    {len(hangs)}")
    print(f"Total time:     {elapsed_total:.2f}s")
    if elapsed_total:
        print(f"Tests/second:   {num_tests/elapsed_total:.1f}")

    if crashes:
        print(f"\n{'='*60}")
        print("CRASH DETAILS:")
        print(f"{'='*60}")
        for crash in crashes[:10]:  # Show first 10
            print(f"\nTest #{crash['test_num']}:")
            print(f"  Input: {crash['text'][:200]!r}...")
            print(f"  Error: {crash['error']}")
        if len(crashes) > 10:
            print(f"\n... and {len(crashes) - 10} more crashes")

    if violations:
        print(f"\n{'='*60}")
        print("VIOLATION DETAILS:")
        print(f"{'='*60}")
        for violation in violations[:10]:
            print(f"\nTest #{violation['test_num']}:")
            print(f"  Input: {violation['text'][:200]!r}...")
            print(f"  Problem: {violation['problem']}")
        if len(violations) > 10:
            print(f"\n... and {len(violations) - 10} more violations")

    if hangs:
        print(f"\n{'='*60}")
        print("HANG DETAILS:")
        print(f"{'='*60}")
        for hang in hangs[:5]:
            print(f"\nTest #{hang['test_num']} ({hang['time']:.2f}s):")
            print(f"  Input: {hang['text'][:200]!r}...")

    failed = crashes or violations or hangs
    if save_failures and failed:
        filename = f"fuzz_failures_{int(time.time())}.txt"
        with open(filename, "w", encoding="utf-8") as f:
            f.write("Fuzzing results for the decoder\n")
            f.write(f"Seed: {seed}\n\n")
            for crash in crashes:
                f.write(f"=== CRASH #{crash['test_num']} ===\n")
                f.write(f"Input:\n{crash['text']!r}\n")
                f.write(f"Error: {crash['error']}\n")
                f.write(f"Traceback:\n{crash['traceback']}\n\n")
            for violation in violations:
                f.write(f"=== VIOLATION #{violation['test_num']} ===\n")
                f.write(f"Input:\n{violation['text']!r}\n")
                f.write(f"Problem: {violation['problem']}\n\n")
            for hang in hangs:
                f.write(f"=== HANG #{hang['test_num']} ({hang['time']:.2f}s) ===\n")
                f.write(f"Input:\n{hang['text']!r}\n\n")
        print(f"\nFailures saved to {filename}")

    return not failed


def main():
    parser = argparse.ArgumentParser(description="Fuzz the character reference decoder with malformed input")
    parser.add_argument(
        "--num-tests", "-n",
        type=int,
        default=1000,
        help="Number of test cases to generate (default: 1000)",
    )
    parser.add_argument(
        "--seed", "-s",
        type=int,
        default=None,
        help="Random seed for reproducibility",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--save-failures",
        action="store_true",
        help="Save failures to a file",
    )
    parser.add_argument(
        "--sample",
        type=int,
        metavar="N",
        help="Just print N sample fuzzed inputs (no decoding)",
    )

    args = parser.parse_args()

    if args.sample:
        if args.seed:
            random.seed(args.seed)
        for i in range(args.sample):
            print(f"=== Sample {i+1} ===")
            print(generate_fuzzed_text())
            print()
        return

    success = run_fuzzer(
        args.num_tests,
        seed=args.seed,
        verbose=args.verbose,
        save_failures=args.save_failures,
    )

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
