#!/usr/bin/env python3
"""
Performance benchmark for htmlescape against the standard library.
Reads a corpus of HTML or text files (plain, or *.zst compressed with an
optional zstd dictionary), or generates a synthetic reference-heavy corpus.
"""

# ruff: noqa: PERF203, PLC0415, BLE001
from __future__ import annotations

import argparse
import multiprocessing
import os
import pathlib
import random
import sys
import threading
import time

# optional dependency for RSS sampling
try:
    import psutil

    _PSUTIL_AVAILABLE = True
except Exception:
    psutil = None
    _PSUTIL_AVAILABLE = False


# lightweight RSS monitor using psutil
class MemoryMonitor:
    def __init__(self, pid: int | None = None, sample_interval: float = 0.01):
        """
        pid: process ID to monitor (default: current process).
        sample_interval: seconds between samples (default 10ms).
        """
        self.sample_interval = sample_interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        target_pid = pid if pid is not None else os.getpid()
        self._proc = psutil.Process(target_pid) if _PSUTIL_AVAILABLE else None
        self.start_rss = None
        self.end_rss = None
        self.peak_rss = None
        self.last_rss = None
        self.samples = 0

    def _get_rss(self) -> int | None:
        if not self._proc:
            return None
        try:
            return self._proc.memory_info().rss
        except psutil.Error:
            return None

    def start(self):
        if not _PSUTIL_AVAILABLE:
            return
        self.start_rss = self._get_rss()
        self.peak_rss = self.start_rss
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def _run(self):
        while not self._stop.is_set():
            rss = self._get_rss()
            if rss is not None:
                self.last_rss = rss
                if self.peak_rss is None or rss > self.peak_rss:
                    self.peak_rss = rss
                self.samples += 1
            self._stop.wait(self.sample_interval)

    def stop(self):
        if not _PSUTIL_AVAILABLE:
            return
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=1.0)

        # The child may already be gone; fall back to the last sample
        current = self._get_rss()
        if current and current > 0:
            self.end_rss = current
        else:
            self.end_rss = self.last_rss

    def to_dict(self) -> dict:
        if not _PSUTIL_AVAILABLE:
            return {"memory_note": "psutil not installed; memory metrics skipped"}

        def mb(x):
            return (x or 0) / (1024 * 1024)

        start_mb = mb(self.start_rss)
        end_mb = mb(self.end_rss)
        peak_mb = mb(self.peak_rss)
        delta_mb = end_mb - start_mb if (self.end_rss is not None and self.start_rss is not None) else 0.0
        return {
            "rss_start_mb": start_mb,
            "rss_end_mb": end_mb,
            "rss_delta_mb": delta_mb,
            "rss_peak_mb": peak_mb,
            "mem_samples": self.samples,
        }


def load_corpus(
    corpus_dir: pathlib.Path,
    dict_path: pathlib.Path | None = None,
    limit: int | None = None,
) -> list[tuple[str, str]]:
    """
    Load *.html, *.txt and *.zst files from a directory.
    Returns list of (filename, text) tuples.
    """
    if not corpus_dir.exists():
        print(f"ERROR: Corpus directory not found at {corpus_dir}")
        sys.exit(1)

    paths = sorted(p for p in corpus_dir.iterdir() if p.suffix in (".html", ".htm", ".txt", ".zst"))
    if limit:
        paths = paths[:limit]

    dctx = None
    if any(p.suffix == ".zst" for p in paths):
        try:
            import zstandard as zstd
        except ImportError:
            print("ERROR: zstandard is required for .zst files. Install with: pip install zstandard")
            sys.exit(1)
        if dict_path is not None:
            if not dict_path.exists():
                print(f"ERROR: Dictionary not found at {dict_path}")
                sys.exit(1)
            dctx = zstd.ZstdDecompressor(dict_data=zstd.ZstdCompressionDict(dict_path.read_bytes()))
        else:
            dctx = zstd.ZstdDecompressor()

    results = []
    for path in paths:
        try:
            data = path.read_bytes()
            if path.suffix == ".zst":
                data = dctx.decompress(data)
            results.append((path.name, data.decode("utf-8", errors="replace")))
        except Exception as e:
            print(f"Warning: Failed to load {path.name}: {e}")
            continue
    return results


def generate_corpus(count: int, size: int, seed: int = 0) -> list[tuple[str, str]]:
    """Build documents with a realistic mix of text and character references."""
    from htmlescape import HTML5_ENTITIES

    rng = random.Random(seed)
    names = sorted(HTML5_ENTITIES)
    words = ["the", "quick", "brown", "fox", "<p>", "</p>", "café", "price", "100", "a=b"]
    references = [
        lambda: "&amp;",
        lambda: "&lt;",
        lambda: "&quot;",
        lambda: f"&{rng.choice(names)};",
        lambda: f"&#{rng.randint(32, 0x2FFF)};",
        lambda: f"&#x{rng.randint(32, 0x1FFFF):x};",
        lambda: "&copy",
        lambda: "&",
    ]
    docs = []
    for i in range(count):
        parts = []
        length = 0
        while length < size:
            part = rng.choice(references)() if rng.random() < 0.15 else rng.choice(words)
            parts.append(part)
            parts.append(" ")
            length += len(part) + 1
        docs.append((f"synthetic-{i:04d}.txt", "".join(parts)))
    return docs


def _time_each(fn, docs, iterations):
    all_times = []
    errors = 0
    error_files = []
    if docs:
        try:
            fn(docs[0][1])
        except Exception:
            pass
    for _ in range(iterations):
        for filename, text in docs:
            try:
                start = time.perf_counter()
                fn(text)
                all_times.append(time.perf_counter() - start)
            except Exception as e:
                errors += 1
                error_files.append((filename, str(e)))
    return {
        "total_time": sum(all_times),
        "mean_time": sum(all_times) / len(all_times) if all_times else 0,
        "min_time": min(all_times) if all_times else 0,
        "max_time": max(all_times) if all_times else 0,
        "errors": errors,
        "success_count": len(all_times),
        "error_files": error_files,
    }


def benchmark_unescape(docs: list, iterations: int = 1) -> dict:
    """Benchmark htmlescape.unescape on whole documents."""
    from htmlescape import unescape

    return _time_each(unescape, docs, iterations)


def benchmark_stream(docs: list, iterations: int = 1, chunk_size: int = 4096) -> dict:
    """Benchmark the streaming decoder fed in fixed-size chunks."""
    from htmlescape import Decoder

    def run(text):
        decoder = Decoder()
        parts = [decoder.feed(text[i:i + chunk_size]) for i in range(0, len(text), chunk_size)]
        parts.append(decoder.finish())
        return "".join(parts)

    return _time_each(run, docs, iterations)


def benchmark_stdlib_unescape(docs: list, iterations: int = 1) -> dict:
    """Benchmark html.unescape from the standard library."""
    import html

    return _time_each(html.unescape, docs, iterations)


def benchmark_escape(docs: list, iterations: int = 1) -> dict:
    """Benchmark htmlescape.escape."""
    from htmlescape import escape

    return _time_each(escape, docs, iterations)


def benchmark_stdlib_escape(docs: list, iterations: int = 1) -> dict:
    """Benchmark html.escape from the standard library."""
    import html

    return _time_each(html.escape, docs, iterations)


BENCHMARKS = {
    "unescape": benchmark_unescape,
    "stream": benchmark_stream,
    "html.unescape": benchmark_stdlib_unescape,
    "escape": benchmark_escape,
    "html.escape": benchmark_stdlib_escape,
}

# Each of ours is compared against the stdlib function doing the same job
BASELINES = {
    "unescape": "html.unescape",
    "stream": "html.unescape",
    "escape": "html.escape",
}


def _benchmark_worker(bench_fn, docs, iterations, queue):
    """Worker function to run benchmark in a separate process."""
    try:
        res = bench_fn(docs, iterations)
        queue.put(res)
    except Exception as e:
        queue.put({"error": str(e)})


def run_benchmark_isolated(bench_fn, docs, iterations, args):
    """Run benchmark in a separate process to isolate memory usage."""
    if args.no_mem or not _PSUTIL_AVAILABLE:
        return bench_fn(docs, iterations)

    import gc
    gc.collect()

    queue = multiprocessing.Queue()
    p = multiprocessing.Process(
        target=_benchmark_worker,
        args=(bench_fn, docs, iterations, queue),
    )
    p.start()

    mon = MemoryMonitor(pid=p.pid, sample_interval=max(0.0005, args.mem_sample_ms / 1000.0))
    mon.start()

    res = None
    try:
        res = queue.get()
    finally:
        mon.stop()
        p.join()

    if res and "error" not in res:
        res.update(mon.to_dict())
    return res


def print_results(results: dict, file_count: int, iterations: int = 1):
    """Pretty print benchmark results."""
    print("\n" + "=" * 100)
    if iterations > 1:
        print(f"BENCHMARK RESULTS ({file_count} documents x {iterations} iterations)")
    else:
        print(f"BENCHMARK RESULTS ({file_count} documents)")
    print("=" * 100)

    header = f"\n{'Function':<15} {'Total (s)':<10} {'Mean (ms)':<10} {'Peak (MB)':<10} {'Delta (MB)':<10} {'Errors':<8}"
    print(header)
    print("-" * 100)

    for name in BENCHMARKS:
        if name not in results:
            continue
        result = results[name]
        if "error" in result:
            print(f"{name:<15} {result['error']}")
            continue

        total = result["total_time"]
        mean_ms = result["mean_time"] * 1000
        errors = result["errors"]

        peak_mb = result.get("rss_peak_mb", 0)
        delta_mb = result.get("rss_delta_mb", 0)
        mem_str = f"{peak_mb:>10.1f} {delta_mb:>10.1f}" if "rss_peak_mb" in result else f"{'n/a':>10} {'n/a':>10}"

        print(f"{name:<15} {total:<10.3f} {mean_ms:<10.3f} {mem_str} {errors:<8}")

    print("\n" + "=" * 100)

    lines = []
    for name, baseline in BASELINES.items():
        ours = results.get(name, {})
        theirs = results.get(baseline, {})
        if "total_time" in ours and "total_time" in theirs and ours["total_time"] > 0:
            ratio = theirs["total_time"] / ours["total_time"]
            lines.append(f"  {name:<15} {ratio:>6.2f}x {'faster' if ratio >= 1 else 'slower'} than {baseline}")
    if lines:
        print("\nhtmlescape vs the standard library:")
        print("\n".join(lines))
        print()

    for name, result in results.items():
        error_files = result.get("error_files", [])
        if error_files:
            print(f"\nErrors for {name}:")
            for filename, error_msg in error_files:
                print(f"  {filename}: {error_msg}")
            print()


def main():
    parser = argparse.ArgumentParser(
        description="Benchmark htmlescape against html.escape / html.unescape",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--corpus", type=pathlib.Path, help="Directory of .html/.txt/.zst files")
    parser.add_argument("--dict", type=pathlib.Path, help="zstd dictionary for .zst files")
    parser.add_argument(
        "--limit", type=int, default=100, help="Limit number of documents (default: 100, use 0 for all)",
    )
    parser.add_argument(
        "--synthetic-size",
        type=int,
        default=50_000,
        help="Characters per generated document when no corpus is given (default: 50000)",
    )
    parser.add_argument(
        "--iterations", type=int, default=5, help="Number of iterations to run for averaging (default: 5)",
    )
    parser.add_argument(
        "--functions",
        nargs="+",
        choices=list(BENCHMARKS),
        default=list(BENCHMARKS),
        help="Functions to benchmark (default: all)",
    )
    parser.add_argument("--no-mem", action="store_true", help="Disable memory measurement (RSS sampling)")
    parser.add_argument(
        "--mem-sample-ms", type=float, default=10.0, help="Memory sampling interval in milliseconds (default: 10ms)",
    )

    args = parser.parse_args()

    limit = args.limit if args.limit > 0 else None
    if args.corpus:
        print(f"Loading documents from {args.corpus}...")
        docs = load_corpus(args.corpus, args.dict, limit)
    else:
        print("Generating synthetic corpus...")
        docs = generate_corpus(limit or 100, args.synthetic_size)
    if not docs:
        print("ERROR: No documents loaded")
        sys.exit(1)
    print(f"Loaded {len(docs)} documents")

    total_chars = sum(len(text) for _, text in docs)
    print(f"Total size: {total_chars / 1024 / 1024:.2f} M characters")

    if not _PSUTIL_AVAILABLE and not args.no_mem:
        print("Note: psutil not installed; memory metrics will be skipped. Install with: pip install psutil")

    results = {}
    for name in args.functions:
        print(f"\nBenchmarking {name}...", end="", flush=True)
        res = run_benchmark_isolated(BENCHMARKS[name], docs, args.iterations, args)
        results[name] = res
        if "error" in res:
            print(f" SKIPPED ({res['error']})")
        else:
            print(
                f" DONE ({res['total_time']:.3f}s"
                + (f", peak RSS {res.get('rss_peak_mb', 0):.1f} MB" if "rss_peak_mb" in res else "")
                + ")",
            )

    print_results(results, len(docs), args.iterations)


if __name__ == "__main__":
    main()
