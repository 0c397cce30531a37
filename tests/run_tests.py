#!/usr/bin/env python3
"""
Program test runner for the Garnet compiler.

Compiles every program under tests/programs with ``garnetc`` and checks the
exit code against the file name:

    test_*.rb        0  compiled cleanly
    test_warn_*.rb   1  compiled with warnings
    test_err_*.rb    2  rejected

Programs can also state what the bundle or the diagnostics must contain
(see program_metadata.py).

Usage:
    python tests/run_tests.py [-v] [-j N] [--filter TEXT] [--json]
"""

import argparse
import json
import os
import shlex
import subprocess
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import List

from tqdm import tqdm

from program_metadata import ProgramMetadata, parse_program_metadata


TESTS_DIR = Path(__file__).resolve().parent
PROGRAMS_DIR = TESTS_DIR / "programs"
BIN_DIR = TESTS_DIR / "bin"


@dataclass
class ProgramResult:
    name: str
    expected: int
    actual: int
    problems: List[str]
    output: str = ""

    @property
    def passed(self) -> bool:
        return self.actual == self.expected and not self.problems


def get_expected_exit_code(test_file: Path) -> int:
    """Exit code a program must produce, from its file name prefix."""
    if test_file.name.startswith("test_warn_"):
        return 1
    if test_file.name.startswith("test_err_"):
        return 2
    return 0


def compile_command(test_file: Path, metadata: ProgramMetadata, out: Path, cache_dir: Path) -> List[str]:
    cmd = [sys.executable, "-m", "garnet_lang.compiler.cli"]
    cmd += ["--core", str(test_file)] if metadata.core else [str(test_file)]
    cmd += ["-o", str(out), "--cache-dir", str(cache_dir)]
    if metadata.extra_args:
        cmd += shlex.split(metadata.extra_args)
    return cmd


def check_expectations(metadata: ProgramMetadata, output_path: Path, stderr: str) -> List[str]:
    """Return the metadata expectations the compilation did not meet."""
    problems = []
    if metadata.expect_bundle_contains or metadata.expect_bundle_excludes:
        try:
            bundle = output_path.read_text(encoding="utf-8")
        except OSError as e:
            return [f"cannot read bundle {output_path}: {e}"]
        problems += [f"bundle does not contain {n!r}"
                     for n in metadata.expect_bundle_contains if n not in bundle]
        problems += [f"bundle unexpectedly contains {n!r}"
                     for n in metadata.expect_bundle_excludes if n in bundle]
    problems += [f"stderr does not contain {n!r}"
                 for n in metadata.expect_stderr_contains if n not in stderr]
    return problems


def run_program(test_file: Path) -> ProgramResult:
    expected = get_expected_exit_code(test_file)
    metadata = parse_program_metadata(test_file)
    # Each program gets its own bundle and cache so parallel runs never collide
    out = BIN_DIR / f"{test_file.stem}.js"
    cmd = compile_command(test_file, metadata, out, BIN_DIR / "cache" / test_file.stem)

    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, timeout=metadata.timeout_seconds)
    except subprocess.TimeoutExpired:
        return ProgramResult(test_file.name, expected, -1, ["timed out"])
    except OSError as e:
        return ProgramResult(test_file.name, expected, -1, [f"could not start compiler: {e}"])

    output = "".join(f"{label}:\n{text}\n" for label, text in
                     (("STDOUT", proc.stdout), ("STDERR", proc.stderr)) if text)
    problems = []
    if proc.returncode == expected:
        problems = check_expectations(metadata, out, proc.stderr)
    return ProgramResult(test_file.name, expected, proc.returncode, problems, output)


def run_all(files: List[Path], jobs: int, progress: bool) -> List[ProgramResult]:
    results = []
    with ThreadPoolExecutor(max_workers=jobs) as pool:
        futures = [pool.submit(run_program, f) for f in files]
        bar = tqdm(total=len(files), desc="Compiling", unit="prog", disable=not progress,
                   bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]")
        for future in as_completed(futures):
            results.append(future.result())
            bar.update(1)
        bar.close()
    return sorted(results, key=lambda r: r.name)


def print_report(results: List[ProgramResult], elapsed: float, verbose: bool) -> None:
    for r in results:
        if r.passed and not verbose:
            continue
        mark = "✓" if r.passed else "✗"
        print(f"{mark} {r.name} (expected: {r.expected}, actual: {r.actual})")
        for problem in r.problems:
            print(f"    {problem}")
        if verbose and not r.passed and r.output:
            print(f"  Output: {r.output}")

    failed = [r for r in results if not r.passed]
    print()
    print(f"Test Results ({elapsed:.2f}s):")
    print(f"  Passed: {len(results) - len(failed)}")
    print(f"  Failed: {len(failed)}")
    print(f"  Total:  {len(results)}")
    print()
    print("All tests passed! ✓" if not failed else "Some tests failed.")


def main():
    parser = argparse.ArgumentParser(description="Run Garnet compiler program tests")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show every program and the output of failures")
    parser.add_argument("-j", "--jobs", type=int, default=4,
                        help="Number of parallel compilations (default: 4)")
    parser.add_argument("--filter", type=str,
                        help="Only run programs whose name contains this text")
    parser.add_argument("--json", action="store_true",
                        help="Print results as JSON")
    args = parser.parse_args()

    BIN_DIR.mkdir(exist_ok=True)
    # The package is importable from the project root without installing
    os.chdir(TESTS_DIR.parent)

    files = sorted(PROGRAMS_DIR.rglob("test_*.rb"))
    if args.filter:
        files = [f for f in files if args.filter in f.name]
    if not files:
        if not args.json:
            print("No test files found!")
        return 1

    if not args.json:
        print(f"Running {len(files)} programs with {args.jobs} parallel jobs...\n")

    start = time.time()
    results = run_all(files, args.jobs, progress=not (args.json or args.verbose))
    elapsed = time.time() - start
    failed = [r for r in results if not r.passed]

    if args.json:
        print(json.dumps({
            "total_tests": len(results),
            "passed": len(results) - len(failed),
            "failed": len(failed),
            "duration_seconds": round(elapsed, 2),
            "failed_tests": [
                {"name": r.name, "expected_exit_code": r.expected,
                 "actual_exit_code": r.actual, "problems": r.problems}
                for r in failed
            ],
        }, indent=2))
    else:
        print_report(results, elapsed, args.verbose)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
