#!/usr/bin/env python3
"""
LineSense

A cross-platform Python script to report and normalize line endings in text files.
"""

import argparse
import collections
import concurrent.futures
import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Set

from tqdm import tqdm

from analysis_cache import AnalysisCache
from linebreaks import InvalidTargetKindError, LineTerminatorKind
from text_document import DocumentInfo, TextDocument

# Define version
__version__ = "1.0.0"


# Set up logging with thread-safe handler
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(), logging.FileHandler("linesense.log", mode="a")],
)
logger = logging.getLogger("LineSense")
# Add a thread lock for logging
log_lock = threading.Lock()

TARGET_CHOICES: List[str] = [
    kind.name.lower() for kind in LineTerminatorKind if kind is not LineTerminatorKind.NONE
]

DEFAULT_IGNORE_DIRS: List[str] = [
    ".git",
    ".github",
    "__pycache__",
    "node_modules",
    "venv",
    ".venv",
]

BINARY_EXTENSIONS: Set[str] = {
    ".bin", ".exe", ".dll", ".so", ".dylib", ".obj", ".o", ".a", ".lib",
    ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".tif", ".tiff",
    ".zip", ".tar", ".gz", ".bz2", ".xz", ".7z", ".rar",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".class", ".pyc", ".pyo", ".pyd", ".mp3", ".mp4", ".avi", ".mov",
}


def is_binary_file(file_path: str) -> bool:
    """Binary by extension or by a NUL byte in the first 8 KiB; unreadable counts as binary."""
    try:
        if os.path.getsize(file_path) == 0:
            return False

        if os.path.splitext(file_path)[1].lower() in BINARY_EXTENSIONS:
            return True

        with open(file_path, "rb") as f:
            return b"\x00" in f.read(8192)
    except OSError as e:
        with log_lock:
            logger.error("Error checking if file is binary %s: %s", file_path, str(e))
        return True


def process_file(
    file_path: str,
    target: LineTerminatorKind,
    check_only: bool = False,
    cache: Optional[AnalysisCache] = None,
) -> bool:
    """
    Analyze one file and, unless check_only, convert its line endings to target.

    Returns True when the file was converted (or, with check_only, would be).
    """
    if cache is None:
        cache = AnalysisCache()
    try:
        if not os.path.exists(file_path):
            with log_lock:
                logger.error("File not found: %s", file_path)
            return False

        if os.path.getsize(file_path) == 0:
            with log_lock:
                logger.debug("Skipping empty file: %s", file_path)
            return False

        if is_binary_file(file_path):
            with log_lock:
                logger.debug("Skipping binary file: %s", file_path)
            return False

        if not check_only and not os.access(file_path, os.W_OK):
            with log_lock:
                logger.error("File is not writable: %s", file_path)
            return False

        document = TextDocument.open(file_path)
        info = DocumentInfo(document, cache, preferred=target)
        try:
            result = info.refresh()
            with log_lock:
                logger.debug("%s: %s", file_path, result.display_label or "(no line breaks)")

            if check_only:
                needs_repair = result.is_mixture or result.dominant_kind not in (
                    target,
                    LineTerminatorKind.NONE,
                )
                if needs_repair:
                    with log_lock:
                        logger.info("%s: %s", file_path, result.display_label)
                return needs_repair

            if info.repair_line_breaks(target) == 0:
                with log_lock:
                    logger.debug("No changes needed for file: %s", file_path)
                return False

            document.save()
            with log_lock:
                logger.debug("Updated file: %s", file_path)
            return True
        finally:
            document.close()
    except PermissionError as e:
        with log_lock:
            logger.error("Permission denied accessing %s: %s", file_path, str(e))
        return False
    except Exception as e:  # pylint: disable=broad-exception-caught
        with log_lock:
            logger.error("Error processing %s: %s", file_path, str(e))
        return False


def find_files(
    root_dir: str,
    file_patterns: Optional[List[str]],
    ignore_dirs: Optional[List[str]] = None,
) -> List[str]:
    """Find all files matching the given patterns recursively."""
    if ignore_dirs is None:
        ignore_dirs = DEFAULT_IGNORE_DIRS

    all_files: List[str] = []
    seen: Set[str] = set()
    ignore_dirs_set: Set[str] = set(ignore_dirs)

    if not file_patterns:
        file_patterns = [".txt"]

    for pattern in file_patterns:
        pattern = pattern.strip()
        if not pattern:
            continue

        # A bare extension becomes a glob
        if pattern.startswith(".") and "/" not in pattern and "\\" not in pattern:
            glob_pattern: str = f"*{pattern}"
        else:
            glob_pattern = pattern

        for root, dirs, files in os.walk(root_dir):
            dirs[:] = [d for d in dirs if d not in ignore_dirs_set]

            for filename in files:
                file_path: str = os.path.join(root, filename)
                if file_path not in seen and Path(filename).match(glob_pattern):
                    seen.add(file_path)
                    all_files.append(file_path)

    return all_files


def process_files_parallel(  # pylint: disable=too-many-locals
    files: List[str],
    target: LineTerminatorKind,
    check_only: bool = False,
    cache: Optional[AnalysisCache] = None,
    max_workers: Optional[int] = None,
) -> int:
    """Process files in parallel and return how many were (or would be) converted."""
    if cache is None:
        cache = AnalysisCache()
    if not files:
        return 0

    processed_count: int = 0
    error_count: int = 0
    skipped_count: int = 0

    if max_workers is None:
        cpu_count: Optional[int] = os.cpu_count()
        max_workers = min((cpu_count or 2) * 2, 32, len(files))
    else:
        max_workers = min(max_workers, 32, len(files))

    with log_lock:
        logger.debug(
            "Using %d worker threads for processing %d files", max_workers, len(files)
        )

    # Batches keep the future map small for very large trees
    batch_size = 1000
    for i in range(0, len(files), batch_size):
        batch_files = files[i : i + batch_size]

        with tqdm(
            total=len(batch_files),
            desc=f"{'Checking' if check_only else 'Processing'} files (batch {i//batch_size + 1})",
            unit="file",
        ) as pbar:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=max_workers
            ) as executor:
                future_to_file = {
                    executor.submit(process_file, file_path, target, check_only, cache): file_path
                    for file_path in batch_files
                }

                for future in concurrent.futures.as_completed(future_to_file):
                    file_path = future_to_file[future]
                    try:
                        if future.result():
                            processed_count += 1
                        else:
                            skipped_count += 1
                    except Exception as e:  # pylint: disable=broad-exception-caught
                        error_count += 1
                        with log_lock:
                            logger.error(
                                "Unhandled error processing %s: %s", file_path, str(e)
                            )
                    finally:
                        pbar.update(1)

    with log_lock:
        if error_count > 0:
            logger.warning("Encountered errors while processing %d files", error_count)
        logger.info(
            "%s: %d, Skipped: %d, Errors: %d",
            "Need conversion" if check_only else "Processed",
            processed_count,
            skipped_count,
            error_count,
        )

    return processed_count


def summarize_labels(cache: AnalysisCache) -> "collections.Counter[str]":
    """Count analyzed files per line break label."""
    tally: "collections.Counter[str]" = collections.Counter()
    for path in cache.paths():
        result = cache.get(path)
        if result is not None:
            tally[result.display_label or "(none)"] += 1
    return tally


def format_duration(execution_time: float) -> str:
    if execution_time < 60:
        return f"{execution_time:.2f} seconds"
    if execution_time < 3600:
        minutes = int(execution_time // 60)
        seconds = execution_time % 60
        return f"{minutes} minute{'s' if minutes != 1 else ''} {seconds:.2f} seconds"
    hours = int(execution_time // 3600)
    minutes = int((execution_time % 3600) // 60)
    seconds = execution_time % 60
    return (
        f"{hours} hour{'s' if hours != 1 else ''} "
        f"{minutes} minute{'s' if minutes != 1 else ''} "
        f"{seconds:.2f} seconds"
    )


def build_parser(version: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Report and normalize line endings in text files"
    )
    parser.add_argument(
        "root_dir",
        nargs="?",
        default=None,
        help="Root directory to process (default: current directory)",
    )
    parser.add_argument(
        "file_patterns",
        nargs="?",
        default=None,
        help="File patterns to match (e.g., '.txt .py .md')",
    )
    parser.add_argument(
        "--format",
        choices=TARGET_CHOICES,
        default="crlf",
        help="Target line ending format (default: crlf)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report files whose line endings are mixed or differ from the target",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Run in non-interactive mode with provided options",
    )
    parser.add_argument(
        "--ignore-dirs",
        nargs="+",
        default=[],
        help="Directories to ignore during processing "
        "(default: .git, .github, __pycache__, node_modules, venv, .venv)",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker threads for parallel processing "
        "(default: auto-detect based on CPU count)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"LineSense v{version}",
        help="Show program version and exit",
    )
    return parser


def prompt_for_missing(args: argparse.Namespace) -> None:
    """Fill in options interactively when they were not given on the command line."""
    if args.root_dir is None:
        args.root_dir = input(
            "Check what root directory? [default: current directory] "
        ).strip()
        if not args.root_dir:
            args.root_dir = os.getcwd()

    if args.file_patterns is None:
        args.file_patterns = input(
            "Check files that end with what? (e.g., '.txt .py') "
        ).strip()
        if not args.file_patterns:
            args.file_patterns = ".txt"

    format_choice = (
        input(
            f"Convert to which line ending format? [{'/'.join(TARGET_CHOICES)}, default: crlf] "
        )
        .strip()
        .lower()
    )
    if format_choice in TARGET_CHOICES:
        args.format = format_choice

    check_only = (
        input("Only report, without converting (y/n)? [default: n] ").strip().lower()
    )
    args.check = args.check or check_only.startswith("y")

    ignore_dirs_input = input(
        "Directories to ignore (space-separated)? "
        "[default: .git .github __pycache__ node_modules venv .venv] "
    ).strip()
    if ignore_dirs_input:
        args.ignore_dirs = ignore_dirs_input.split()

    workers_input = input("Number of worker threads? [default: auto] ").strip()
    if workers_input and workers_input.isdigit():
        args.workers = int(workers_input)


def main() -> int:  # pylint: disable=too-many-return-statements
    try:
        version: str = getattr(sys.modules[__name__], "__version__", "1.0.0")
        logger.info("LineSense v%s - Line Ending Inspector", version)

        args = build_parser(version).parse_args()

        if args.verbose:
            logger.setLevel(logging.DEBUG)

        if not args.non_interactive and (
            args.root_dir is None or args.file_patterns is None
        ):
            prompt_for_missing(args)

        root_dir: str = args.root_dir if args.root_dir else os.getcwd()
        if not os.path.isdir(root_dir):
            logger.error("Error: '%s' is not a valid directory.", root_dir)
            return 1
        root_dir = os.path.abspath(root_dir)

        try:
            target = LineTerminatorKind.from_name(args.format)
        except InvalidTargetKindError as e:
            logger.error("Error: %s", str(e))
            return 1

        file_patterns: List[str] = (
            args.file_patterns.split() if args.file_patterns else [".txt"]
        )
        ignore_dirs: List[str] = (
            args.ignore_dirs if args.ignore_dirs else DEFAULT_IGNORE_DIRS
        )

        if args.workers is not None and args.workers <= 0:
            logger.warning(
                "Invalid worker count (%d), using auto-detection instead", args.workers
            )
            args.workers = None

        logger.info(
            "Searching for files in %s matching patterns: %s",
            root_dir,
            " ".join(file_patterns),
        )
        logger.info("Ignoring directories: %s", ", ".join(ignore_dirs))
        logger.info("Target line ending format: %s", target.label)
        logger.info("Mode: %s", "check" if args.check else "convert")

        start_time: float = time.time()

        files: List[str] = find_files(root_dir, file_patterns, ignore_dirs)

        if not files:
            logger.warning("No matching files found.")
            return 0

        logger.info("Found %d files to process.", len(files))

        cache = AnalysisCache()
        processed_count: int = process_files_parallel(
            files,
            target,
            check_only=args.check,
            cache=cache,
            max_workers=args.workers,
        )

        for label, count in sorted(summarize_labels(cache).items()):
            logger.info("  %-8s %d file%s", label, count, "s" if count != 1 else "")

        time_str = format_duration(time.time() - start_time)

        if args.check:
            logger.info(
                "Done! %d of %d files need conversion to %s (%s).",
                processed_count,
                len(files),
                target.label,
                time_str,
            )
            return 1 if processed_count else 0

        logger.info(
            "Done! Converted %d of %d files in %s.",
            processed_count,
            len(files),
            time_str,
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 130
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("An unexpected error occurred: %s", str(e))
        if logger.level <= logging.DEBUG:
            import traceback  # pylint: disable=import-outside-toplevel

            logger.debug("Traceback: %s", traceback.format_exc())
        return 1


if __name__ == "__main__":
    sys.exit(main())
