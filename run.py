#!/usr/bin/env python3
"""
Codebase Tutorial Pipeline - Main Entry Point
Cross-platform compatible (Windows, macOS, Linux)

Usage:
    python run.py --dir /path/to/code
    python run.py --dir . --output ./tutorials
"""

import sys
import time
import argparse
from pathlib import Path

from dotenv import load_dotenv

from flow import create_shared_store, create_tutorial_flow
from constants.defaults import (
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_MAX_FILE_COUNT,
    DEFAULT_MAX_ABSTRACTIONS,
)
from constants.paths import DEFAULT_OUTPUT_DIR
from utils.call_llm import get_llm_provider
from utils.errors import InputValidationError, PipelineFailed


def build_parser():
    parser = argparse.ArgumentParser(
        description="Generate a beginner-friendly tutorial from a local codebase.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run.py --dir /path/to/project
  python run.py --dir . --output ./tutorials
  python run.py --dir ./src --include "*.py" --exclude "*test*"
  python run.py --dir . --max-files 50 --max-abstractions 6
        """
    )

    parser.add_argument(
        "--dir",
        required=True,
        help="Path to local directory to analyze."
    )
    parser.add_argument(
        "-n", "--name",
        help="Project name (optional, derived from directory if omitted)."
    )
    parser.add_argument(
        "-o", "--output",
        default=DEFAULT_OUTPUT_DIR,
        help=f"Output directory for the tutorial (default: ./{DEFAULT_OUTPUT_DIR})."
    )
    parser.add_argument(
        "-i", "--include",
        nargs="+",
        help="Include file patterns (e.g., '*.py' '*.js'). Defaults to common code files."
    )
    parser.add_argument(
        "-e", "--exclude",
        nargs="+",
        help="Exclude file patterns (e.g., 'tests/*' 'docs/*'). Defaults to test/build directories."
    )
    parser.add_argument(
        "-s", "--max-size",
        type=int,
        default=DEFAULT_MAX_FILE_SIZE,
        help=f"Maximum file size in bytes (default: {DEFAULT_MAX_FILE_SIZE}, 1MB)."
    )
    parser.add_argument(
        "--max-files",
        type=int,
        default=DEFAULT_MAX_FILE_COUNT,
        help=f"Maximum number of files to read (default: {DEFAULT_MAX_FILE_COUNT})."
    )
    parser.add_argument(
        "--max-abstractions",
        type=int,
        default=DEFAULT_MAX_ABSTRACTIONS,
        help=f"Maximum number of abstractions to identify (default: {DEFAULT_MAX_ABSTRACTIONS})."
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Disable LLM response caching (default: caching enabled)."
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=1,
        help="Attempts per LLM stage before the run fails (default: 1, no retry)."
    )
    parser.add_argument(
        "--wait",
        type=int,
        default=0,
        help="Seconds to wait between attempts (default: 0)."
    )
    return parser


def main(argv=None):
    load_dotenv()
    args = build_parser().parse_args(argv)

    dir_path = Path(args.dir).resolve()
    if not dir_path.is_dir():
        print(f"Error: Directory does not exist: {args.dir}")
        return 1

    # Fail fast before any file is read if no backend is configured
    try:
        provider = get_llm_provider()
    except InputValidationError as e:
        print(f"LLM Provider: Not configured - {e}")
        return 1

    shared = create_shared_store(
        local_dir=str(dir_path),
        output_dir=args.output,
        project_name=args.name,
        include_patterns=args.include,
        exclude_patterns=args.exclude,
        max_file_size=args.max_size,
        max_file_count=args.max_files,
        max_abstraction_num=args.max_abstractions,
        use_cache=not args.no_cache,
    )

    print("=" * 60)
    print("Codebase Tutorial Pipeline")
    print("=" * 60)
    print(f"Directory: {dir_path}")
    print(f"LLM Provider: {provider}")
    print(f"LLM Caching: {'Disabled' if args.no_cache else 'Enabled'}")
    print(f"Output: {args.output}")
    print("=" * 60)

    start_time = time.time()

    tutorial_flow = create_tutorial_flow(max_retries=args.retries, wait=args.wait)
    try:
        tutorial_flow.run(shared)
    except PipelineFailed as e:
        print(f"\n{'=' * 60}")
        print(f"❌ Tutorial generation failed in stage '{e.stage}'")
        print(f"   {type(e.cause).__name__}: {e.cause}")
        print("   No files were written.")
        print(f"{'=' * 60}")
        return 1

    elapsed = time.time() - start_time
    if elapsed >= 60:
        time_str = f"{elapsed/60:.1f} minutes"
    else:
        time_str = f"{elapsed:.1f} seconds"

    print(f"\n{'=' * 60}")
    print(f"✅ Tutorial generated successfully!")
    print(f"   Output: {shared['final_output_dir']}")
    print(f"   Files: {len(shared['files_written'])}")
    print(f"   Time: {time_str}")
    print(f"{'=' * 60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
