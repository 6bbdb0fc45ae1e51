"""
Local Directory Crawler - Cross-platform compatible (Windows, macOS, Linux)

Files are returned in a stable order (directories and files walked sorted by
name) so the same tree always yields the same file indices.
"""

import os
import fnmatch
from pathlib import Path

import pathspec

from .errors import InputValidationError


def _matches_any(patterns, *candidates):
    return any(
        fnmatch.fnmatch(candidate, pattern)
        for pattern in patterns
        for candidate in candidates
    )


def _report(processed, total, relpath, status):
    if total > 0:
        percentage = int((processed / total) * 100)
        print(f"\033[92mProgress: {processed}/{total} ({percentage}%) {relpath} [{status}]\033[0m")


def crawl_local_files(
    directory,
    include_patterns=None,
    exclude_patterns=None,
    max_file_size=None,
    use_relative_paths=True,
    max_file_count=None,
):
    """
    Crawl files in a local directory with cross-platform support.

    Args:
        directory (str): Path to local directory
        include_patterns (set): File patterns to include (e.g. {"*.py", "*.js"})
        exclude_patterns (set): File patterns to exclude (e.g. {"tests/*"})
        max_file_size (int): Maximum file size in bytes
        use_relative_paths (bool): Whether to use paths relative to directory
        max_file_count (int): Stop once this many files have been read

    Returns:
        dict: {"files": {filepath: content}} in walk order
    """
    if not directory:
        raise InputValidationError("Repository path is required")

    directory = Path(directory).resolve()
    if not directory.is_dir():
        raise ValueError(f"Directory does not exist: {directory}")

    files_dict = {}

    # --- Load .gitignore ---
    gitignore_path = directory / ".gitignore"
    gitignore_spec = None
    if gitignore_path.exists():
        try:
            with open(gitignore_path, "r", encoding="utf-8-sig") as f:
                gitignore_patterns = f.readlines()
            gitignore_spec = pathspec.PathSpec.from_lines("gitwildmatch", gitignore_patterns)
            print(f"Loaded .gitignore patterns from {gitignore_path}")
        except (OSError, UnicodeDecodeError) as e:
            print(f"Warning: Could not read .gitignore file {gitignore_path}: {e}")

    all_files = []
    for root, dirs, files in os.walk(directory):
        root_path = Path(root)

        # Filter directories using .gitignore and exclude_patterns early
        kept_dirs = []
        for d in sorted(dirs):
            dirpath_rel = str((root_path / d).relative_to(directory)).replace(os.sep, '/')
            if gitignore_spec and gitignore_spec.match_file(dirpath_rel + '/'):
                continue
            if exclude_patterns and _matches_any(exclude_patterns, dirpath_rel, d):
                continue
            kept_dirs.append(d)
        # os.walk follows the in-place edited list
        dirs[:] = kept_dirs

        for filename in sorted(files):
            all_files.append(root_path / filename)

    total_files = len(all_files)
    processed_files = 0

    for filepath in all_files:
        if max_file_count and len(files_dict) >= max_file_count:
            print(f"Reached max file count ({max_file_count}); skipping remaining files.")
            break

        relpath = str(filepath.relative_to(directory))
        relpath_normalized = relpath.replace(os.sep, '/')
        key = relpath_normalized if use_relative_paths else str(filepath)
        processed_files += 1

        excluded = bool(gitignore_spec and gitignore_spec.match_file(relpath_normalized))
        if not excluded and exclude_patterns:
            excluded = _matches_any(exclude_patterns, relpath_normalized, relpath)

        included = True
        if include_patterns:
            included = _matches_any(include_patterns, relpath_normalized, filepath.name)

        if not included or excluded:
            _report(processed_files, total_files, relpath, "skipped (excluded)")
            continue

        if max_file_size and filepath.stat().st_size > max_file_size:
            _report(processed_files, total_files, relpath, "skipped (size limit)")
            continue

        try:
            with open(filepath, "r", encoding="utf-8-sig") as f:
                files_dict[key] = f.read()
            status = "processed"
        except (OSError, UnicodeDecodeError) as e:
            print(f"Warning: Could not read file {filepath}: {e}")
            status = "skipped (read error)"

        _report(processed_files, total_files, relpath, status)

    return {"files": files_dict}


if __name__ == "__main__":
    import sys

    test_dir = sys.argv[1] if len(sys.argv) > 1 else "."

    print(f"--- Crawling directory: {test_dir} ---")
    files_data = crawl_local_files(
        test_dir,
        include_patterns={"*.py", "*.md"},
        exclude_patterns={
            "*.pyc",
            "__pycache__/*",
            ".venv/*",
            ".git/*",
        },
    )
    print(f"\nFound {len(files_data['files'])} files:")
    for path in files_data["files"]:
        print(f"  {path}")
