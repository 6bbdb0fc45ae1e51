"""
Write finished chapters to disk as numbered markdown files.
"""

import os
import re

from constants.paths import CHAPTER_FILE_EXTENSION
from .errors import InputValidationError

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize_filename(name: str) -> str:
    """Lowercase, map anything outside [a-z0-9] to '_', collapse runs, trim '_'."""
    name = _UNSAFE_CHARS.sub("_", name.lower())
    return _UNDERSCORE_RUNS.sub("_", name).strip("_")


def chapter_filename(number: int, title: str) -> str:
    """e.g. (1, "Node Abstraction!") -> "01_node_abstraction.md"."""
    return f"{number:02d}_{sanitize_filename(title)}{CHAPTER_FILE_EXTENSION}"


def write_markdown_files(output_dir: str, chapters) -> list[str]:
    """
    Write each chapter to `output_dir`, creating the directory if needed.

    Args:
        output_dir: Target directory
        chapters: Ordered Chapter records

    Returns:
        list[str]: Paths written, in chapter order
    """
    if not output_dir:
        raise InputValidationError("output_dir is required")

    os.makedirs(output_dir, exist_ok=True)

    files_written = []
    for chapter in chapters:
        filepath = os.path.join(output_dir, chapter_filename(chapter.number, chapter.title))
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(chapter.content)
        files_written.append(filepath)
    return files_written
