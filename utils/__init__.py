"""
Codebase Tutorial Pipeline - Utils Package
"""

from .call_llm import call_llm, get_llm_provider
from .crawl_local_files import crawl_local_files
from .write_markdown_files import sanitize_filename, write_markdown_files

__all__ = [
    'call_llm',
    'get_llm_provider',
    'crawl_local_files',
    'sanitize_filename',
    'write_markdown_files',
]
