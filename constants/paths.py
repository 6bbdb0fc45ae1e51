"""
================================================================================
PATH AND FILE CONSTANTS
================================================================================
This file contains all constants related to paths, directories, and file names.
This is the single source of truth for file system configuration.
================================================================================
"""

# =============================================================================
# DIRECTORY NAMES
# =============================================================================
LOGS_DIR_NAME = "logs"
CACHE_FILE_NAME = "llm_cache.json"
DEFAULT_OUTPUT_DIR = "tutorial"

# =============================================================================
# OUTPUT FILES
# =============================================================================
INDEX_FILE_NAME = "index.md"
CHAPTER_FILE_EXTENSION = ".md"

# =============================================================================
# LOG FILE FORMAT
# =============================================================================
LOG_FILE_PREFIX = "llm_calls_"
LOG_DATE_FORMAT = "%Y%m%d"
