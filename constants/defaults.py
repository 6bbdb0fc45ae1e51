"""
================================================================================
DEFAULT VALUES CONSTANTS
================================================================================
This file contains all default values for command-line arguments, file patterns
and prompt context limits. This is the single source of truth for application
defaults.
================================================================================
"""

# =============================================================================
# DEFAULT ARGUMENT VALUES
# =============================================================================
DEFAULT_MAX_FILE_SIZE = 1048576  # Maximum file size in bytes (1MB)
DEFAULT_MAX_FILE_COUNT = 100     # Maximum number of files read per run
DEFAULT_MAX_ABSTRACTIONS = 10    # Maximum number of abstractions to identify
DEFAULT_PROJECT_NAME = "Project"  # Used when the repo path has no usable name

# =============================================================================
# FILE PATTERNS
# =============================================================================
DEFAULT_INCLUDE_PATTERNS = {
    "*.go", "*.py", "*.js", "*.jsx", "*.ts", "*.tsx", "*.java", "*.rb",
    "*.pyi", "*.c", "*.cs", "*.cc", "*.cpp", "*.h", "*.md", "*.rst",
    "Dockerfile", "Makefile", "*.yaml", "*.yml",
}

DEFAULT_EXCLUDE_PATTERNS = {
    "*_test.go",
    "*.min.js",
    "vendor/*",
    "*venv/*",
    "*.venv/*",
    "*test*",
    "*tests/*",
    "*dist/*",
    "*build/*",
    ".git/*", ".github/*", ".next/*", ".vscode/*",
    "*node_modules/*",
    "*__pycache__/*",
    "*.log",
}

# =============================================================================
# PROMPT CONTEXT LIMITS (characters)
# =============================================================================
ABSTRACTION_FILE_CHAR_LIMIT = 5000   # Per-file content shown when finding abstractions
RELATIONSHIP_SAMPLE_CHAR_LIMIT = 500  # Per-file sample shown when mapping relationships
CHAPTER_FILE_CHAR_LIMIT = 8000       # Per-file content shown when writing a chapter
CHAPTER_SUMMARY_CHAR_LIMIT = 200     # Prior-chapter summary carried to later chapters

# =============================================================================
# INDEX DIAGRAM
# =============================================================================
MERMAID_MAX_LABEL_LEN = 30
