"""
Codebase Tutorial Pipeline - Constants Package

    defaults - file patterns, crawl limits, prompt context caps
    llm      - provider names, env vars, models, per-stage system instructions
    paths    - log, cache and output locations

Import from the submodule that owns a constant.
"""
