"""Command-line interface package for the license compliance tooling."""

from .app import (
    EvaluationReport,
    build_parser,
    create_engine,
    main,
    render_table,
    run,
)

__all__ = [
    "EvaluationReport",
    "build_parser",
    "create_engine",
    "main",
    "render_table",
    "run",
]
