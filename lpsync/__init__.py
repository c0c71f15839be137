"""
lpsync - Competency framework import

Loads a competency framework (tree of competencies, grading scales,
automation rules and related links) from a CSV or XLSX export into the
competency store.

Modules:
    core        - Shared services (db, config, logging, settings, output)
    imports     - Tabular reader, column mapping, row records
    competency  - Tree building, scales, rules, persistence and the importer
    cli         - Typer command line entry point
"""

__version__ = "0.1.0"
