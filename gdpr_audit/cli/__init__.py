"""CLI module for GDPR audits.

This package provides the command-line interface for auditing a single URL
and printing the resulting report as JSON.
"""

from .main import ExitCode, app

__all__ = [
    'ExitCode',
    'app',
]
