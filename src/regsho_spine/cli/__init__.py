"""
CLI layer for regsho-spine.

Provides a Typer application whose commands delegate to
``ShortVolumeService``.  This package handles only terminal transport:
argument parsing, coloured output, and table formatting.  A cron job or
scheduler daemon invokes ``regsho-spine daily``.

Entry point::

    regsho-spine --help
"""

from regsho_spine.cli.app import app

__all__ = ["app"]
