"""
CLI layer for scopeflags.

A Typer application whose commands build a
:class:`~scopeflags.service.FeatureFlagService` per invocation and render
its results.  Resolution logic lives in the service; this package only
handles argument parsing and terminal output.

Entry point::

    scopeflags --help
"""

from scopeflags.cli.app import app

__all__ = ["app"]
