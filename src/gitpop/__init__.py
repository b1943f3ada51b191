"""
Top-level package for gitpop.

gitpop lets a user pick a subset of a Git working tree's changes, have a
commit message written by an AI provider from the diff of that subset,
and commit exactly those files. The command line entry point lives in
``gitpop.cli``.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
