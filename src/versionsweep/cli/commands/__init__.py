"""CLI command modules."""

from . import run, sites, tenant

__all__ = [
    "run",
    "sites",
    "tenant",
]
