"""
versionsweep - Tenant-wide file version cleanup and reporting.

A CLI tool that submits version batch-delete and expiration-report jobs
to every site of a tenant, polls them to a terminal state, and exports
one outcome row per site.
"""

__version__ = "0.1.0"
__app_name__ = "versionsweep"
