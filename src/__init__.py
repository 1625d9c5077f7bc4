# src/__init__.py — v1
"""iscadmin — administration toolkit for identity-governance tenants."""

from iscadmin.version import __version__

__all__ = ["__version__"]
