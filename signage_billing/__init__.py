"""Entitlement, plan catalog and promotion engine for the signage platform."""

__version__ = "1.0.0"
