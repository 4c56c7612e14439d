"""Offboarding case management client."""

__version__ = "0.18.00"
