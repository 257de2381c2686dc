"""Remaining-allowance monitor for Orb-billed subscriptions."""

__version__ = "0.1.0"
