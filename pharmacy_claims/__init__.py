"""Pharmacy claims submission, reversal and bulk loading service."""

__version__ = "1.0.0"
