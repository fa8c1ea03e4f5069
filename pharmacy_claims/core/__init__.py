"""Shared enumerations and constants."""
