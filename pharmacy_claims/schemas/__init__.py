"""Pydantic request, response and bulk-load record schemas."""
