"""Standalone job entry points for the SCRA runner."""
