"""Command line interface for the SCRA runner."""
