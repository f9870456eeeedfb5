"""SCRA Runner: drives the SCRA single-record form and reports the outcome to a callback."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("scra-runner")
except Exception:
    __version__ = "0.0.0"
