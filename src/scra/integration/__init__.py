"""Outbound integration with the back-office callback receiver."""

from scra.integration.callback import CallbackClient, build_payload, looks_like_html

__all__ = ["CallbackClient", "build_payload", "looks_like_html"]
