"""Browser automation modules (Playwright).

``session`` owns the browser process, ``navigation`` retries and verifies
page loads, ``forms`` drives the remote form, ``network_log`` and
``checkpoint`` capture diagnostics into the run directory.
"""
