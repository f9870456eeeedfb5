"""Determination of the SCRA status report's outcome.

Extracts text from the retrieved PDF and scans its status table for any
value that is not a placeholder.
"""

from scra.classification.classifier import DocumentClassifier, classify_text, extract_text

__all__ = ["DocumentClassifier", "classify_text", "extract_text"]
