"""Line-scanning classifier for the SCRA status report.

The report carries an active-duty table whose rows read ``NA``/``No``
when the subject has no recorded service.  The heuristic:

* lines are scanned in order;
* the first line containing the start marker opens the table region, the
  next line containing the end marker closes it (marker lines themselves
  are not scanned, a header line carrying both markers opens and closes
  an empty region, and scanning stops at the first close);
* inside the region, any token with a word character that is not a
  placeholder makes the determination ``Yes``; otherwise it is ``No``.

This is a heuristic over extracted text, not a structural parse: if the
report layout drifts the classifier errs towards ``No``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from scra.models.results import ClassificationResult, Determination

if TYPE_CHECKING:
    from scra.settings.config import ClassifierSettings

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w")
_EDGE_PUNCT = ".,;:()[]{}\"'|"


def extract_text(document: bytes) -> str:
    """Return the plain text of every page of a PDF document."""
    import fitz  # PyMuPDF

    with fitz.open(stream=document, filetype="pdf") as doc:
        parts = [page.get_text("text") for page in doc]
    text = "\n".join(parts)
    logger.debug("Extracted %d characters from %d-byte document", len(text), len(document))
    return text


def _is_placeholder(token: str, placeholders: frozenset[str]) -> bool:
    cleaned = token.strip(_EDGE_PUNCT).lower()
    return cleaned in placeholders or not _WORD_RE.search(cleaned)


def classify_text(
    text: str,
    *,
    start_marker: str = "Start Date",
    end_marker: str = "Service Component",
    placeholders: Iterable[str] = ("NA", "N/A", "No"),
) -> Determination:
    """Apply the table-region heuristic to extracted report text."""
    placeholder_set = frozenset(p.lower() for p in placeholders)
    start = start_marker.lower()
    end = end_marker.lower()

    in_table = False
    for line in text.splitlines():
        lowered = line.lower()
        if not in_table:
            if start in lowered:
                if end in lowered[lowered.index(start) + len(start) :]:
                    break
                in_table = True
            continue
        if end in lowered:
            break
        for token in line.split():
            if not _is_placeholder(token, placeholder_set):
                logger.debug("Non-placeholder value in status table: %r", line.strip())
                return Determination.YES
    return Determination.NO


class DocumentClassifier:
    """Classify retrieved documents and name them by outcome."""

    def __init__(self, settings: ClassifierSettings) -> None:
        self.settings = settings

    def classify(
        self,
        document: bytes,
        *,
        correlation_id: str,
        first_name: str,
        last_name: str,
    ) -> ClassificationResult:
        """Extract, classify and pick the outcome-specific document name."""
        text = extract_text(document)
        determination = classify_text(
            text,
            start_marker=self.settings.table_start_marker,
            end_marker=self.settings.table_end_marker,
            placeholders=self.settings.placeholder_tokens,
        )
        logger.info("Determination for %s: %s", correlation_id or "<no correlation id>", determination.value)
        return ClassificationResult(
            correlation_id=correlation_id,
            determination=determination,
            document_name=self.document_name(determination, first_name=first_name, last_name=last_name),
        )

    def document_name(self, determination: Determination, *, first_name: str, last_name: str) -> str:
        """File name for the retrieved document under the outcome naming convention."""
        if determination is Determination.NO:
            return self.settings.negative_document_name
        name = self.settings.positive_document_template.format(first_name=first_name, last_name=last_name)
        return _safe_filename(name)


def _safe_filename(name: str) -> str:
    """Drop path separators and control characters from a generated file name."""
    return re.sub(r"[\\/\x00-\x1f]", "", name).strip()
