"""
Signature reconciliation against document versions.

A signature counts only while its ``document_version`` equals the document's
current ``versions``. Editing a document bumps the version and silently
invalidates older signatures; the rows stay in the log but drop out of the
attached view here.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping, Sequence

from app.legalpad.modules.documents.models import LegalpadDocument, LegalpadDocumentSignature

logger = logging.getLogger(__name__)


def partition_signatures(
    document: LegalpadDocument,
    signatures: Iterable[LegalpadDocumentSignature],
) -> tuple[list[LegalpadDocumentSignature], list[LegalpadDocumentSignature]]:
    valid: list[LegalpadDocumentSignature] = []
    stale: list[LegalpadDocumentSignature] = []
    for sig in signatures:
        (valid if sig.document_version == document.versions else stale).append(sig)
    return valid, stale


def valid_signer_phids(document: LegalpadDocument, signatures: Iterable[LegalpadDocumentSignature]) -> set[str]:
    valid, _stale = partition_signatures(document, signatures)
    return {sig.signer_phid for sig in valid}


def missing_signers(required: Collection[str], valid: Collection[str]) -> set[str]:
    return set(required) - set(valid)


def reconcile_page(
    documents: Sequence[LegalpadDocument],
    signatures_by_document: Mapping[str, Sequence[LegalpadDocumentSignature]],
    *,
    required_signer_phids: Collection[str] | None = None,
    attach: bool = True,
) -> list[LegalpadDocument]:
    """
    Return the documents that satisfy the required signer set, in page order.

    With ``attach`` the valid signatures of each kept document are attached to
    it. The input sequence is never modified; the result may be shorter than
    the page that was fetched and is not refilled.
    """
    required = set(required_signer_phids or ())
    kept: list[LegalpadDocument] = []
    stale_count = 0
    for doc in documents:
        valid, stale = partition_signatures(doc, signatures_by_document.get(doc.phid, ()))
        stale_count += len(stale)
        if required:
            missing = missing_signers(required, {sig.signer_phid for sig in valid})
            if missing:
                logger.debug("Dropping %s: missing signatures from %s", doc.phid, sorted(missing))
                continue
        if attach:
            doc.attach_signatures(valid)
        kept.append(doc)
    if stale_count:
        logger.debug("Discarded %d stale signatures across %d documents", stale_count, len(documents))
    return kept
