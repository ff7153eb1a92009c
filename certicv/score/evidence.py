"""
Evidence Binder
================

Binds every artifact of a verification run into one digest.

    digest = "0x" + SHA-256( canonical_json( EvidenceBundle ) )

Canonical JSON sorts keys at every level and uses fixed separators, so
the digest depends only on content, never on key insertion order.
Anyone holding the bundle can recompute the digest and compare it with
the one on the record (``verify``).
"""

from __future__ import annotations

import logging
from typing import Any, Union

from certicv.schemas.analysis import AnalysisFindings, FraudReport
from certicv.schemas.evidence import EvidenceBundle, EvidenceComponents
from certicv.schemas.verification import ClaimVerifications
from certicv.utils import compute_content_hash

logger = logging.getLogger("certicv.score.evidence")


class EvidenceBinder:
    """Deterministic serialization and hashing of evidence bundles."""

    def bind(
        self,
        document_digest: str,
        findings: AnalysisFindings,
        fraud_report: FraudReport,
        claim_verifications: ClaimVerifications,
    ) -> tuple[EvidenceBundle, str]:
        bundle = EvidenceBundle(
            document_digest=document_digest,
            findings=findings,
            fraud_report=fraud_report,
            claim_verifications=claim_verifications,
        )
        digest = self.digest(bundle)
        logger.debug(f"Evidence digest {digest[:18]}… for document {document_digest[:18]}…")
        return bundle, digest

    @staticmethod
    def digest(bundle: Union[EvidenceBundle, dict[str, Any]]) -> str:
        """Digest of a bundle, given as a model or as its plain-dict form."""
        if isinstance(bundle, EvidenceBundle):
            bundle = bundle.model_dump(mode="json")
        return compute_content_hash(bundle)

    def verify(self, bundle: Union[EvidenceBundle, dict[str, Any]], digest: str) -> bool:
        """True if ``bundle`` hashes to ``digest``."""
        if isinstance(bundle, dict):
            bundle = EvidenceBundle.model_validate(bundle)
        return self.digest(bundle) == digest

    def components(self, bundle: EvidenceBundle) -> EvidenceComponents:
        """Per-component digests of a bundle."""
        degree = bundle.claim_verifications.degree
        return EvidenceComponents(
            evidence_digest=self.digest(bundle),
            document_digest=bundle.document_digest,
            analysis_digest=compute_content_hash(bundle.findings.model_dump(mode="json")),
            fraud_report_digest=compute_content_hash(bundle.fraud_report.model_dump(mode="json")),
            degree_proof_digest=degree.proof_digest if degree else "",
        )
