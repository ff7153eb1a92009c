"""
CertiCV CLI
============

Command-line interface for running a verification and inspecting
its evidence.

Usage:
    certicv verify resume.pdf --candidate cand-42 --output record.json
    certicv evidence record.json
    certicv export-schemas --output-dir schemas
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from certicv.config import get_config
from certicv.utils import load_json, save_json, setup_logging


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="certicv",
        description="CertiCV: evidence-bound résumé verification",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML")
    parser.add_argument("--verbose", "-v", action="store_true")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ── verify ──────────────────────────────────────────────────
    verify_parser = subparsers.add_parser("verify", help="Verify a candidate document")
    verify_parser.add_argument("file", help="Document to verify (.pdf or text)")
    verify_parser.add_argument("--candidate", required=True, help="Candidate identifier")
    verify_parser.add_argument("--media-type", default=None, help="Override the media type guessed from the file suffix")
    verify_parser.add_argument("--output", type=str, default=None, help="Output JSON path for the record")

    # ── evidence ────────────────────────────────────────────────
    evidence_parser = subparsers.add_parser("evidence", help="Recompute a record's evidence digest")
    evidence_parser.add_argument("record", help="Record JSON written by 'verify --output'")

    # ── export-schemas ──────────────────────────────────────────
    schema_parser = subparsers.add_parser("export-schemas", help="Export JSON schemas")
    schema_parser.add_argument("--output-dir", default="schemas")

    args = parser.parse_args(argv)

    config = get_config(args.config)
    setup_logging(
        level="DEBUG" if args.verbose else config.log_level,
        format_style=config.log_format,
    )

    if args.command == "verify":
        cmd_verify(args)
    elif args.command == "evidence":
        cmd_evidence(args)
    elif args.command == "export-schemas":
        cmd_export_schemas(args)
    else:
        parser.print_help()
        sys.exit(1)


def _guess_media_type(path: Path) -> str:
    from certicv.extract.document import PDF, PLAIN_TEXT
    return PDF if path.suffix.lower() == ".pdf" else PLAIN_TEXT


def cmd_verify(args):
    """Run the pipeline on one document."""
    from certicv.errors import InputError
    from certicv.pipeline import VerificationPipeline

    path = Path(args.file)
    if not path.is_file():
        print(f"Error: {path} not found")
        sys.exit(1)

    pipeline = VerificationPipeline.from_config(args.config)
    media_type = args.media_type or _guess_media_type(path)

    try:
        record = asyncio.run(pipeline.verify(path.read_bytes(), media_type, args.candidate))
    except InputError as e:
        print(f"Error: {e}")
        sys.exit(2)

    print(f"\nVerification: {record.verification_id}")
    print(f"Status: {record.status.value}")
    if record.error:
        print(f"Error ({record.error.stage}): {record.error.type}: {record.error.message}")
    else:
        view = record.score_view(pipeline.aggregator.threshold)
        print(f"Score: {view['score']}/100 → {view['status']} (threshold {view['threshold']})")
        for band, points in view["breakdown"].items():
            print(f"  {band:<26} {points}")
        print(f"\n  Analysis: {record.findings.source_used.value}")
        print(f"  Risk: {record.fraud_report.risk_level.value} (overall {record.fraud_report.overall_risk.value})")
        for indicator in record.flags.fraud_indicators:
            print(f"  ❌ {indicator}")
        for warning in record.flags.warnings:
            print(f"  ⚠️  {warning}")
        print(f"\n  Evidence: {record.evidence_digest}")
    print(f"  Latency: {record.timings.get('total_ms', 0):.0f}ms")

    if args.output:
        save_json(record.model_dump(mode="json"), args.output)
        print(f"\n  Record saved to {args.output}")

    if record.error:
        sys.exit(1)


def cmd_evidence(args):
    """Rebuild the evidence bundle from a saved record and compare digests."""
    from certicv.schemas import EvidenceBundle, VerificationRecord
    from certicv.score.evidence import EvidenceBinder

    record = VerificationRecord.model_validate(load_json(args.record))

    if record.findings is None or record.fraud_report is None or not record.evidence_digest:
        print(f"Record {record.verification_id} has no evidence ({record.status.value})")
        sys.exit(1)

    binder = EvidenceBinder()
    bundle = EvidenceBundle(
        document_digest=record.document_digest,
        findings=record.findings,
        fraud_report=record.fraud_report,
        claim_verifications=record.claim_verifications,
    )
    components = binder.components(bundle)

    print(f"\nRecord: {record.verification_id}")
    print(f"  Document:    {components.document_digest}")
    print(f"  Analysis:    {components.analysis_digest}")
    print(f"  Fraud:       {components.fraud_report_digest}")
    if components.degree_proof_digest:
        print(f"  Degree:      {components.degree_proof_digest}")
    print(f"  Evidence:    {components.evidence_digest}")
    print(f"  Stored:      {record.evidence_digest}")

    if binder.verify(bundle, record.evidence_digest):
        print("\nEvidence digest MATCHES ✅")
    else:
        print("\nEvidence digest MISMATCH ❌")
        sys.exit(1)


def cmd_export_schemas(args):
    """Export JSON schemas for all data contracts."""
    from certicv.schemas import (
        AnalysisFindings,
        ClaimVerificationResult,
        EvidenceBundle,
        ExtractedClaims,
        FraudReport,
        TimestampProof,
        VerificationRecord,
    )

    models = {
        "extracted_claims": ExtractedClaims,
        "analysis_findings": AnalysisFindings,
        "fraud_report": FraudReport,
        "claim_verification_result": ClaimVerificationResult,
        "timestamp_proof": TimestampProof,
        "evidence_bundle": EvidenceBundle,
        "verification_record": VerificationRecord,
    }

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    for name, model in models.items():
        path = output_dir / f"{name}.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(model.model_json_schema(), f, indent=2)
        print(f"Exported: {path}")

    print(f"\n{len(models)} schemas exported to {output_dir}/")


if __name__ == "__main__":
    main()
