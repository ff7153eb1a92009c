"""
CertiCV: Verifiable Trust Scoring for Candidate Documents
===========================================================

CertiCV ingests a candidate-submitted document (résumé / CV), extracts
its claims, cross-checks them against fraud heuristics, an analysis
model and external registries, and reconciles everything into a bounded
trust score plus a deterministic evidence digest.

Architecture Overview:
    Document → Extract → {Analyze ‖ Verify ‖ Fraud ‖ Timestamp} → Score → Bind

Modules:
    - extract:   Document decoding and pattern-based entity extraction
    - analyze:   Timeline validation, fraud heuristics, consistency analysis
    - oracles:   Degree registry and trusted timestamp capabilities
    - score:     Score aggregation and evidence binding
    - pipeline:  Verification orchestrator and record state machine
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
