"""
CertiCV Utilities
==================

Shared helper functions for logging, identifiers, hashing,
and text processing used across all modules.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any, Iterable


# ── Identifiers ────────────────────────────────────────────────────

def generate_verification_id() -> str:
    """
    Generate a unique verification identifier.

    Format: ver_{uuid4 hex}
    Example: ver_3f2a9c0d4b1e4f6a8c7d2e1b0a9f8e7d
    """
    return f"ver_{uuid.uuid4().hex}"


# ── Hashing ────────────────────────────────────────────────────────

def sha256_hex(data: str | bytes, prefix: str = "0x") -> str:
    """SHA-256 of ``data`` as a prefixed, fixed-length (64 hex chars) digest."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return prefix + hashlib.sha256(data).hexdigest()


def canonical_json(obj: Any) -> str:
    """
    Serialize ``obj`` to canonical JSON.

    Keys are sorted at every level and separators carry no whitespace,
    so two dicts with the same content always serialize identically
    regardless of key insertion order.
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compute_content_hash(obj: Any) -> str:
    """
    Compute a content-addressable hash for any JSON-serializable object.

    Used for the evidence digest, registry proof digests and the
    per-component digests exposed on a record.
    """
    return sha256_hex(canonical_json(obj))


# ── Logging ────────────────────────────────────────────────────────

def setup_logging(
    level: str = "INFO",
    format_style: str = "text",
    run_id: str | None = None
) -> logging.Logger:
    """
    Configure structured logging for CertiCV.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format_style: "json" for structured logs, "text" for human-readable.
        run_id: Optional run ID to include in all log entries.

    Returns:
        Configured Logger instance.
    """
    logger = logging.getLogger("certicv")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)

    if format_style == "json":
        class JsonFormatter(logging.Formatter):
            def format(self, record):
                log_entry = {
                    "timestamp": self.formatTime(record),
                    "level": record.levelname,
                    "logger": record.name,
                    "message": record.getMessage(),
                }
                if run_id:
                    log_entry["run_id"] = run_id
                if record.exc_info:
                    log_entry["exception"] = self.formatException(record.exc_info)
                return json.dumps(log_entry)

        handler.setFormatter(JsonFormatter())
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        if run_id:
            fmt = f"%(asctime)s | %(levelname)-8s | {run_id} | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    return logger


# ── Text Processing Helpers ────────────────────────────────────────

def dedupe(items: Iterable[str]) -> list[str]:
    """Drop exact duplicates and blanks, keeping the first occurrence (case-preserving)."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        item = item.strip()
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def truncate_chars(text: str, budget: int, marker: str = "[... {n} characters truncated ...]") -> str:
    """
    Truncate text to at most ``budget`` characters of content.

    The cut is moved back to the last line break inside the budget when
    one exists, and an explicit marker reporting the dropped length is
    appended so truncation is never silent.
    """
    if len(text) <= budget:
        return text
    cut = text.rfind("\n", 0, budget)
    if cut <= 0:
        cut = budget
    dropped = len(text) - cut
    return text[:cut].rstrip() + "\n" + marker.format(n=dropped)


def normalize_whitespace(text: str) -> str:
    """Collapse multiple whitespace characters into single spaces and strip."""
    return " ".join(text.split())


# ── File I/O Helpers ───────────────────────────────────────────────

def save_json(data: Any, path: str | Path, indent: int = 2) -> Path:
    """Save data as formatted JSON file with UTF-8 encoding."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
    return path


def load_json(path: str | Path) -> Any:
    """Load a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
