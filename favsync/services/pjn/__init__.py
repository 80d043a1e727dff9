"""
PJN Case Synchronization Engine
===============================

Reconciles the scraper's case records into pjn_favoritos and derives
procedural-stage and aging signals from each case's movement log.

Architecture:
- keys: identifier parsing, padding-tolerant key sets
- normalizers: last-update dates and court names
- movements: movement log variants and observation extraction
- classifier: rule-table driven expert-evidence stage detection
- aging: GREEN / AMBER / RED semaphore over days or hours
- reconciliation: scan, batched upsert, tombstone-aware deletion
- stores: ports and SQLAlchemy adapters for both databases
- dedupe: one-time cleanup of legacy padded/bare duplicates

Usage:
    from favsync.services.pjn import sync_favoritos

    summary = await sync_favoritos()
    print(summary.to_dict())
"""

from .aging import AgingResult, AgingThresholds, AgingUnit, SemaforoColor, compute_aging
from .classifier import (
    RuleTable,
    StageMatch,
    classify_movements,
    classify_text,
    get_rule_table,
    has_prueba_pericia,
    load_rule_table,
)
from .errors import PjnSyncError, RuleTableError, SyncConfigurationError, SyncInProgressError
from .keys import CanonicalKey, KeySet, normalize, parse_expediente, same_identity
from .models import FavoritePayload, SourceCaseRecord, SyncSummary
from .movements import extract_observaciones, parse_movements
from .normalizers import NormalizedDate, normalize_date, normalize_juzgado
from .reconciliation import reconcile, scan_source, sync_favoritos

__all__ = [
    "AgingResult",
    "AgingThresholds",
    "AgingUnit",
    "CanonicalKey",
    "FavoritePayload",
    "KeySet",
    "NormalizedDate",
    "PjnSyncError",
    "RuleTable",
    "RuleTableError",
    "SemaforoColor",
    "SourceCaseRecord",
    "StageMatch",
    "SyncConfigurationError",
    "SyncInProgressError",
    "SyncSummary",
    "classify_movements",
    "classify_text",
    "compute_aging",
    "extract_observaciones",
    "get_rule_table",
    "has_prueba_pericia",
    "load_rule_table",
    "normalize",
    "normalize_date",
    "normalize_juzgado",
    "parse_expediente",
    "parse_movements",
    "reconcile",
    "same_identity",
    "scan_source",
    "sync_favoritos",
]
