"""
PJN Sync Data Models
====================

Plain data structures passed between the sync engine and its store
adapters. ORM models live in favsync.models.models; these never touch
a session.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Optional

from favsync.services.pjn.keys import CanonicalKey, KeySet


@dataclass(frozen=True)
class SourceCaseRecord:
    """A case as written by the scraper."""
    key: Optional[str] = None
    expediente: Optional[str] = None
    caratula: Optional[str] = None
    dependencia: Optional[str] = None
    ult_act: Optional[str] = None
    situacion: Optional[str] = None
    movimientos: Any = None
    removido: bool = False

    @property
    def identifier(self) -> Optional[str]:
        return self.key or self.expediente

    @classmethod
    def from_mapping(cls, data: dict) -> "SourceCaseRecord":
        return cls(
            key=data.get("key"),
            expediente=data.get("expediente"),
            caratula=data.get("caratula"),
            dependencia=data.get("dependencia"),
            ult_act=data.get("ult_act"),
            situacion=data.get("situacion"),
            movimientos=data.get("movimientos"),
            removido=data.get("removido") is True,
        )


@dataclass(frozen=True)
class FavoritePayload:
    """
    Engine-owned fields of a pjn_favoritos row.
    User-authored columns are deliberately absent.
    """
    jurisdiccion: str
    numero: str
    anio: int
    caratula: Optional[str]
    juzgado: Optional[str]
    fecha_ultima_carga: Optional[str]
    fecha_ultima_carga_ts: Optional[datetime]
    observaciones: Optional[str]
    source_url: Optional[str]
    updated_at: datetime

    @property
    def key(self) -> CanonicalKey:
        return CanonicalKey.from_parts(self.jurisdiccion, self.numero, self.anio)

    def to_row(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DestinationKeyRow:
    """Identity columns of an existing pjn_favoritos row."""
    id: str
    jurisdiccion: str
    numero: str
    anio: int

    @property
    def key(self) -> CanonicalKey:
        return CanonicalKey.from_parts(self.jurisdiccion, self.numero, self.anio)


@dataclass
class ScanResult:
    """Output of the scan step, threaded explicitly into upsert and delete."""
    payloads: list[FavoritePayload] = field(default_factory=list)
    live_keys: KeySet = field(default_factory=KeySet)
    removed_keys: KeySet = field(default_factory=KeySet)
    total_source: int = 0
    skipped: int = 0
    tombstoned: int = 0


@dataclass
class SyncSummary:
    """What a sync run did. Partial failures show up in the failed counters."""
    success: bool = True
    message: str = "Sincronización completada"
    total_source: int = 0
    total_upsert_candidates: int = 0
    skipped: int = 0
    upserted: int = 0
    deleted: int = 0
    tombstoned: int = 0
    failed_upsert_batches: int = 0
    failed_delete_batches: int = 0
    warning: Optional[str] = None
    dry_run: bool = False

    @property
    def failed_batches(self) -> int:
        return self.failed_upsert_batches + self.failed_delete_batches

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "message": self.message,
            "skipped": self.skipped,
            "upserted": self.upserted,
            "deleted": self.deleted,
            "tombstoned": self.tombstoned,
            "totalSource": self.total_source,
            "totalUpsertCandidates": self.total_upsert_candidates,
            "failedBatches": self.failed_batches,
        }
        if self.warning:
            data["warning"] = self.warning
        if self.dry_run:
            data["dryRun"] = True
        return data
