"""
Favsync Database Models
SQLAlchemy ORM models for the destination store and the scraper's source table.

All datetime columns use DateTime(timezone=True) for proper UTC handling.
Use utc_now() from favsync.core.utc for all timestamp defaults.
"""

import uuid
from datetime import datetime
from typing import Any, Optional
from sqlalchemy import JSON, String, Text, Integer, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from favsync.core.database import Base, SourceBase
from favsync.core.utc import utc_now


# Type alias for timezone-aware DateTime columns
DateTimeTZ = DateTime(timezone=True)

# Fixed primary key of the single sync metadata row
SYNC_METADATA_ID = "00000000-0000-0000-0000-000000000001"


def new_uuid() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Destination Store
# =============================================================================

class PjnFavorito(Base):
    """
    A case tracked by the app, derived from the scraper's record.

    Every column except the user-authored ones (notas, notas_updated_at) is
    owned by the sync engine and rewritten on each run.
    """
    __tablename__ = "pjn_favoritos"
    __table_args__ = (
        UniqueConstraint("jurisdiccion", "numero", "anio", name="uq_pjn_favoritos_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    # Composite identity: numero is stored zero-padded to 6 digits
    jurisdiccion: Mapped[str] = mapped_column(String(10), index=True)
    numero: Mapped[str] = mapped_column(String(20))
    anio: Mapped[int] = mapped_column(Integer)

    # Engine-owned
    caratula: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    juzgado: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    fecha_ultima_carga: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # DD/MM/YYYY
    fecha_ultima_carga_ts: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    observaciones: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)

    # User-authored
    notas: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notas_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)

    def __repr__(self) -> str:
        return f"<PjnFavorito {self.jurisdiccion} {self.numero}/{self.anio}>"


# Columns the sync engine may write. Anything else is off limits.
ENGINE_OWNED_COLUMNS = (
    "caratula",
    "juzgado",
    "fecha_ultima_carga",
    "fecha_ultima_carga_ts",
    "observaciones",
    "source_url",
    "updated_at",
)

USER_AUTHORED_COLUMNS = ("notas", "notas_updated_at")


class SyncMetadata(Base):
    """Single-row table recording when the last sync finished."""
    __tablename__ = "pjn_sync_metadata"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=SYNC_METADATA_ID)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)


# =============================================================================
# Source Store (written by the scraper)
# =============================================================================

class SourceCase(SourceBase):
    """
    The scraper's case row. Read-only from this app.
    `movimientos` is a JSON array whose entries have no fixed schema.
    """
    __tablename__ = "cases"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    expediente: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    caratula: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dependencia: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ult_act: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    situacion: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    movimientos: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    removido: Mapped[bool] = mapped_column(Boolean, default=False)
