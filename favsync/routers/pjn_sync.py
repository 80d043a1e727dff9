"""
PJN Sync API
HTTP trigger for the favoritos reconciliation plus read endpoints that
attach stage and semaphore signals to each case.
"""

import logging
import secrets
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from favsync.core.config import Settings, get_settings
from favsync.core.database import get_db_session, get_session_factory, get_source_session
from favsync.core.utc import to_utc, utc_now
from favsync.models.models import PjnFavorito, SourceCase
from favsync.services.pjn import (
    SyncConfigurationError,
    SyncInProgressError,
    classify_movements,
    get_rule_table,
    normalize_juzgado,
    parse_expediente,
    sync_favoritos,
)
from favsync.services.pjn.aging import (
    ORDER_COMPLETED_STATES,
    case_thresholds,
    orders_thresholds,
    pericia_thresholds,
)
from favsync.services.pjn.errors import RuleTableError
from favsync.services.pjn.normalizers import format_ddmmyyyy
from favsync.services.pjn.stores import SqlFavoritesStore

logger = logging.getLogger("favsync.api.pjn")

router = APIRouter(prefix="/api/pjn", tags=["PJN Sync"])


# =============================================================================
# Pydantic Models
# =============================================================================

class FavoritoResponse(BaseModel):
    id: str
    expediente: str
    jurisdiccion: str
    numero: str
    anio: int
    caratula: Optional[str]
    juzgado: Optional[str]
    fecha_ultima_carga: Optional[str]
    observaciones: Optional[str]
    notas: Optional[str]
    dias: Optional[int]
    semaforo: str


class PruebaPericiaResponse(BaseModel):
    expediente: str
    caratula: Optional[str]
    juzgado: Optional[str]
    fecha_ultima_carga: Optional[str]
    regla: str
    detalle: str
    dias: Optional[int]
    semaforo: str


class AgingResponse(BaseModel):
    elapsed: Optional[int]
    unit: str
    semaforo: str
    overdue: bool


# =============================================================================
# Helpers
# =============================================================================

def provided_secret(request: Request) -> Optional[str]:
    """Secret from `Authorization: Bearer <secret>` or the `secret` query param."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()
    return request.query_params.get("secret")


def require_sync_secret(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """No-op when PJN_SYNC_SECRET is not configured."""
    expected = settings.pjn_sync_secret
    if not expected:
        return
    supplied = provided_secret(request) or ""
    if not secrets.compare_digest(supplied.encode(), expected.encode()):
        logger.warning("Rejected sync trigger from %s", request.client.host if request.client else "?")
        raise HTTPException(
            status_code=401,
            detail={"error": "unauthorized", "message": "No autorizado. Se requiere secret válido."},
        )


def _configuration_error(e: SyncConfigurationError) -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"error": "configuration_error", "message": str(e), "missing": e.missing},
    )


def _load_rules(settings: Settings):
    try:
        return get_rule_table(settings.pericia_rules_path or None)
    except RuleTableError as e:
        logger.error("Rule table unavailable: %s", e)
        raise HTTPException(status_code=500, detail={"error": "rule_table_error", "message": str(e)})


# =============================================================================
# Sync Trigger
# =============================================================================

@router.api_route("/sync-favoritos", methods=["GET", "POST"], dependencies=[Depends(require_sync_secret)])
async def trigger_sync(request: Request, settings: Settings = Depends(get_settings)):
    """
    Run a favoritos sync.

    GET is what schedulers send; POST is for manual calls. Neither takes a body.
    """
    logger.info("%s sync request received", request.method)
    try:
        summary = await sync_favoritos(settings)
    except SyncConfigurationError as e:
        logger.error("Sync aborted: %s", e)
        raise _configuration_error(e)
    except SyncInProgressError as e:
        raise HTTPException(status_code=409, detail={"error": "sync_in_progress", "message": str(e)})
    except SQLAlchemyError as e:
        logger.error("Sync failed reading stores: %s", e)
        raise HTTPException(
            status_code=500,
            detail={"error": "store_error", "message": "Error al leer casos de pjn-scraper"},
        )
    return summary.to_dict()


@router.get("/sync-status")
async def sync_status(settings: Settings = Depends(get_settings)):
    """When the last sync finished."""
    if not settings.database_url:
        raise _configuration_error(SyncConfigurationError(["DATABASE_URL"]))
    last = await SqlFavoritesStore(get_session_factory()).last_synced_at()
    return {"last_sync_at": to_utc(last).isoformat() if last else None}


# =============================================================================
# Read Endpoints
# =============================================================================

@router.get("/favoritos", response_model=list[FavoritoResponse])
async def list_favoritos(
    semaforo: Optional[Literal["VERDE", "AMARILLO", "ROJO"]] = None,
    settings: Settings = Depends(get_settings),
):
    """Tracked cases with their age semaphore, oldest first."""
    if not settings.database_url:
        raise _configuration_error(SyncConfigurationError(["DATABASE_URL"]))
    thresholds = case_thresholds(settings)
    now = utc_now()

    async with get_db_session() as session:
        result = await session.execute(
            select(PjnFavorito).order_by(PjnFavorito.fecha_ultima_carga_ts.asc().nulls_last())
        )
        favoritos = result.scalars().all()

    items = []
    for fav in favoritos:
        aging = thresholds.evaluate(fav.fecha_ultima_carga_ts or fav.fecha_ultima_carga, now)
        if semaforo and aging.color.value != semaforo:
            continue
        items.append(FavoritoResponse(
            id=fav.id,
            expediente=f"{fav.jurisdiccion} {fav.numero}/{fav.anio}",
            jurisdiccion=fav.jurisdiccion,
            numero=fav.numero,
            anio=fav.anio,
            caratula=fav.caratula,
            juzgado=fav.juzgado,
            fecha_ultima_carga=fav.fecha_ultima_carga,
            observaciones=fav.observaciones,
            notas=fav.notas,
            dias=aging.elapsed,
            semaforo=aging.color.value,
        ))
    return items


@router.get("/prueba-pericia", response_model=list[PruebaPericiaResponse])
async def list_prueba_pericia(settings: Settings = Depends(get_settings)):
    """Live source cases whose movements place them in the expert-evidence stage."""
    missing = settings.missing_store_settings()
    if missing:
        raise _configuration_error(SyncConfigurationError(missing))
    rules = _load_rules(settings)
    thresholds = pericia_thresholds(settings)
    now = utc_now()

    async with get_source_session() as session:
        result = await session.execute(select(SourceCase).where(SourceCase.removido.is_not(True)))
        cases = result.scalars().all()

    items = []
    for case in cases:
        key = parse_expediente(case.key or case.expediente)
        if key is None:
            continue
        match = classify_movements(case.movimientos, rules)
        if match is None:
            continue
        aging = thresholds.evaluate(case.ult_act, now)
        items.append(PruebaPericiaResponse(
            expediente=str(key),
            caratula=case.caratula,
            juzgado=normalize_juzgado(case.dependencia),
            fecha_ultima_carga=format_ddmmyyyy(case.ult_act),
            regla=match.rule_label,
            detalle=match.text,
            dias=aging.elapsed,
            semaforo=aging.color.value,
        ))
    items.sort(key=lambda i: (i.dias is None, -(i.dias or 0)))
    return items


@router.get("/aging", response_model=AgingResponse)
async def aging(
    reference: Optional[str] = None,
    preset: Literal["case", "pericia", "orders"] = "case",
    deadline: Optional[str] = None,
    state: Optional[str] = None,
    now: Optional[datetime] = None,
    settings: Settings = Depends(get_settings),
):
    """
    Semaphore for an arbitrary reference instant.

    `orders` counts hours and turns RED when `deadline` has passed and
    `state` is not a completed state.
    """
    presets = {
        "case": case_thresholds,
        "pericia": pericia_thresholds,
        "orders": orders_thresholds,
    }
    thresholds = presets[preset](settings)
    result = thresholds.evaluate(
        reference,
        now,
        deadline=deadline,
        state=state,
        completed_states=ORDER_COMPLETED_STATES,
    )
    return AgingResponse(**result.to_dict())
