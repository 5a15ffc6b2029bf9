"""Ledger service HTTP surface.

Records coin transactions against games, keeps per-game balances, and exposes
pending-balance and summary views for the dashboards.
"""

from time import perf_counter
from uuid import uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from coinledger.common.config import settings
from coinledger.common.db import SessionLocal
from coinledger.common.errors import LedgerError, NotFoundError, PersistenceError, ValidationError
from coinledger.common.logging import configure_logging, logger, principal_ctx, trace_id_ctx
from coinledger.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from coinledger.common.startup import log_startup_config
from coinledger.common.tracing import instrument_app, setup_tracing
from coinledger.services.ledger.schemas import (
    EntryCreateRequest,
    EntryResponse,
    EntryUpdateRequest,
    GameBalanceResponse,
    GameCreateRequest,
    GameDriftResponse,
    GameSummary,
    HistoryResponse,
    PendingRow,
    SummaryReport,
)
from coinledger.services.ledger.service import LedgerService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings,
    ["database_url", "api_key", "report_timezone", "tracing_enabled", "trace_sample_ratio", "log_level"],
)
service = LedgerService(SessionLocal)

app = FastAPI(title="Coin Ledger Service")
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.exception_handler(LedgerError)
async def ledger_error_handler(_: Request, exc: LedgerError):
    """Map service errors onto HTTP responses."""

    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})
    if isinstance(exc, NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message})
    if isinstance(exc, PersistenceError):
        return JSONResponse(status_code=500, content={"detail": "ledger storage failure"})
    logger.error("unmapped_ledger_error error=%s", exc)
    return JSONResponse(status_code=500, content={"detail": "internal error"})


async def current_principal(
    x_api_key: str | None = Header(default=None),
    x_auth_user: str | None = Header(default=None),
    x_auth_role: str | None = Header(default=None),
    x_trace_id: str | None = Header(default=None),
) -> str | None:
    """Check the shared API key and adopt the identity the auth layer forwarded."""

    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")
    trace_id_ctx.set(x_trace_id or str(uuid4()))
    principal = (x_auth_user or "").strip() or None
    principal_ctx.set(f"{principal}:{x_auth_role or 'user'}" if principal else "")
    return principal


@app.post("/entries", response_model=EntryResponse, status_code=201)
def create_entry(req: EntryCreateRequest, response: Response, principal: str | None = Depends(current_principal)):
    """Record a transaction; player-tag deposits with reduction merge into the latest one."""

    if not req.created_by and principal:
        req.created_by = principal
    entry, merged = service.create_entry(req, actor=principal)
    if merged:
        response.status_code = 200
    return entry


@app.get("/entries", response_model=list[EntryResponse])
def list_entries(
    username: str | None = None,
    kind: str | None = None,
    method: str | None = None,
    game_name: str | None = None,
    player_tag: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    _: str | None = Depends(current_principal),
):
    """List entries, newest first."""

    return service.list_entries(username, kind, method, game_name, player_tag, date_from, date_to)


@app.get("/entries/{entry_id}", response_model=EntryResponse)
def get_entry(entry_id: int, _: str | None = Depends(current_principal)):
    return service.get_entry(entry_id)


@app.put("/entries/{entry_id}", response_model=EntryResponse)
def update_entry(entry_id: int, req: EntryUpdateRequest, principal: str | None = Depends(current_principal)):
    """Apply a partial update; game balances follow the new coin effect."""

    return service.update_entry(entry_id, req, actor=principal)


@app.delete("/entries/{entry_id}")
def delete_entry(entry_id: int, principal: str | None = Depends(current_principal)):
    """Reverse the entry's coin effect and delete it."""

    service.delete_entry(entry_id, actor=principal)
    return {"ok": True}


@app.patch("/entries/{entry_id}/clear-pending", response_model=EntryResponse)
def clear_pending(entry_id: int, principal: str | None = Depends(current_principal)):
    return service.clear_pending(entry_id, actor=principal)


@app.get("/entries/{entry_id}/history", response_model=list[HistoryResponse])
def entry_history(entry_id: int, _: str | None = Depends(current_principal)):
    """Audit trail for one entry, newest first."""

    return service.list_history(entry_id, limit=settings.history_page_limit)


@app.get("/pending", response_model=list[PendingRow])
def list_pending(username: str | None = None, _: str | None = Depends(current_principal)):
    """One current pending balance per (username, player_tag)."""

    return service.list_pending(username)


@app.get("/pending/by-tag", response_model=PendingRow)
def pending_by_tag(
    username: str | None = None,
    player_tag: str | None = None,
    _: str | None = Depends(current_principal),
):
    return service.lookup_pending_by_tag(username, player_tag)


@app.get("/summary", response_model=SummaryReport)
def summary(
    username: str | None = None,
    period: str | None = None,
    year: int | None = None,
    month: int | None = None,
    day: int | None = None,
    _: str | None = Depends(current_principal),
):
    """Totals by kind, pending set, and deposit revenue by method."""

    return service.summarize(username, period, year, month, day)


@app.get("/summary/by-game", response_model=list[GameSummary])
def summary_by_game(
    username: str | None = None,
    year: int | None = None,
    month: int | None = None,
    _: str | None = Depends(current_principal),
):
    return service.summarize_by_game(username, year, month)


@app.post("/games", response_model=GameBalanceResponse, status_code=201)
def register_game(req: GameCreateRequest, _: str | None = Depends(current_principal)):
    """Register a game so ledger entries start moving its balance."""

    return service.register_game(req.name, req.coins_recharged, req.last_recharge_date)


@app.get("/games", response_model=list[GameBalanceResponse])
def list_games(_: str | None = Depends(current_principal)):
    return service.list_games()


@app.get("/games/{name}", response_model=GameBalanceResponse)
def get_game(name: str, _: str | None = Depends(current_principal)):
    return service.get_game(name)


@app.get("/games/{name}/drift", response_model=GameDriftResponse)
def game_drift(name: str, _: str | None = Depends(current_principal)):
    """Materialized balance versus a replay of the game's current entries."""

    return service.game_drift(name)


@app.post("/games/{name}/rebuild", response_model=GameBalanceResponse)
def rebuild_game(name: str, principal: str | None = Depends(current_principal)):
    logger.warning("game_rebuild_requested game=%s by=%s", name, principal)
    return service.rebuild_game_balance(name)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
