from __future__ import annotations

import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import (
    DraftModel,
    ExplorerRequest,
    MetaOptionsResponse,
    MetaResponse,
    NotificationModel,
    SaveScenarioRequest,
    ScenarioModel,
)
from core.config import load_settings
from core.filters import CASCADE, available_options, normalize_filters
from core.metrics_drilldown import compute_drilldown
from core.metrics_explorer import compute_explorer
from core.metrics_overview import compute_overview
from core.session import BudgetSession


settings = load_settings()
app = FastAPI(title="Budget Explorer API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_session: Optional[BudgetSession] = None


def get_session() -> BudgetSession:
    """Process-wide session, loaded from the configured dataset on first use."""
    global _session
    if _session is None:
        _session = BudgetSession(settings=settings)
        _session.load()
    return _session


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _unavailable(session: BudgetSession) -> Optional[JSONResponse]:
    if session.loaded:
        return None
    return JSONResponse(
        status_code=503,
        content={"error": session.load_error or "Budget data not loaded", "type": "DatasetLoadError"},
    )


def _latest_notification(session: BudgetSession) -> dict:
    note = session.notifications.latest()
    return {"message": note.message, "severity": note.severity} if note else {}


@app.get("/meta", response_model=MetaResponse)
def meta(session: BudgetSession = Depends(get_session)):
    return MetaResponse(
        loaded=session.loaded,
        row_count=len(session.store),
        last_updated=session.last_updated,
        load_error=session.load_error,
    )


@app.get("/meta/options")
def meta_options(
    group: str = Query(default=""),
    subgroup: str = Query(default=""),
    session: BudgetSession = Depends(get_session),
):
    try:
        unavailable = _unavailable(session)
        if unavailable is not None:
            return unavailable
        state = normalize_filters({"group": group, "subgroup": subgroup})
        options = {name: available_options(session.store, state, name) for name in CASCADE}
        return _json(MetaOptionsResponse(**options).model_dump())
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.get("/overview")
def overview(
    kind: Literal["spending", "revenue", "all"] = Query(default="spending"),
    session: BudgetSession = Depends(get_session),
):
    try:
        unavailable = _unavailable(session)
        if unavailable is not None:
            return unavailable
        payload = compute_overview(
            session.store,
            session.ledger,
            drafts=session.drafts,
            kind=None if kind == "all" else kind,
        )
        payload["last_updated"] = session.last_updated
        return _json(payload)
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.get("/drilldown")
def drilldown(
    group: Optional[str] = Query(default=None),
    dimension: Literal["subgroup", "source"] = Query(default="subgroup"),
    session: BudgetSession = Depends(get_session),
):
    try:
        unavailable = _unavailable(session)
        if unavailable is not None:
            return unavailable
        if group:
            session.select_group(group)
            session.set_dimension(dimension)
        else:
            session.clear_group()
        return _json(compute_drilldown(session.store, session.ledger, session.drilldown))
    except Exception as exc:
        logger.exception("drilldown failed")
        return _error(exc)


@app.post("/explorer")
def explorer(request: ExplorerRequest, session: BudgetSession = Depends(get_session)):
    try:
        unavailable = _unavailable(session)
        if unavailable is not None:
            return unavailable
        f = normalize_filters(request.filters.model_dump())
        return _json(
            compute_explorer(
                session.store,
                f,
                ledger=session.ledger if request.adjusted else None,
                scroll_offset=request.scroll_offset,
                settings=session.settings,
            )
        )
    except Exception as exc:
        logger.exception("explorer failed")
        return _error(exc)


@app.put("/drafts/{key:path}")
def set_draft(key: str, draft: DraftModel, session: BudgetSession = Depends(get_session)):
    if not session.set_draft(key, draft.text):
        return _json({"error": f"Unknown line item: {key}", "notification": _latest_notification(session)}, status_code=404)
    return _json({"key": key, "text": draft.text})


@app.post("/adjustments/commit")
def commit_adjustments(session: BudgetSession = Depends(get_session)):
    adjustments = session.commit_all()
    return _json({"adjustments": adjustments, "notification": _latest_notification(session)})


@app.delete("/adjustments")
def reset_adjustments(session: BudgetSession = Depends(get_session)):
    session.reset_all()
    return _json({"adjustments": {}, "notification": _latest_notification(session)})


@app.delete("/adjustments/{key:path}")
def remove_adjustment(key: str, session: BudgetSession = Depends(get_session)):
    session.remove(key)
    return _json({"adjustments": session.ledger.snapshot()})


@app.get("/scenarios")
def list_scenarios(session: BudgetSession = Depends(get_session)):
    scenarios = [ScenarioModel(**s).model_dump() for s in session.list_scenarios()]
    return _json({"scenarios": scenarios})


@app.post("/scenarios")
def save_scenario(request: SaveScenarioRequest, session: BudgetSession = Depends(get_session)):
    scenario = session.save_scenario(request.name, request.description)
    if scenario is None:
        return _json({"scenario": None, "notification": _latest_notification(session)}, status_code=400)
    return _json({"scenario": scenario.to_dict(), "notification": _latest_notification(session)})


@app.post("/scenarios/{name}/load")
def load_scenario(name: str, session: BudgetSession = Depends(get_session)):
    ok = session.load_scenario(name)
    body = {"loaded": ok, "adjustments": session.ledger.snapshot(), "notification": _latest_notification(session)}
    return _json(body, status_code=200 if ok else 404)


@app.get("/notifications")
def notifications(session: BudgetSession = Depends(get_session)):
    notes = [NotificationModel(**n).model_dump() for n in session.notifications.to_dicts()]
    return _json({"notifications": notes})


@app.get("/export")
def export(name: str = Query(default=""), session: BudgetSession = Depends(get_session)):
    result = session.export_csv(name)
    if result is None:
        return _json({"error": "No adjustments to export", "notification": _latest_notification(session)}, status_code=400)
    filename, text = result
    return Response(
        content=text.encode("utf-8"),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )

