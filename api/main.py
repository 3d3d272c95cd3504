from __future__ import annotations

from dataclasses import asdict
import logging
import math
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import AddressCandidateModel, AddressSearchResponse, EventFiltersModel
from confmap.data import event_records, load_site_data, prepare_context
from confmap.filters import EventFilters, normalize_filters
from confmap.geocoding import AddressSearchClient
from confmap.metrics_concentration import compute_concentration
from confmap.metrics_conferences import compute_conference_index, conference_history
from confmap.metrics_expansion import compute_expansion
from confmap.metrics_map import compute_map
from confmap.metrics_overview import compute_dashboard
from confmap.metrics_seasonality import compute_seasonality
from confmap.metrics_venues import compute_venue_ranking
from confmap.url_params import create_url_params, parse_url_params


app = FastAPI(title="Japan Tech Conference Map API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

address_search = AddressSearchClient()


def _filters_from_model(model: EventFiltersModel) -> EventFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
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
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.strftime("%Y-%m-%d"),
            },
        )
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


def _events_payload(f: EventFilters, ctx: dict) -> dict:
    filtered: pd.DataFrame = ctx["filtered_events"]
    return {
        "filters": asdict(f),
        "query": create_url_params(f),
        "total": int(len(ctx["events"])),
        "count": int(len(filtered)),
        "events": event_records(filtered.sort_values("start_date", ascending=False, kind="stable")),
    }


@app.post("/meta/options")
def meta_options(filters: EventFiltersModel):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json({"filters": asdict(f), "options": asdict(ctx["options"])})
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/events")
def events(filters: EventFiltersModel):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(_events_payload(f, ctx))
    except Exception as exc:
        logger.exception("events failed")
        return _error(exc)


@app.get("/events")
def events_from_query(request: Request):
    """Same as POST /events, with filters taken from a shareable query string."""
    try:
        data_ctx = load_site_data()
        f = parse_url_params(request.url.query)
        ctx = prepare_context(f, data_ctx)
        return _json(_events_payload(f, ctx))
    except Exception as exc:
        logger.exception("events_from_query failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(filters: EventFiltersModel):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_dashboard(f, ctx))
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.post("/analytics/venues")
def venue_ranking(
    filters: EventFiltersModel,
    count_mode: Literal["events", "conferences"] = Query(default="events"),
    top_n: int = Query(default=10),
):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_venue_ranking(f, ctx, count_mode=count_mode, top_n=top_n))
    except Exception as exc:
        logger.exception("venue_ranking failed")
        return _error(exc)


@app.post("/analytics/concentration")
def concentration(filters: EventFiltersModel):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_concentration(f, ctx))
    except Exception as exc:
        logger.exception("concentration failed")
        return _error(exc)


@app.post("/analytics/seasonality")
def seasonality(filters: EventFiltersModel):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_seasonality(f, ctx))
    except Exception as exc:
        logger.exception("seasonality failed")
        return _error(exc)


@app.post("/analytics/expansion")
def expansion(filters: EventFiltersModel, conference_id: Optional[str] = Query(default=None)):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_expansion(f, ctx, conference_id=conference_id or None))
    except Exception as exc:
        logger.exception("expansion failed")
        return _error(exc)


@app.post("/map")
def map_markers(filters: EventFiltersModel, venue: Optional[str] = Query(default=None)):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_map(f, ctx, highlight_venue_id=venue or None))
    except Exception as exc:
        logger.exception("map_markers failed")
        return _error(exc)


@app.get("/conferences")
def conferences():
    try:
        data_ctx = load_site_data()
        ctx = prepare_context(EventFilters(), data_ctx)
        return _json(compute_conference_index(ctx))
    except Exception as exc:
        logger.exception("conferences failed")
        return _error(exc)


@app.get("/conferences/{conference_id}")
def conference_detail(conference_id: str):
    try:
        data_ctx = load_site_data()
        detail = conference_history(conference_id, data_ctx["events"], data_ctx["conferences"])
    except Exception as exc:
        logger.exception("conference_detail failed")
        return _error(exc)
    if detail is None:
        return JSONResponse(status_code=404, content={"error": f"Conference not found: {conference_id}", "type": "NotFound"})
    return _json(detail)


@app.get("/address-search")
def address_search_endpoint(q: str = Query(default="")):
    results = address_search.search(q)
    payload = AddressSearchResponse(query=q, results=[AddressCandidateModel(**asdict(r)) for r in results])
    return _json(payload.model_dump())


@app.post("/export/{page}")
def export_page(page: str, filters: EventFiltersModel):
    try:
        data_ctx = load_site_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)

        export_df = None
        filename = f"{page}.csv"
        if page == "events":
            export_df = pd.DataFrame(event_records(ctx.get("filtered_events", pd.DataFrame())))
        elif page == "venues":
            ranking = compute_venue_ranking(f, ctx, top_n=100)["ranking"]
            export_df = pd.DataFrame([{k: v for k, v in r.items() if k != "events"} for r in ranking])
        elif page == "concentration":
            export_df = pd.DataFrame(compute_concentration(f, ctx)["trend"])
        elif page == "seasonality":
            export_df = pd.DataFrame(compute_seasonality(f, ctx)["cells"])
        else:
            export_df = pd.DataFrame()

        if export_df is None or not hasattr(export_df, "to_csv"):
            export_df = pd.DataFrame()
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
    except Exception as exc:
        logger.exception("export_page failed")
        return _error(exc)
