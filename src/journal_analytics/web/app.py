from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from journal_analytics.config.app_config import AppConfig, load_app_config
from journal_analytics.ingest.brokers import supported_brokers
from journal_analytics.metrics.calendar import calendar_month, parse_month
from journal_analytics.metrics.formatting import chart_rows
from journal_analytics.metrics.grouped import GroupKey, aggregate, compute_metrics, portfolio_metrics
from journal_analytics.pipeline import PipelineResult, trades_from_payload, trades_to_dicts


class OrdersPayload(BaseModel):
    broker: str | None = None
    policy: str | None = None
    orders: list[dict[str, Any]] | None = None
    documents: list[dict[str, Any]] | None = None


app = FastAPI(title="Trade Journal Analytics")


@lru_cache(maxsize=1)
def _app_config() -> AppConfig:
    return load_app_config()


@app.get("/health")
def health() -> dict[str, Any]:
    return {"status": "ok", "brokers": supported_brokers()}


@app.post("/api/trades")
def trades_api(payload: OrdersPayload) -> dict[str, Any]:
    result = _run_pipeline(payload)
    return {"trades": trades_to_dicts(result.trades), "skipped": result.skipped}


@app.post("/api/analytics")
def analytics_api(payload: OrdersPayload, group_by: str = GroupKey.STRATEGY.value) -> dict[str, Any]:
    try:
        key = GroupKey.parse(group_by)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    result = _run_pipeline(payload)
    settings = _app_config().analytics
    groups = aggregate(result.trades, key, settings=settings)
    return {
        "group_by": key.value,
        "groups": chart_rows(groups, key),
        "portfolio": portfolio_metrics(groups).to_dict(),
        "overall": compute_metrics(result.trades).to_dict(),
        "skipped": result.skipped,
    }


@app.post("/api/calendar")
def calendar_api(payload: OrdersPayload, month: str | None = None) -> dict[str, Any]:
    try:
        parse_month(month)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    result = _run_pipeline(payload)
    return calendar_month(result.trades, month, _app_config().analytics.day_timezone)


def _run_pipeline(payload: OrdersPayload) -> PipelineResult:
    if payload.documents is not None:
        source: Any = payload.documents
    elif payload.orders is not None:
        source = payload.orders
    else:
        raise HTTPException(status_code=400, detail="Provide either orders or documents")
    try:
        return trades_from_payload(
            source,
            broker=payload.broker,
            policy=payload.policy,
            settings=_app_config().analytics,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def main() -> None:
    import uvicorn

    app_config = load_app_config()
    uvicorn.run(
        "journal_analytics.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
        log_level=app_config.app.log_level.lower(),
    )


if __name__ == "__main__":
    main()
