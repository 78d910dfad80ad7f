import math
import os
from typing import Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import psycopg2
from dotenv import load_dotenv

from backend import app_context
from backend.app.routes.settlement import router as settlement_router
from backend.rate_refresh import (
    get_rate_refresh_metrics,
    shutdown_rate_refresh_scheduler,
    start_rate_refresh_scheduler,
)


load_dotenv()

def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))

DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "ardent_db"),
    user=os.getenv("DB_USER", "ardent_user"),
    password=os.getenv("DB_PASSWORD", "ardent_pass"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

RATE_REFRESH_ENABLED = os.getenv("RATE_REFRESH_ENABLED", "1").lower() in {"1", "true", "yes"}

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]


def get_conn():
    return psycopg2.connect(**DB_CFG)


app_context.configure(get_conn=get_conn)

app = FastAPI(title="Ardent Settlement API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(settlement_router)


@app.get("/api/healthz")
def healthz():
    return {"ok": True}


@app.get("/api/metrics/exchange-rate-refresh")
def read_rate_refresh_metrics() -> Dict[str, object]:
    return get_rate_refresh_metrics()


@app.on_event("startup")
def _start_rate_refresh_scheduler() -> None:
    if RATE_REFRESH_ENABLED:
        start_rate_refresh_scheduler()


@app.on_event("shutdown")
def _shutdown_rate_refresh_scheduler() -> None:
    shutdown_rate_refresh_scheduler()
