"""
GeekLogg Backend API - FastAPI application.

Provides endpoints for:
- Premium subscriptions through Stripe and Mercado Pago (checkout + webhooks)
- A rate-limited IGDB proxy
- The signed-in user's media library, with statistics and insights
- Catalogue search across Google Books, TMDb and IGDB
"""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import igdb, medias, mercadopago, search, stripe

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:3000",
    "http://localhost:4173",
    "https://geeklogg.com",
    "https://www.geeklogg.com",
    "https://geeklog-diary.web.app",
    "https://geeklog-diary.firebaseapp.com",
]
# Any geeklogg.com subdomain (preview deploys, admin, ...).
CORS_ORIGIN_REGEX = r"https://([a-z0-9-]+\.)*geeklogg\.com"


def get_cors_origins() -> list[str]:
    """
    Get CORS allowed origins from environment.
    Set CORS_ALLOW_ORIGINS as comma-separated list of origins.
    Example: CORS_ALLOW_ORIGINS=https://geeklogg.com,https://app.geeklogg.com
    Falls back to the GeekLogg frontends when unset.
    """
    origins_str = os.getenv("CORS_ALLOW_ORIGINS", "")
    if not origins_str:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in origins_str.split(",") if origin.strip()]


app = FastAPI(
    title="GeekLogg API",
    description="Backend API for GeekLogg - media diary, premium payments and catalogue search",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_origin_regex=CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Payment and IGDB paths are fixed by the frontend and the providers' dashboards.
app.include_router(stripe.router)
app.include_router(mercadopago.router)
app.include_router(igdb.router)
app.include_router(medias.router, prefix="/api/v1")
app.include_router(search.router, prefix="/api/v1")


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "geeklogg-backend"}


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "healthy"}
