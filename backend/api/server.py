"""
api/server.py
-------------
FastAPI application entry point.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET  /v1/health
    POST /v1/tours/optimize/{tour_id}
    POST /v1/tours/apply/{tour_id}
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health, optimizer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Tour Route Optimizer API",
    version="1.0.0",
    description=(
        "Orders an artist's tour stops around confirmed dates, suggests dates "
        "for open stops, and optionally asks an AI model for an alternative route."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# Booking frontend (any origin during development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router,     prefix="/v1",       tags=["Health"])
app.include_router(optimizer.router,  prefix="/v1/tours", tags=["Tour Optimizer"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
