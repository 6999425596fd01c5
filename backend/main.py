# ---------------------------------------------------------
# backend/main.py
# CrowdFund - REST facade over the hosted data service
#
# Run: python -m backend.main            (port 3010, PORT overrides)
#  or: uvicorn backend.main:app --reload --port 3010 (from repo root)
#
# - GET  /api/projects                   : all projects (sort=newest|most-funded|ending-soon)
# - POST /api/projects                   : create a project (auth)
# - GET  /api/projects/{id}              : project + updates + pledges
# - POST /api/projects/{id}/pledges      : pledge (auth)
# - GET/POST /api/projects/{id}/updates  : owner updates (POST: owner only)
# - GET  /api/projects/{id}/pledges      : pledge history for charting
# - POST /auth/signup, /auth/signin, GET /auth/me
# ---------------------------------------------------------

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.config import CORS_ORIGINS, ENV, IS_PROD, PORT, require_env_or_exit
from backend.data_service import build_data_service
from backend.routes_auth import router as auth_router
from backend.routes_projects import router as projects_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing hosted-service configuration is the only fatal error
    require_env_or_exit()
    if getattr(app.state, "data_service", None) is None:
        app.state.data_service = build_data_service()
    print(f"[SERVER] Environment: {ENV}")
    yield


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="CrowdFund Backend", version="0.1", lifespan=lifespan)

# CORS configuration from config module
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------
# Error bodies: {"error": "<message>"}
# ---------------------------------------------------------
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # The rejected input is not echoed back; it may be a password or a non-finite number.
    details = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content={"error": "Invalid request body", "details": jsonable_encoder(details)},
    )


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


app.include_router(projects_router)
app.include_router(auth_router)


def run() -> None:
    require_env_or_exit()
    print(f"[SERVER] Running at http://localhost:{PORT}")
    uvicorn.run("backend.main:app", host="0.0.0.0", port=PORT, reload=False)


if __name__ == "__main__":
    run()
