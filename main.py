# =============================================================================
# 🚀 Slashhour Core API – main application (main.py)
# =============================================================================

from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import config
from database import engine
from utils.core_tables import ensure_core_tables
from utils.errors import DomainError

# -------------------------------------------------------------------------
# 1️⃣ Logging
# -------------------------------------------------------------------------
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("slashhour")

# -------------------------------------------------------------------------
# 2️⃣ FastAPI App
# -------------------------------------------------------------------------
app = FastAPI(title="Slashhour Core API", version="1.0")
ensure_core_tables(engine)


# -------------------------------------------------------------------------
# 3️⃣ Domain errors → JSON
# -------------------------------------------------------------------------
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


# -------------------------------------------------------------------------
# 4️⃣ Routers
# -------------------------------------------------------------------------
from routes import admin_messages  # noqa: E402
from routes import deals  # noqa: E402
from routes import feed  # noqa: E402
from routes import notifications  # noqa: E402

app.include_router(deals.router)
app.include_router(feed.router)
app.include_router(notifications.router)
app.include_router(admin_messages.router)


# -------------------------------------------------------------------------
# 5️⃣ Health
# -------------------------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# -------------------------------------------------------------------------
# 6️⃣ Debug Route
# -------------------------------------------------------------------------
@app.get("/debug/routes")
def debug_routes() -> List[Dict[str, str]]:
    # mounted sub-routers carry no path of their own
    return [
        {"path": r.path, "name": getattr(r, "name", None) or ""}
        for r in app.routes
        if getattr(r, "path", None)
    ]
