from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plantops.config import settings
from plantops.middleware.exceptions import register_exception_handlers
from plantops.routers import approvals, health, me, records
from plantops.services.lifespan import lifespan

app = FastAPI(
    title="PlantOps",
    description="Plant operations records with role-gated approvals",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(me.router, prefix="/api/me", tags=["me"])
app.include_router(records.router, prefix="/api/records", tags=["records"])
app.include_router(approvals.router, prefix="/api/approvals", tags=["approvals"])
