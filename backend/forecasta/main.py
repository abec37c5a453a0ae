import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel

from forecasta.api.routes.actions import router as actions_router
from forecasta.api.routes.alert_configs import router as alert_configs_router
from forecasta.api.routes.alerts import router as alerts_router
from forecasta.api.routes.business_context import router as business_context_router
from forecasta.api.routes.collectors import router as collectors_router
from forecasta.api.routes.contractor_profile import router as contractor_profile_router
from forecasta.api.routes.demos import router as demos_router
from forecasta.api.routes.ingest import router as ingest_router
from forecasta.api.routes.integrations import router as integrations_router
from forecasta.api.routes.metrics import router as metrics_router
from forecasta.api.routes.tools import router as tools_router
from forecasta.core.errors import install_error_handlers
from forecasta.core.logging import configure_logging
from forecasta.db import session as db
from forecasta.metrics.prometheus import api_request_latency_seconds
from forecasta.services.context import BusinessContextStore

configure_logging()

app = FastAPI(
    title="Forecasta API",
    version="1.0.0",
    description="AI marketing content and contractor monitoring for small businesses",
)
app.state.context_store = BusinessContextStore()
install_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    # without DATABASE_URL the datastore-backed routes answer 503
    if db.engine is not None:
        SQLModel.metadata.create_all(db.engine)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    start = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
        return response
    finally:
        dt = time.perf_counter() - start
        route = request.url.path
        method = request.method
        status = "unknown"
        try:
            status = str(getattr(response, "status_code", "unknown"))
        except Exception:
            status = "unknown"
        api_request_latency_seconds.labels(route=route, method=method, status=status).observe(dt)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(demos_router)
app.include_router(business_context_router)
app.include_router(contractor_profile_router)
app.include_router(alert_configs_router)
app.include_router(alerts_router)
app.include_router(ingest_router)
app.include_router(integrations_router)
app.include_router(actions_router)
app.include_router(tools_router)
app.include_router(collectors_router)
app.include_router(metrics_router)
