import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import (
    chatbot_routes,
    cls_routes,
    database_error_routes,
    release_routes,
    saturday_delivery_routes,
    test_tools_routes,
)
from api.responses import install_error_handlers
from core import config
from core.context import CLS_POOL, IO_POOL, AppContext, get_context, reset_context
from core.errors import describe, root_cause
from core.logging_config import logger
from retrieval.connections import describe_connection
from retrieval.fanout import shutdown_executor


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_context().factory.warm_up()
    yield
    shutdown_executor()
    reset_context()


app = FastAPI(title="Warehouse Ops Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

for module in (cls_routes, saturday_delivery_routes, database_error_routes, release_routes, test_tools_routes,
               chatbot_routes):
    app.include_router(module.router)


# === Health Check Endpoints ===
@app.get("/health")
async def health_check():
    return JSONResponse(content={"status": "ok"})


@app.get("/api/health")
async def api_health():
    return {"status": "UP", "message": "Warehouse Ops backend is running"}


@app.get("/api/config")
async def show_config():
    """Configured database URLs and users. Passwords never leave the process."""
    return {
        "io": {"url": config.IO_DB_URL or "not-set", "username": config.IO_DB_USERNAME or "not-set", "password": "***"},
        "cls": {"url": config.CLS_DB_URL or "not-set", "username": config.CLS_DB_USERNAME or "not-set", "password": "***"},
    }


# === Named pool connectivity ===
def pool_test(ctx: AppContext, name: str, label: str):
    logger.info(f"[DB] Testing {label} database connection...")
    started = time.monotonic()
    try:
        with ctx.factory.connect(name) as conn:
            duration = int((time.monotonic() - started) * 1000)
            desc = ctx.factory.descriptor(name)
            body = {
                "connected": True,
                "message": f"{label} database connection successful",
                "connectionTime": f"{duration}ms",
                "details": describe_connection(conn, desc.server),
                "server": desc.server,
                "database": desc.database,
                "integratedAuth": desc.integrated_auth,
            }
        logger.info(f"[DB] {label} database connection successful in {duration}ms")
        return body
    except Exception as e:
        logger.exception(f"[DB] {label} database connection test failed: {e}")
        body = {
            "connected": False,
            "message": f"{label} database connection error: {e}",
            "error": type(e).__name__,
            "errorMessage": str(e),
            "rootCause": describe(root_cause(e)),
        }
        if e.__cause__ is not None:
            body["cause"] = str(e.__cause__)
            body["causeClass"] = type(e.__cause__).__name__
        return JSONResponse(status_code=500, content=body)


@app.get("/api/database/test/cls")
def cls_connection_test(ctx: AppContext = Depends(get_context)):
    return pool_test(ctx, CLS_POOL, "CLS")


@app.get("/api/database/test/io")
def io_connection_test(ctx: AppContext = Depends(get_context)):
    return pool_test(ctx, IO_POOL, "IO")
