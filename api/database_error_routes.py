from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.responses import csv_response, guarded
from core.context import AppContext, get_context
from core.logging_config import logger
from pipeline import database_errors

router = APIRouter(prefix="/api/database-errors", tags=["Database Errors"])


@router.get("")
def all_errors(days: int = 1, ctx: AppContext = Depends(get_context)):
    logger.info(f"[DB-ERRORS] GET /api/database-errors?days={days}")
    return guarded("Failed to fetch database errors", database_errors.all_servers_report, ctx, days)


@router.get("/server/{server}")
def server_errors(server: str, days: int = 1, ctx: AppContext = Depends(get_context)):
    logger.info(f"[DB-ERRORS] GET /api/database-errors/server/{server}?days={days}")
    return guarded(f"Failed to fetch database errors from {server}", database_errors.server_report, ctx, server, days)


@router.get("/export")
def export(days: int = 1, ctx: AppContext = Depends(get_context)):
    result = guarded("Failed to export database errors", database_errors.export_csv, ctx, days)
    if isinstance(result, JSONResponse):
        return result
    filename, body = result
    return csv_response(filename, body)


@router.get("/servers")
def servers(ctx: AppContext = Depends(get_context)):
    return guarded(
        "Failed to test server connections",
        lambda: {"servers": list(ctx.error_servers), "connectionTests": database_errors.connection_tests(ctx)},
    )
