from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.responses import csv_response, guarded
from core.context import AppContext, get_context
from core.logging_config import logger
from pipeline import cls_debugger

router = APIRouter(prefix="/api/io", tags=["CLS Debugger"])


@router.get("/xml-logs")
def xml_logs(orderNumber: str, whId: str, ctx: AppContext = Depends(get_context)):
    logger.info(f"[CLS] Fetching XML logs for order={orderNumber}, wh={whId}")
    return guarded("Failed to fetch XML logs", cls_debugger.xml_logs, ctx.factory, orderNumber, whId)


@router.get("/rate-query")
def rate_query(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch rate query results", cls_debugger.enriched_orders, ctx.factory, "rate")


@router.get("/rate-hold-query")
def rate_hold_query(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch rate hold query results", cls_debugger.enriched_orders, ctx.factory, "rate-hold")


@router.get("/rate-query/raw")
def rate_query_raw(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch raw rate query results", cls_debugger.raw_rows, ctx.factory, "rate")


@router.get("/rate-query/summary")
def rate_query_summary(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch rate query summary", cls_debugger.summary, ctx.factory, "rate")


@router.get("/rate-hold-query/summary")
def rate_hold_query_summary(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch rate hold query summary", cls_debugger.summary, ctx.factory, "rate-hold")


def _export(ctx, kind, context):
    result = guarded(context, cls_debugger.export_csv, ctx.factory, kind)
    if isinstance(result, JSONResponse):
        return result
    filename, body = result
    return csv_response(filename, body)


@router.get("/rate-query/export")
def rate_query_export(ctx: AppContext = Depends(get_context)):
    return _export(ctx, "rate", "Failed to export rate query results")


@router.get("/rate-hold-query/export")
def rate_hold_query_export(ctx: AppContext = Depends(get_context)):
    return _export(ctx, "rate-hold", "Failed to export rate hold query results")


@router.get("/queue-status")
def queue_status(ctx: AppContext = Depends(get_context)):
    return guarded("Failed to fetch queue status", cls_debugger.queue_status, ctx.factory)


@router.get("/database/test")
def database_test(ctx: AppContext = Depends(get_context)):
    try:
        return cls_debugger.database_test(ctx.factory)
    except Exception as e:
        logger.exception(f"[CLS] IO database connection test failed: {e}")
        body = {
            "connected": False,
            "message": f"IO database connection error: {e}",
            "error": type(e).__name__,
        }
        if e.__cause__ is not None:
            body["cause"] = str(e.__cause__)
        return JSONResponse(status_code=500, content=body)
