from fastapi import APIRouter, Depends

from api.responses import guarded
from core.context import AppContext, get_context
from core.logging_config import logger
from pipeline import saturday_delivery

router = APIRouter(prefix="/api/cls", tags=["Saturday Delivery"])


@router.get("/saturday-delivery")
def check_saturday_deliveries(ctx: AppContext = Depends(get_context)):
    logger.info("[SATURDAY] Saturday delivery check requested")
    return guarded("Failed to check Saturday deliveries", saturday_delivery.check_saturday_deliveries, ctx.factory)
