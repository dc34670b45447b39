from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import Field

from core.context import AppContext, get_context
from core.errors import ConfigurationError
from core.logging_config import logger
from core.models import CamelModel

router = APIRouter(prefix="/api/chatbot", tags=["Chatbot"])


# === API Schema ===
class ChatMessage(CamelModel):
    role: str
    content: str


class ChatRequest(CamelModel):
    page_type: Optional[str] = None
    page_data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    query: Optional[str] = None
    conversation_history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(CamelModel):
    success: bool
    response: Optional[str] = None
    analysis: Optional[str] = None
    summary: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


def _failure(status_code, message):
    body = ChatResponse(success=False, error=message).model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=status_code, content=body)


def _relay(action, fn, *args, **kwargs):
    try:
        return fn(*args, **kwargs)
    except ConfigurationError as e:
        logger.error(f"[CHAT] OpenAI configuration error: {e}")
        return _failure(503, f"OpenAI API is not configured: {e}")
    except Exception as e:
        logger.exception(f"[CHAT] Error while trying to {action}: {e}")
        return _failure(500, f"Failed to {action}: {e}")


@router.post("/analyze")
def analyze(req: ChatRequest, ctx: AppContext = Depends(get_context)):
    logger.info(f"[CHAT] Analyze request for page type: {req.page_type}")
    if req.page_type is None or req.page_data is None or req.query is None:
        return _failure(400, "Missing required fields: pageType, pageData, or query")
    answer = _relay("analyze data", ctx.chat.analyze, req.page_type, req.page_data, req.query)
    if isinstance(answer, JSONResponse):
        return answer
    return ChatResponse(success=True, analysis=answer)


@router.post("/summarize")
def summarize(req: ChatRequest, ctx: AppContext = Depends(get_context)):
    logger.info(f"[CHAT] Summarize request for page type: {req.page_type}")
    if req.page_type is None or req.page_data is None:
        return _failure(400, "Missing required fields: pageType or pageData")
    answer = _relay("summarize data", ctx.chat.summarize, req.page_type, req.page_data)
    if isinstance(answer, JSONResponse):
        return answer
    return ChatResponse(success=True, summary=answer)


@router.post("/chat")
def chat(req: ChatRequest, ctx: AppContext = Depends(get_context)):
    logger.info(f"[CHAT] Chat request for page type: {req.page_type}")
    if req.page_type is None or req.page_data is None or req.message is None:
        return _failure(400, "Missing required fields: pageType, pageData, or message")
    history = [m.model_dump() for m in req.conversation_history]
    answer = _relay("process chat message", ctx.chat.chat, req.page_type, req.page_data, history, req.message)
    if isinstance(answer, JSONResponse):
        return answer
    return ChatResponse(success=True, response=answer)
