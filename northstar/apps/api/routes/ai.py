"""AI chat and operator memory endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from northstar.apps.api.deps import get_orchestrator
from northstar.apps.api.services.orchestrator import Orchestrator

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger(__name__)


class HintMessage(BaseModel):
    role: str
    content: str


class ConversationHints(BaseModel):
    history: Optional[List[HintMessage]] = None
    task_class: Optional[str] = None


class ChatRequest(BaseModel):
    user_id: str = Field(min_length=1)
    message: str
    topic: Optional[str] = None
    conversation_hints: Optional[ConversationHints] = None


@router.post("/chat")
async def chat(
    payload: ChatRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    hints = payload.conversation_hints.model_dump(exclude_none=True) if payload.conversation_hints else None
    return await orchestrator.run(
        payload.user_id,
        payload.message,
        topic=payload.topic,
        conversation_hints=hints,
    )


@router.delete("/memory/{user_id}")
async def reset_memory(
    user_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    async with orchestrator.store.lock(user_id):
        deleted = await orchestrator.store.reset(user_id)
    logger.info("operator_memory_reset", extra={"user_id": user_id, "deleted": deleted})
    return {"ok": True, "user_id": user_id, "deleted": deleted}


__all__ = ["router"]
