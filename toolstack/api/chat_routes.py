"""
ToolStack Chat API Routes
=========================

POST /api/chat - Answer a question about developer tools (bearer JWT required)
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..factory import ServiceFactory
from .dependencies import get_factory, require_user
from .models import ChatRequest, ChatResponse, ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Chat"],
    responses={
        400: {"model": ErrorResponse, "description": "Missing or malformed messages/toolQuery"},
        401: {"model": ErrorResponse, "description": "No valid bearer token"},
        500: {"model": ErrorResponse, "description": "Answer could not be generated"},
    },
)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    user: Dict[str, Any] = Depends(require_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """
    RAG answer grounded on the closest tools in the vector index.

    Errors: 401 unauthenticated, 400 invalid-argument, 500 internal.
    """
    logger.debug(f"Chat request from {user.get('sub')}")
    response = await factory.chatbot().answer(request.messages, request.toolQuery)
    return ChatResponse(**response)
