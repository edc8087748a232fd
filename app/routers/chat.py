"""
Chat routes: one endpoint per user turn of the comparison wizard.
"""
import logging
from fastapi import APIRouter, Depends, Request
from redis.exceptions import RedisError

from app.middleware.error_handling import ErrorCode, ExternalServiceException
from app.middleware.rate_limit import limit_chat
from app.schemas.common import ErrorResponse
from app.schemas.wizard import ChatRequest, ChatResponse
from app.services.dialogue_controller import DialogueController, get_dialogue_controller

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}}
)
@limit_chat
def chat(
    request: Request,
    payload: ChatRequest,
    controller: DialogueController = Depends(get_dialogue_controller)
):
    """
    Process one chat turn.

    - Extracts budget, destination, duration and goal from the message
    - Asks for whatever is still missing
    - Returns ranked partner programs once everything is known
    - Answers off-topic questions with the generic assistant
    - Refuses further turns once the free quota is used (type=limit_reached)
    """
    try:
        result = controller.handle_turn(payload.session_id, payload.message, locale=payload.locale)
    except RedisError as e:
        raise ExternalServiceException(
            service_name="session store",
            message="temporarily unavailable",
            code=ErrorCode.SESSION_STORE_ERROR,
            original_error=e
        )

    return ChatResponse(
        type=result.response_type,
        reply=result.reply,
        cta_marker=result.cta_marker
    )
