"""Assistant mode API router."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.dependencies import get_assistant_service, get_current_actor
from app.schemas.assistant_schema import AssistantReplyRequest, AssistantReplyResponse
from app.services.assistant_service import AssistantService

router = APIRouter(
    prefix="/api/v1/assistant",
    tags=["assistant"],
    dependencies=[Depends(get_current_actor)],
)

AssistantServiceDep = Annotated[AssistantService, Depends(get_assistant_service)]


@router.post("/reply", response_model=AssistantReplyResponse)
async def assistant_reply(
    request: AssistantReplyRequest,
    assistant_service: AssistantServiceDep,
) -> AssistantReplyResponse:
    """Answer the last turn of the client-held transcript."""
    reply = await assistant_service.reply(request.messages)
    return AssistantReplyResponse(reply=reply)
