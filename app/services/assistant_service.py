"""Assistant mode replies over a client-held transcript."""

from datetime import datetime
from zoneinfo import ZoneInfo

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from app.core.config import settings
from app.core.exceptions import AssistantUnavailableError
from app.schemas.assistant_schema import TranscriptMessage

logger = structlog.get_logger()

SYSTEM_PROMPT_TEMPLATE = (
    "You are the automated assistant of a website support chat.\n\n"
    "Current date and time: {system_time}\n"
    "Answer briefly. If the visitor asks for a person, tell them they can "
    "switch to a live agent from the chat window."
)


class AssistantService:
    """Answers the latest visitor turn with a LangChain chat model.

    The transcript lives on the client; each request carries it in full and
    only the most recent ``max_history`` turns are forwarded.
    """

    def __init__(self, llm: BaseChatModel, max_history: int | None = None) -> None:
        self._llm = llm
        self._max_history = max_history or settings.llm.max_history_messages

    def _build_messages(self, transcript: list[TranscriptMessage]) -> list[BaseMessage]:
        now = datetime.now(tz=ZoneInfo("UTC")).isoformat()
        messages: list[BaseMessage] = [
            SystemMessage(content=SYSTEM_PROMPT_TEMPLATE.format(system_time=now))
        ]
        for turn in transcript[-self._max_history :]:
            if turn.role == "user":
                messages.append(HumanMessage(content=turn.content))
            else:
                messages.append(AIMessage(content=turn.content))
        return messages

    async def reply(self, transcript: list[TranscriptMessage]) -> str:
        """Generate the assistant's next turn."""
        try:
            response = await self._llm.ainvoke(self._build_messages(transcript))
        except Exception as e:
            logger.exception("Assistant model call failed", turns=len(transcript))
            raise AssistantUnavailableError from e
        return str(response.content).strip()
