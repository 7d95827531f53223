from __future__ import annotations

"""Generation service backed by pydantic-ai structured output.

One ``Agent`` per task, each with a fixed system prompt and a pydantic output
type, so the model answer is validated before it reaches a handler. Any
failure (provider error, invalid output, missing credentials) is raised as
``CollaboratorUnavailableError``.
"""

import asyncio
import logging
from typing import Any, Dict, List, Union

from pydantic_ai import Agent
from pydantic_ai.models import Model

from ..runtime.deadline import request_timeout
from .errors import CollaboratorUnavailableError
from .models import Classification, ExtractedItem, ExtractionKind, GeneratedSummary

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

TRANSCRIPT_NOTE = (
    "The conversation is given as lines of the form '[<message id>] <sender id>: <text>'. "
    "Never invent message ids; refer only to ids present in the transcript."
)

SUMMARY_PROMPT = f"""You condense conversation threads.
Write a 2-3 sentence summary, up to 5 short key points, and count the decisions that were made.
{TRANSCRIPT_NOTE}"""

EXTRACTION_PROMPTS: Dict[ExtractionKind, str] = {
    ExtractionKind.action_items: f"""You find tasks that require action in a conversation.
For each task give the task text, the assignee's user id when it is clear, a deadline when one is stated,
and the id of the message it comes from (sourceMessageId).
{TRANSCRIPT_NOTE}""",
    ExtractionKind.decisions: f"""You find decisions made in a conversation.
For each decision give the decision text, the user ids of the people who made or agreed to it,
a confidence between 0 and 1, and the id of the message where it was made (sourceMessageId).
{TRANSCRIPT_NOTE}""",
    ExtractionKind.scheduling: f"""You detect scheduling needs in a conversation.
Look for explicit meeting requests, scheduling phrases ("when are you free?") and call requests.
If there is one, return a single item with the requesting message id (sourceMessageId), the estimated
duration in minutes (durationMinutes) and the urgency: high (ASAP), medium (this week) or low (flexible).
If there is none, return an empty list.
{TRANSCRIPT_NOTE}""",
}

CLASSIFY_PROMPT = """You categorize messages by priority.
- urgent: requires immediate attention (deadlines, emergencies, time-sensitive requests)
- canWait: important but not urgent (questions, updates)
- aiHandled: low priority or informational (acknowledgements, FYI, automated)
Give the category, a confidence between 0 and 1, a one or two sentence reasoning,
and the key phrases that influenced the decision as signals."""


class PydanticAIGenerationService:
    """``GenerationService`` implementation on top of pydantic-ai agents."""

    def __init__(self, model: Union[str, Model], *, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._timeout = timeout
        self._summarizer: Agent[None, GeneratedSummary] = Agent(
            model, output_type=GeneratedSummary, system_prompt=SUMMARY_PROMPT, defer_model_check=True
        )
        self._extractors: Dict[ExtractionKind, Agent[None, List[ExtractedItem]]] = {
            kind: Agent(model, output_type=List[ExtractedItem], system_prompt=prompt, defer_model_check=True)
            for kind, prompt in EXTRACTION_PROMPTS.items()
        }
        self._classifier: Agent[None, Classification] = Agent(
            model, output_type=Classification, system_prompt=CLASSIFY_PROMPT, defer_model_check=True
        )

    async def _run(self, agent: Agent[None, Any], prompt: str, task: str) -> Any:
        # the model call is cancelled once the dispatch deadline is spent
        try:
            result = await asyncio.wait_for(agent.run(prompt), timeout=request_timeout(self._timeout))
        except asyncio.TimeoutError as e:
            logger.warning(f"Generation task '{task}' timed out")
            raise CollaboratorUnavailableError("generation request timed out", collaborator="generation") from e
        except Exception as e:
            logger.warning(f"Generation task '{task}' failed: {type(e).__name__}")
            raise CollaboratorUnavailableError(
                f"generation failed: {type(e).__name__}", collaborator="generation"
            ) from e
        return result.output

    async def summarize(self, text: str) -> GeneratedSummary:
        return await self._run(self._summarizer, f"Summarize this conversation:\n\n{text}", "summarize")

    async def extract(self, text: str, kind: ExtractionKind) -> List[ExtractedItem]:
        items = await self._run(self._extractors[kind], f"Analyze this conversation:\n\n{text}", f"extract:{kind.value}")
        return list(items or [])

    async def classify(self, text: str) -> Classification:
        return await self._run(self._classifier, f'Categorize this message: "{text}"', "classify")
