"""Health adviser: answers questions about a HealthSummary through the LLM."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from healthdash.advice.llm_client import LLMClient, LLMResponse
from healthdash.advice.prompt_builder import build_system_prompt
from healthdash.engine.summary import HealthSummary
from healthdash.models.prompt_log import PromptLog
from healthdash.schemas.advice import ChatTurn

logger = logging.getLogger(__name__)

PROMPT_VERSION = "v1"


@dataclass
class ChatReply:
    content: str
    model: str
    prompt_log_id: int | None = None


class HealthAdvisor:
    """Orchestrates chat calls and logs every one of them."""

    def __init__(self, llm_client: LLMClient | None = None) -> None:
        self._llm = llm_client or LLMClient()

    async def chat(
        self,
        session: AsyncSession,
        question: str,
        summary: HealthSummary,
        history: Sequence[ChatTurn] = (),
    ) -> ChatReply:
        """Answer ``question`` with ``summary`` as context.

        The call is logged as a PromptLog row whether or not it succeeds.

        Raises:
            RuntimeError: The LLM call failed.
        """
        system_prompt = build_system_prompt(summary, PROMPT_VERSION)
        messages = [{"role": turn.role, "content": turn.content} for turn in history]
        messages.append({"role": "user", "content": question})

        llm_response: LLMResponse | None = None
        error_msg: str | None = None
        try:
            llm_response = self._llm.call(system=system_prompt, messages=messages)
        except Exception as e:
            error_msg = str(e)
            logger.error("Chat call failed: %s", error_msg)

        prompt_log = PromptLog(
            prompt_type="chat",
            prompt_version=PROMPT_VERSION,
            model=llm_response.model if llm_response else self._llm.model,
            input_tokens=llm_response.input_tokens if llm_response else None,
            output_tokens=llm_response.output_tokens if llm_response else None,
            latency_ms=llm_response.latency_ms if llm_response else None,
            estimated_cost_usd=llm_response.estimated_cost_usd if llm_response else None,
            prompt_text=f"{system_prompt}\n\n{question}",
            response_text=llm_response.content if llm_response else None,
            success=llm_response is not None,
            error=error_msg,
        )
        session.add(prompt_log)
        await session.commit()

        if llm_response is None:
            raise RuntimeError(f"Failed to generate chat reply: {error_msg}")

        return ChatReply(
            content=llm_response.content,
            model=llm_response.model,
            prompt_log_id=prompt_log.id,
        )
