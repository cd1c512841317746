"""Chat endpoint answering questions about the user's recent health data."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from healthdash.advice.advisor import HealthAdvisor
from healthdash.api.routes.health import load_summary, summary_window
from healthdash.database import get_db
from healthdash.schemas.advice import ChatRequest, ChatResponse

router = APIRouter(prefix="/api/advice", tags=["advice"])


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    session: AsyncSession = Depends(get_db),
) -> ChatResponse:
    """Answer a question with the recent health summary as context.

    Returns 502 when the LLM call fails.
    """
    start, end = summary_window(days=request.days)
    summary = await load_summary(session, start, end)

    advisor = HealthAdvisor()
    try:
        reply = await advisor.chat(session, request.question, summary, request.history)
    except RuntimeError as e:
        raise HTTPException(status_code=502, detail=str(e)) from None

    return ChatResponse(
        reply=reply.content,
        model=reply.model,
        wellness_score=summary.wellness_score,
        days_with_data=summary.days_with_data,
    )
