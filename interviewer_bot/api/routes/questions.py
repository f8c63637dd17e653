from typing import Annotated

from fastapi import APIRouter, Depends

from interviewer_bot.api.dependencies import get_question_service
from interviewer_bot.api.schemas import NextQuestionRequest, NextQuestionResponse
from interviewer_bot.core.services import QuestionService

router = APIRouter()


@router.post("/next-question", response_model=NextQuestionResponse)
async def next_question(
    request: NextQuestionRequest,
    question_service: Annotated[QuestionService, Depends(get_question_service)],
) -> NextQuestionResponse:
    """Generate the next interviewer question for a client-held transcript.

    The caller supplies plan and transcript itself; session-backed clients
    should use the ``/sessions`` routes, where both are kept server-side.
    """
    question = await question_service.next_question(
        request.job_title,
        request.job_description,
        request.avatar_type,
        request.language,
        request.turns,
        request.plan,
    )
    return NextQuestionResponse(question=question)
