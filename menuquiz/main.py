"""FastAPI application wiring for the menu quiz generator."""

from __future__ import annotations

import logging
import os
import sys

from fastapi import Depends, FastAPI, HTTPException

from .domain import GeneratorConfig
from .metrics import METRICS
from .models import (
    AnswerQuestionRequest,
    QuestionGeneratorResult,
    QuizRequest,
    QuizState,
    SubmitAnswerResponse,
)
from .repositories import QuizStateRepository
from .services import QuizGenerator, QuizSessionService
from .storage import InMemoryQuizStateRepository, SqliteQuizStateRepository

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Menu Quiz", version="0.1.0")


def get_generator() -> QuizGenerator:
    return app.state.generator


def get_session_service() -> QuizSessionService:
    return app.state.session_service


@app.on_event("startup")
def startup() -> None:
    config = GeneratorConfig.from_env()
    state_db = os.getenv("MENUQUIZ_STATE_DB")
    repository: QuizStateRepository
    if state_db:
        repository = SqliteQuizStateRepository(state_db)
        logger.info(f"Persisting quiz sessions to {state_db}")
    else:
        repository = InMemoryQuizStateRepository()
        logger.info("Keeping quiz sessions in memory")

    generator = QuizGenerator(config=config)
    app.state.generator_config = config
    app.state.repository = repository
    app.state.generator = generator
    app.state.session_service = QuizSessionService(repository, generator=generator)


@app.on_event("shutdown")
def shutdown() -> None:
    repository = getattr(app.state, "repository", None)
    if isinstance(repository, SqliteQuizStateRepository):
        repository.close()


@app.get("/health")
def health() -> dict:
    return {"status": "healthy", "metrics": METRICS.snapshot()}


@app.post("/v1/quiz/generate", response_model=QuestionGeneratorResult)
def generate_quiz(
    request: QuizRequest, generator: QuizGenerator = Depends(get_generator)
) -> QuestionGeneratorResult:
    configuration = request.configuration
    return generator.generate(
        request.restaurant_data,
        configuration.question_count,
        configuration.question_types,
        configuration.difficulty,
    )


@app.get("/v1/quiz/sessions/{session_id}", response_model=QuizState)
def get_session(
    session_id: str, service: QuizSessionService = Depends(get_session_service)
) -> QuizState:
    return service.get_state(session_id)


@app.post("/v1/quiz/sessions/{session_id}/start", response_model=QuizState)
def start_session(
    session_id: str,
    request: QuizRequest,
    service: QuizSessionService = Depends(get_session_service),
) -> QuizState:
    try:
        return service.start_quiz(session_id, request.restaurant_data, request.configuration)
    except ValueError as exc:  # illegal session transitions
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/v1/quiz/sessions/{session_id}/answer", response_model=QuizState)
def answer_question(
    session_id: str,
    request: AnswerQuestionRequest,
    service: QuizSessionService = Depends(get_session_service),
) -> QuizState:
    try:
        return service.answer_question(session_id, request.selected_answer_ids)
    except ValueError as exc:  # illegal session transitions
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/v1/quiz/sessions/{session_id}/submit", response_model=SubmitAnswerResponse)
def submit_answer(
    session_id: str, service: QuizSessionService = Depends(get_session_service)
) -> SubmitAnswerResponse:
    try:
        correct, state = service.submit_answer(session_id)
    except ValueError as exc:  # illegal session transitions
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SubmitAnswerResponse(correct=correct, state=state)


@app.post("/v1/quiz/sessions/{session_id}/reset", response_model=QuizState)
def reset_session(
    session_id: str, service: QuizSessionService = Depends(get_session_service)
) -> QuizState:
    return service.reset_quiz(session_id)


__all__ = ["app"]
