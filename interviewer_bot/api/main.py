import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from interviewer_bot.api.exceptions import (
    APIException,
    api_exception_handler,
    interview_exception_handler,
    storage_exception_handler,
)
from interviewer_bot.api.middleware import RequestIDMiddleware
from interviewer_bot.api.routes import questions, sessions
from interviewer_bot.core.exceptions import InterviewError
from interviewer_bot.core.storage import StorageError

app = FastAPI(
    title="Interviewer Bot API",
    description="HTTP API for the Interviewer Bot - AI mock interview question flow",
    version="0.1.0",
)

allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    max_age=86400,
)
app.add_middleware(RequestIDMiddleware)

app.include_router(questions.router, prefix="/api/v1", tags=["questions"])
app.include_router(sessions.router, prefix="/api/v1", tags=["sessions"])

app.add_exception_handler(InterviewError, interview_exception_handler)
app.add_exception_handler(StorageError, storage_exception_handler)
app.add_exception_handler(APIException, api_exception_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"error": "ValidationError", "message": "Request validation failed", "details": str(exc)},
    )


@app.get("/")
async def root():
    return {"message": "Interviewer Bot API", "version": "0.1.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
