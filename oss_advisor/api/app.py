"""
HTTP API
========

A single chat endpoint in front of the agent:

    POST /api/chat   {"message": "...", "chatId": "optional"}
      200 {"response": "..."}
      400 {"error": "..."}                          invalid body
      500 {"error": "Internal Server Error", "details": "..."}

Agent failures (model down, circuit open, timeout) are not HTTP errors:
the agent answers with an apology and the endpoint returns 200.

Run with:
    oss-advisor   (or: uvicorn oss_advisor.main:build_app --factory)
"""

from contextlib import asynccontextmanager
from typing import Any, Protocol

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from oss_advisor.utils.errors import RequestValidationError
from oss_advisor.utils.logger import Logger

logger = Logger("API")


class ChatAgent(Protocol):
    async def run(self, user_input: str, conversation_id: str | None = None) -> str:
        ...

    async def drain(self) -> None:
        ...


def parse_chat_request(body: Any) -> tuple[str, str | None]:
    """
    Validate a decoded chat request body.

    Returns:
        (message, chat_id) with an empty chat id normalized to None

    Raises:
        RequestValidationError: Naming the offending field
    """
    if not isinstance(body, dict):
        raise RequestValidationError("Bad Request: request body must be a JSON object.")

    message = body.get("message")
    if not isinstance(message, str) or not message:
        raise RequestValidationError(
            'Bad Request: "message" is required and must be a string.', field="message"
        )

    chat_id = body.get("chatId")
    if chat_id is not None and not isinstance(chat_id, str):
        raise RequestValidationError(
            'Bad Request: "chatId" must be a string if provided.', field="chatId"
        )

    return message, chat_id or None


def create_app(agent: ChatAgent) -> FastAPI:
    """
    Build the FastAPI application around an agent.

    Pending memory writes are drained on shutdown.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("API started")
        yield
        logger.info("Shutting down, waiting for pending memory writes")
        await agent.drain()

    app = FastAPI(title="Open Source Advisor", version="1.0.0", lifespan=lifespan)
    app.state.agent = agent

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Rejected request: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "Open Source Advisor backend is running!"

    @app.post("/api/chat")
    async def chat(request: Request):
        try:
            body = await request.json()
        except ValueError:
            raise RequestValidationError("Bad Request: body must be valid JSON.")

        message, chat_id = parse_chat_request(body)
        logger.info(f"Received message for chatId: {chat_id or 'None Provided'}")

        try:
            response = await app.state.agent.run(message, chat_id)
        except Exception as e:
            logger.error("Error in POST /api/chat", e)
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error", "details": str(e)},
            )

        return {"response": response}

    return app
