"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from oss_advisor.api import create_app, parse_chat_request
from oss_advisor.utils.errors import RequestValidationError


def make_agent(answer="Here are some repositories...", error=None):
    agent = MagicMock()
    agent.run = AsyncMock(return_value=answer, side_effect=error)
    agent.drain = AsyncMock()
    return agent


class TestChatEndpoint:
    """Tests for POST /api/chat."""

    def test_success(self):
        agent = make_agent()
        client = TestClient(create_app(agent))

        response = client.post("/api/chat", json={"message": "find gumroad", "chatId": "abc"})

        assert response.status_code == 200
        assert response.json() == {"response": "Here are some repositories..."}
        agent.run.assert_awaited_once_with("find gumroad", "abc")

    def test_missing_chat_id(self):
        agent = make_agent()
        client = TestClient(create_app(agent))

        response = client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 200
        agent.run.assert_awaited_once_with("hello", None)

    def test_empty_chat_id_is_treated_as_missing(self):
        agent = make_agent()
        client = TestClient(create_app(agent))

        client.post("/api/chat", json={"message": "hello", "chatId": ""})

        agent.run.assert_awaited_once_with("hello", None)

    @pytest.mark.parametrize("body, field", [
        ({}, '"message"'),
        ({"message": 123}, '"message"'),
        ({"message": ""}, '"message"'),
        ({"message": "hi", "chatId": 42}, '"chatId"'),
    ])
    def test_invalid_body(self, body, field):
        agent = make_agent()
        client = TestClient(create_app(agent))

        response = client.post("/api/chat", json=body)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Bad Request:")
        assert field in response.json()["error"]
        agent.run.assert_not_awaited()

    def test_malformed_json(self):
        agent = make_agent()
        client = TestClient(create_app(agent))

        response = client.post(
            "/api/chat", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        agent.run.assert_not_awaited()

    def test_non_object_body(self):
        client = TestClient(create_app(make_agent()))

        response = client.post("/api/chat", json=["message"])

        assert response.status_code == 400

    def test_agent_exception_is_500(self):
        client = TestClient(create_app(make_agent(error=RuntimeError("vector store exploded"))))

        response = client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal Server Error",
            "details": "vector store exploded",
        }

    def test_apology_is_still_200(self):
        apology = (
            "I apologize, but I'm experiencing technical difficulties. "
            "Please try again in a moment. (Error: Circuit breaker is OPEN)"
        )
        client = TestClient(create_app(make_agent(answer=apology)))

        response = client.post("/api/chat", json={"message": "hello"})

        assert response.status_code == 200
        assert response.json() == {"response": apology}


class TestApp:

    def test_health_text(self):
        client = TestClient(create_app(make_agent()))

        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "Open Source Advisor backend is running!"

    def test_cors_preflight(self):
        client = TestClient(create_app(make_agent()))

        response = client.options("/api/chat", headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "POST",
        })

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_shutdown_drains_pending_writes(self):
        agent = make_agent()

        with TestClient(create_app(agent)) as client:
            client.post("/api/chat", json={"message": "hello", "chatId": "abc"})
            agent.drain.assert_not_awaited()

        agent.drain.assert_awaited_once()


class TestParseChatRequest:

    def test_valid(self):
        assert parse_chat_request({"message": "hi", "chatId": "c1"}) == ("hi", "c1")

    def test_null_chat_id(self):
        assert parse_chat_request({"message": "hi", "chatId": None}) == ("hi", None)

    def test_error_names_field(self):
        with pytest.raises(RequestValidationError) as exc_info:
            parse_chat_request({"message": "hi", "chatId": 7})

        assert exc_info.value.field == "chatId"
        assert exc_info.value.status_code == 400
