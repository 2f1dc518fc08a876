"""Tests for the Ollama chat transport."""

from unittest.mock import AsyncMock, patch

from plan_assist.ollama_client import OllamaClient


async def test_chat_requests_json_and_returns_content():
    client = OllamaClient("10.0.0.5", 11434)
    reply = {"message": {"role": "assistant", "content": '{"steps": []}'}}

    with patch.object(client, "_call", AsyncMock(return_value=reply)) as call:
        text = await client.chat("qwen3:4b-instruct", "system", "user", temperature=0.1)

    assert text == '{"steps": []}'
    method, path, payload = call.await_args.args
    assert (method, path) == ("POST", "/api/chat")
    assert payload["format"] == "json"
    assert payload["stream"] is False
    assert payload["options"]["temperature"] == 0.1
    assert payload["messages"][0] == {"role": "system", "content": "system"}


async def test_chat_generate_style_reply():
    client = OllamaClient("10.0.0.5", 11434)
    with patch.object(client, "_call", AsyncMock(return_value={"response": "{}"})):
        assert await client.chat("m", "s", "u") == "{}"


async def test_chat_unexpected_reply_is_empty():
    client = OllamaClient("10.0.0.5", 11434)
    with patch.object(client, "_call", AsyncMock(return_value={"error": "model not found"})):
        assert await client.chat("m", "s", "u") == ""


async def test_test_connection():
    client = OllamaClient("10.0.0.5", 11434)
    assert client.base_url == "http://10.0.0.5:11434"
    with patch.object(client, "_call", AsyncMock(return_value={"version": "0.5.1"})) as call:
        assert await client.test_connection()
    call.assert_awaited_once_with("GET", "/api/version")


async def test_chat_non_object_reply_is_empty():
    client = OllamaClient("10.0.0.5", 11434)
    with patch.object(client, "_call", AsyncMock(return_value=["not", "an", "object"])):
        assert await client.chat("m", "s", "u") == ""
