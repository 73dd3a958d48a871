"""Tests for the OpenAI validation adapter."""

import asyncio
import json

import pytest

from site_survey.adapters.openai_vision_client import OpenAIValidationClient


class _FakeResponses:
    def __init__(self, output_text: str) -> None:
        self.output_text = output_text
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return type("Resp", (), {"output_text": self.output_text})()


class _FakeOpenAI:
    def __init__(self, output_text: str) -> None:
        self.responses = _FakeResponses(output_text)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def _analyze(client: OpenAIValidationClient, reasoning_effort: str | None) -> str:
    return asyncio.run(
        client.analyze(
            model="gpt-4o",
            reasoning_effort=reasoning_effort,
            store=False,
            image_data_url="data:image/jpeg;base64,ZmFrZQ==",
            system_prompt="You review survey photos",
            prompt="Is this a meter?",
            schema={"type": "object"},
        )
    )


def test_openai_validation_client_returns_text() -> None:
    output = json.dumps({"is_valid": True, "description": "ok"})
    fake = _FakeOpenAI(output)
    client = OpenAIValidationClient(client=fake)

    result = _analyze(client, reasoning_effort=None)

    payload = fake.responses.last_payload
    assert result == output
    assert payload["input"][0]["role"] == "system"
    assert payload["text"]["format"]["name"] == "step_verdict"
    assert payload["text"]["format"]["strict"] is True
    assert "reasoning" not in payload


def test_openai_validation_client_passes_reasoning() -> None:
    fake = _FakeOpenAI("{}")
    client = OpenAIValidationClient(client=fake)

    _analyze(client, reasoning_effort="low")

    assert fake.responses.last_payload["reasoning"] == {"effort": "low"}


def test_openai_validation_client_rejects_empty_output() -> None:
    client = OpenAIValidationClient(client=_FakeOpenAI(""))

    with pytest.raises(RuntimeError):
        _analyze(client, reasoning_effort=None)


def test_openai_validation_client_close() -> None:
    fake = _FakeOpenAI("{}")
    client = OpenAIValidationClient(client=fake)

    asyncio.run(client.close())

    assert fake.closed is True
