"""OpenAI Responses API client for step photo validation."""

from dataclasses import dataclass

from openai import AsyncOpenAI

from site_survey.services.vision import ValidationClient


@dataclass
class OpenAIValidationClient(ValidationClient):
    """Validation client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIValidationClient":
        """Create an OpenAI validation client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def analyze(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        system_prompt: str,
        prompt: str,
        schema: dict[str, object],
    ) -> str:
        """Call OpenAI Responses API with structured outputs."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": system_prompt}],
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": image_data_url},
                    ],
                },
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "step_verdict",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        await self.client.close()
