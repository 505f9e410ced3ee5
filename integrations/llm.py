"""
LLM client returning schema-shaped JSON.

invoke(prompt, schema) sends the prompt with the JSON schema to Claude and
returns the parsed object. Callers treat it as an opaque capability; tests
replace it with a stub exposing the same method.
"""

import json
import re
from typing import Optional
import anthropic
import structlog

from config import settings
from exceptions import LLMError, IntegrationNotConfiguredError

logger = structlog.get_logger(__name__)

SYSTEM_PROMPT = """You are an operations analyst for a warehouse fulfillment team.
Answer only with a single JSON object that conforms to the JSON schema given
in the request. Do not wrap it in prose."""


def parse_json_response(response_text: str) -> dict:
    """
    Decode a JSON object from model output.

    Tolerates markdown code fences around the object.

    Raises:
        LLMError: Output is not a JSON object
    """
    cleaned = response_text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r'^```(?:json)?\s*', '', cleaned)
        cleaned = re.sub(r'\s*```$', '', cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("llm_json_parse_failed", response_preview=response_text[:500], error=str(e))
        raise LLMError("LLM returned invalid JSON", details={"preview": response_text[:200]})

    if not isinstance(data, dict):
        raise LLMError("LLM returned JSON that is not an object")

    return data


class LLMClient:
    """Claude-backed JSON generation."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 2048,
        client: Optional[anthropic.Anthropic] = None
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.Anthropic(api_key=api_key)

    @classmethod
    def from_settings(cls) -> "LLMClient":
        if not settings.anthropic_api_key:
            logger.warning("llm_not_configured")
            raise IntegrationNotConfiguredError("llm", ["anthropic_api_key"])
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
        )

    def invoke(self, prompt: str, schema: dict) -> dict:
        """
        Run one prompt and return the schema-shaped result.

        Raises:
            LLMError: API failure, unparseable output or missing required fields
        """
        content = (
            f"{prompt}\n\n"
            f"Respond with JSON matching this schema:\n{json.dumps(schema, indent=2)}"
        )

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[{
                    "role": "user",
                    "content": content
                }]
            )
        except anthropic.APIError as e:
            logger.error("llm_api_error", error=str(e))
            raise LLMError(f"LLM API error: {e}")

        response_text = response.content[0].text
        logger.debug("llm_response_received", response_length=len(response_text))

        data = parse_json_response(response_text)

        missing = [key for key in schema.get("required", []) if key not in data]
        if missing:
            logger.error("llm_response_incomplete", missing=missing)
            raise LLMError("LLM response is missing required fields", details={"missing": missing})

        return data
