from typing import List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from app.logging_config import get_logger
from app.services.llm.base import LLMProvider, LLMProviderError, LLMResponse, ToolCall

logger = get_logger("llm.openai")


class _FunctionCall(BaseModel):
    name: str
    arguments: Optional[str] = None


class _ToolCallBody(BaseModel):
    id: str = ""
    function: _FunctionCall


class _ChoiceMessage(BaseModel):
    content: Optional[str] = None
    tool_calls: Optional[List[_ToolCallBody]] = None


class _Choice(BaseModel):
    message: _ChoiceMessage = _ChoiceMessage()


class _Completion(BaseModel):
    """Subset of the chat completions response this provider reads."""

    model: Optional[str] = None
    choices: List[_Choice] = []
    usage: Optional[dict] = None


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-5-mini",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds
        self.base_url = "https://api.openai.com/v1/chat/completions"
        self._transport = transport

    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        tools: Optional[List[dict]] = None,
    ) -> LLMResponse:
        """Generate response from OpenAI."""

        model = model or self.default_model
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = tools
        logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        logger.debug(f"OpenAI response status: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"OpenAI error: {response.text}")
            raise LLMProviderError(f"OpenAI API error: {response.status_code} - {response.text}")

        try:
            completion = _Completion.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.error(f"OpenAI malformed response: {response.text[:200]}")
            raise LLMProviderError(f"OpenAI API returned an unexpected body: {exc}") from exc

        content = ""
        tool_calls: List[ToolCall] = []
        if completion.choices:
            message = completion.choices[0].message
            content = message.content or ""
            tool_calls = [
                ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
                for call in message.tool_calls or []
            ]
        logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}, tool_calls={len(tool_calls)}")

        return LLMResponse(
            content=content,
            model=completion.model or model,
            usage=completion.usage,
            tool_calls=tool_calls,
        )
