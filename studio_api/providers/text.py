import httpx

from studio_api.config import Settings
from studio_api.models.response import EnhanceResponse
from studio_api.prompts import ENHANCE_SYSTEM_PROMPT
from studio_api.providers.base import MalformedResponseError, Provider


class OpenAITextProvider(Provider):
    """Prompt rewriting through any OpenAI-compatible chat-completions API."""

    name = "openai"
    credential = "openai_api_key"

    async def invoke(self, client: httpx.AsyncClient, prompt: str, settings: Settings) -> EnhanceResponse:
        return await self._guard(self._enhance(client, prompt, settings))

    async def _enhance(self, client: httpx.AsyncClient, prompt: str, settings: Settings) -> EnhanceResponse:
        api_key = self.require_key(settings)
        response = await client.post(
            f"{settings.openai_base_url.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {api_key}"},
            json={
                "model": settings.openai_model,
                "messages": [
                    {"role": "system", "content": ENHANCE_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "temperature": 0.7,
                "max_tokens": 1000,
                "response_format": {"type": "json_object"},
            },
        )
        self.check_response(response)
        content = response.json()["choices"][0]["message"].get("content")
        if not content:
            raise MalformedResponseError(self.name, "no response content")
        return EnhanceResponse.model_validate_json(content)


TEXT_PROVIDERS: tuple[OpenAITextProvider, ...] = (OpenAITextProvider(),)
