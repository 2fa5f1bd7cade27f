import logging
import litellm
from typing import Optional, Dict, Any, Callable, Tuple
import json

from recurwise.config import settings

logger = logging.getLogger(__name__)

litellm.drop_params = True

LOCAL_PROVIDERS = {"ollama"}


class AIClient:

    def __init__(self, provider: Optional[str] = None, model: Optional[str] = None):
        self.provider = provider or settings.ai_provider
        self.model = self._get_model_string(model or settings.ai_model)
        self.api_key = self._get_api_key()
        self.api_base = self._get_api_base()

    def _get_model_string(self, model: str) -> str:
        if self.provider == "openrouter":
            if not model.startswith("openrouter/"):
                return f"openrouter/{model}"
            return model
        elif self.provider == "ollama":
            if not model.startswith("ollama/"):
                return f"ollama/{model}"
            return model
        else:
            return model

    def _get_api_key(self) -> Optional[str]:
        if self.provider == "openrouter":
            return settings.openrouter_api_key
        elif self.provider == "anthropic":
            return settings.anthropic_api_key
        elif self.provider == "openai":
            return settings.openai_api_key
        return None

    def _get_api_base(self) -> Optional[str]:
        if self.provider == "openrouter":
            return "https://openrouter.ai/api/v1"
        elif self.provider == "ollama":
            return settings.ai_base_url or "http://localhost:11434"
        return settings.ai_base_url

    def has_credentials(self) -> bool:
        """Local providers need no key; hosted ones do."""
        return self.provider in LOCAL_PROVIDERS or bool(self.api_key)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        json_mode: bool = False,
        timeout: Optional[float] = None
    ) -> Tuple[str, int]:
        """Returns the message content and the total tokens billed for the call."""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if timeout:
            kwargs["timeout"] = timeout

        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            logger.error(f"AI completion error: {e}")
            raise

        content = response.choices[0].message.content
        if not content:
            raise ValueError("Empty response from AI provider")

        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) or 0
        return content, tokens

    async def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.1,
        max_tokens: int = 1000,
        timeout: Optional[float] = None,
        repair: Optional[Callable[[str], str]] = None
    ) -> Tuple[Any, int]:
        """
        Like complete(), but parses the content as JSON.

        `repair` can rewrite the raw text before parsing, for output quirks
        a specific prompt is known to produce.
        """
        response, tokens = await self.complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=True,
            timeout=timeout
        )

        cleaned = response.strip()
        if cleaned.startswith("```json"):
            cleaned = cleaned[7:]
        if cleaned.startswith("```"):
            cleaned = cleaned[3:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()

        if repair is not None:
            cleaned = repair(cleaned)

        return json.loads(cleaned), tokens


_ai_client: Optional[AIClient] = None

def get_ai_client() -> AIClient:
    global _ai_client
    if _ai_client is None:
        _ai_client = AIClient()
    return _ai_client
