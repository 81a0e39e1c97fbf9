import logging
from typing import Any, Optional, Protocol

from openai import APIConnectionError, APIError, AsyncOpenAI, AuthenticationError, RateLimitError

from ..config import settings
from ..errors import CollaboratorNotConfiguredError, CollaboratorUnavailableError

logger = logging.getLogger(__name__)


class PlanCollaborator(Protocol):
    async def complete(self, instructions: str, payload: str) -> str:
        ...


class OpenAIPlanCollaborator:
    """Chat-completions collaborator that turns a plan request into raw text."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        json_mode: Optional[bool] = None,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model or settings.openai_model
        self.temperature = settings.openai_temperature if temperature is None else temperature
        self.json_mode = settings.openai_json_mode if json_mode is None else json_mode
        resolved_key = api_key or settings.openai_api_key
        if client is not None:
            self.client = client
        elif resolved_key:
            self.client = AsyncOpenAI(api_key=resolved_key)
        else:
            logger.warning("OpenAI API key not configured - plan generation will not be available")
            self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    async def complete(self, instructions: str, payload: str) -> str:
        if self.client is None:
            raise CollaboratorNotConfiguredError("Missing OPENAI_API_KEY.")

        params: dict = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": [
                {"role": "system", "content": instructions},
                {"role": "user", "content": payload},
            ],
        }
        if self.json_mode:
            params["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**params)
        except AuthenticationError as error:
            logger.error("OpenAI authentication failed: %s", error)
            raise CollaboratorUnavailableError("LLM processing failed.") from error
        except RateLimitError as error:
            logger.error("OpenAI rate limit exceeded: %s", error)
            raise CollaboratorUnavailableError("LLM processing failed.") from error
        except APIConnectionError as error:
            logger.error("OpenAI connection error: %s", error)
            raise CollaboratorUnavailableError("LLM processing failed.") from error
        except APIError as error:
            logger.error("OpenAI API error: %s", error)
            raise CollaboratorUnavailableError("LLM processing failed.") from error

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
