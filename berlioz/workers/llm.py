from __future__ import annotations

import json
from typing import Any, List, Optional, Sequence, Union

from pydantic_ai import Agent, BinaryContent
from pydantic_ai.messages import ModelMessage, ModelMessagesTypeAdapter
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from berlioz.config import get_settings
from berlioz.constants.default_system_prompt import DefaultSystemPrompt
from berlioz.exceptions import GenerationError
from berlioz.infra.logging_config import get_logger
from berlioz.schemas.messages import GenerationRequest, GenerationResult

logger = get_logger("llm")

UserPrompt = Union[str, List[Union[str, BinaryContent]]]


def _history_to_message_list(history: Sequence[dict[str, Any]]) -> List[ModelMessage]:
    """Convert stored turn contents back into pydantic_ai ModelMessage objects."""
    if not history:
        return []
    # JSON round trip so binary parts are base64-decoded
    return ModelMessagesTypeAdapter.validate_json(json.dumps(list(history)))


def _message_list_to_history(messages: Sequence[ModelMessage]) -> List[dict[str, Any]]:
    """Dump ModelMessage objects as JSON-compatible dicts, one per turn."""
    return json.loads(ModelMessagesTypeAdapter.dump_json(list(messages)))


def _build_user_prompt(request: GenerationRequest) -> UserPrompt:
    """Prompt text plus the media inlined as binary content, as one turn."""
    if request.media is None:
        return request.prompt
    media = BinaryContent(data=request.media.content, media_type=request.media.mime_type)
    return [request.prompt, media]


def _extract_reply_text(output: Any) -> str:
    if not isinstance(output, str) or not output.strip():
        raise ValueError("Model response contained no text")
    return output


class GenerationOrchestrator:
    """Runs one model turn on top of a thread's history."""

    def __init__(
        self,
        model: Union[Model, str],
        system_prompt: Optional[str] = None,
    ) -> None:
        self._agent = Agent(model, instructions=system_prompt or None)

    async def generate(
        self,
        history: Sequence[dict[str, Any]],
        request: GenerationRequest,
    ) -> GenerationResult:
        """
        Continue the conversation seeded with history (empty = new thread).

        Returns the reply text and the full updated history (prior + new).
        If no text can be read from the response, the error description is
        returned as the reply instead.

        Raises:
            GenerationError: the history could not be decoded or the model call failed.
        """
        try:
            message_history = _history_to_message_list(history)
            result = await self._agent.run(
                _build_user_prompt(request),
                message_history=message_history or None,
            )
        except Exception as e:
            raise GenerationError(f"{type(e).__name__}: {e}") from e

        updated_history = _message_list_to_history(result.all_messages())
        try:
            reply_text = _extract_reply_text(result.output)
        except ValueError as e:
            logger.warning("Could not read model reply: %s", e)
            reply_text = str(e)
        return GenerationResult(reply_text=reply_text, updated_history=updated_history)


def build_orchestrator_from_env() -> GenerationOrchestrator:
    settings = get_settings()
    logger.info(
        "LLM config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; set it to a valid LiteLLM or provider API key to avoid 401 errors."
        )
    provider = LiteLLMProvider(
        api_key=settings.litellm_api_key, api_base=settings.litellm_api_base
    )
    model = OpenAIChatModel(settings.llm_model, provider=provider)
    return GenerationOrchestrator(
        model,
        system_prompt=settings.llm_system_prompt or DefaultSystemPrompt.CONTENT.strip(),
    )
