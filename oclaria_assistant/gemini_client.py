from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import google.generativeai as genai

from .config import Settings
from .utils import mask_secret

logger = logging.getLogger("oclaria.gemini")


class GeminiClient:
    """Thin wrapper around the Gemini SDK with a configured API key and default model."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK for the process.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK's global API key when one is set and
            prepares the per-process model cache.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: A missing key is only logged here; generate_content raises later
            so the health endpoint keeps serving.
        If Removed: The completion client cannot reach the model.
        Testing Notes: Construct with an empty key and verify generate_content raises.
        """
        self._api_key = settings.gemini_api_key
        self._default_model = _normalize_model_name(settings.gemini_model)
        # Keyed by (model, system instruction); the instruction set is small and fixed.
        self._models: Dict[Tuple[str, Optional[str]], genai.GenerativeModel] = {}
        if self._api_key:
            genai.configure(api_key=self._api_key)
            logger.info("Loaded key: %s model=%s", mask_secret(self._api_key), self._default_model)
        else:
            logger.warning("GEMINI_API_KEY is not set; chat requests will fail")

    @property
    def default_model(self) -> str:
        return self._default_model

    def generate_content(
        self,
        contents: list,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        temperature: float = 0.5,
        max_output_tokens: int = 220,
    ) -> str:
        """Purpose: Generate a response from structured chat contents.
        Inputs/Outputs: Input is a list of role/parts entries and an optional system
            instruction; returns the reply text, or "" when the model produced none.
        Side Effects / State: One network call to the Gemini API; caches the model.
        Dependencies: Uses genai.GenerativeModel.generate_content and _response_text.
        Failure Modes: Raises ValueError without API key or model name; SDK errors
            (google.api_core.exceptions) propagate unchanged for the retry policy.
            A candidate without text parts (MAX_TOKENS, SAFETY) is logged, not raised.
        If Removed: Chat replies cannot be generated.
        Testing Notes: Replace with a fake in tests; never hit the network.
        """
        if not self._api_key:
            raise ValueError("GEMINI_API_KEY is required")
        model_name = _normalize_model_name(model) if model else self._default_model
        if not model_name:
            raise ValueError("Gemini model name is required")

        generation_config = {
            "temperature": temperature,
            "max_output_tokens": max_output_tokens,
        }
        if contents:
            generative_model = self._model(model_name, system_instruction or None)
            response = generative_model.generate_content(contents, generation_config=generation_config)
        else:
            # No conversation turns: send the instructions as the prompt itself.
            generative_model = self._model(model_name, None)
            response = generative_model.generate_content(
                system_instruction or "", generation_config=generation_config
            )
        return _response_text(response, model_name)

    def list_model_names(self) -> List[str]:
        if not self._api_key:
            raise ValueError("GEMINI_API_KEY is required")
        return [model.name for model in genai.list_models()]

    def _model(self, model_name: str, system_instruction: Optional[str]) -> genai.GenerativeModel:
        key = (model_name, system_instruction)
        if key not in self._models:
            self._models[key] = genai.GenerativeModel(model_name, system_instruction=system_instruction)
        return self._models[key]


def _response_text(response: Any, model_name: str) -> str:
    """Purpose: Read the reply text from the first candidate without the SDK quick accessor.
    Inputs/Outputs: Input is a GenerateContentResponse; output is stripped text or "".
    Side Effects / State: Logs a warning with finish_reason when no text came back.
    Dependencies: Reads candidates[0].content.parts.
    Failure Modes: Missing candidates or parts yield "" instead of the SDK's ValueError.
    If Removed: A truncated or blocked reply turns into a failed request.
    Testing Notes: Feed a MAX_TOKENS candidate with no parts and expect "".
    """
    candidates = list(getattr(response, "candidates", None) or [])
    if not candidates:
        logger.warning(
            "Gemini returned no candidates model=%s feedback=%s",
            model_name,
            getattr(response, "prompt_feedback", None),
        )
        return ""
    candidate = candidates[0]
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(getattr(part, "text", "") or "" for part in parts).strip()
    if not text:
        logger.warning(
            "Gemini returned no text model=%s finish_reason=%s",
            model_name,
            _reason_name(getattr(candidate, "finish_reason", None)),
        )
    return text


def _reason_name(reason: Any) -> str:
    return str(getattr(reason, "name", reason))


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: Names copied from list_models ("models/...") would be sent as-is.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
