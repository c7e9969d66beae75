from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from google.api_core import exceptions as google_exceptions

from .config import Settings
from .models import ConversationMessage

logger = logging.getLogger("oclaria.completion")


class ContentGenerator(Protocol):
    def generate_content(
        self,
        contents: list,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        temperature: float = 0.5,
        max_output_tokens: int = 220,
    ) -> str:
        ...


class CompletionClient:
    """Single completion call with fixed sampling limits and at most one retry."""

    def __init__(
        self,
        generator: ContentGenerator,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Purpose: Bind the model backend, sampling limits, and backoff intervals.
        Inputs/Outputs: Inputs are a content generator (GeminiClient), Settings, and a
            sleep function; no return value.
        Side Effects / State: Stores configuration only.
        Dependencies: GeminiClient or any object with generate_content.
        Failure Modes: None at init.
        If Removed: The chat pipeline cannot reach the completion model.
        Testing Notes: Inject a fake generator and a recording sleep.
        """
        self._generator = generator
        self._model = settings.gemini_model
        self._temperature = settings.temperature
        self._max_output_tokens = settings.max_output_tokens
        self._rate_limit_backoff = settings.rate_limit_backoff_sec
        self._server_error_backoff = settings.server_error_backoff_sec
        self._sleep = sleep

    def complete(self, messages: Sequence[ConversationMessage]) -> str:
        """Purpose: Run the completion with the single-retry policy.
        Inputs/Outputs: Input is the composed message list; output is the reply text.
        Side Effects / State: Network call(s) and possibly one backoff sleep.
        Dependencies: Uses _ask_once and google.api_core exception classes.
        Failure Modes: 429 -> wait rate_limit_backoff and retry once; 5xx -> wait
            server_error_backoff and retry once; other errors propagate immediately;
            a failed retry propagates.
        If Removed: Transient upstream overloads surface as user-facing failures.
        Testing Notes: Simulate TooManyRequests then success and assert two calls.
        """
        system_instruction, contents = to_gemini_contents(messages)
        try:
            return self._ask_once(system_instruction, contents)
        except google_exceptions.TooManyRequests as exc:
            logger.warning(
                "Too many requests upstream (%s); retrying once in %.1fs",
                exc.code,
                self._rate_limit_backoff,
            )
            self._sleep(self._rate_limit_backoff)
        except google_exceptions.ServerError as exc:
            logger.warning(
                "Upstream server error (%s); retrying once in %.1fs",
                exc.code,
                self._server_error_backoff,
            )
            self._sleep(self._server_error_backoff)
        return self._ask_once(system_instruction, contents)

    def _ask_once(self, system_instruction: str, contents: List[Dict[str, object]]) -> str:
        started = time.monotonic()
        reply = self._generator.generate_content(
            contents,
            model=self._model,
            system_instruction=system_instruction,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )
        logger.info("Completion latency: %d ms", int((time.monotonic() - started) * 1000))
        return reply


def to_gemini_contents(
    messages: Sequence[ConversationMessage],
) -> Tuple[str, List[Dict[str, object]]]:
    """Purpose: Split chat messages into a system instruction and Gemini contents.
    Inputs/Outputs: Input is an ordered message list; output is (system_instruction,
        contents) where contents use the "user"/"model" roles.
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Messages with empty content are skipped.
    If Removed: The SDK would receive OpenAI-style roles it does not accept.
    Testing Notes: Two system messages are joined in order; assistant maps to model.
    """
    # Gemini takes one system instruction; keep system messages in their order.
    system_parts: List[str] = []
    contents: List[Dict[str, object]] = []
    for message in messages:
        if not message.content:
            continue
        if message.role == "system":
            system_parts.append(message.content)
            continue
        role = "user" if message.role == "user" else "model"
        contents.append({"role": role, "parts": [{"text": message.content}]})
    return "\n\n".join(system_parts), contents
