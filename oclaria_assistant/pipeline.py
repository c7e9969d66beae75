"""Chat request orchestration.

Role:
    Runs one browser request through history sanitizing, fact detection, prompt
    composition, completion, and reply post-processing. Every collaborator is passed
    in by the app factory; nothing is looked up from module state.

Step contracts:
    Sanitize History:
        Reads raw_messages; sets history (no system turns, last detection_window).
    Fact Detection:
        Reads the latest user turn of history; sets fact.
    Fact Rendering:
        Skipped without a fact; sets facts_text.
    Prompt Composition:
        Sets prompt_messages (system prompt, optional FACTS, last history_window turns).
    Completion:
        Sets raw_reply via the completion client (single-retry policy inside).
    Post-process:
        Sets reply from raw_reply with plain-text links.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import ValidationError

from .completion import CompletionClient
from .facts import ProductFact, detect_product_fact, latest_user_text, render_fact
from .models import ConversationMessage
from .pricing import PRICING, PricingTable
from .prompts import PromptComposer
from .steps import PipelineStep, StepRunner
from .utils import normalize_site_urls, rewrite_markdown_links

logger = logging.getLogger("oclaria.pipeline")


@dataclass
class ChatContext:
    """Mutable context passed through each pipeline step."""
    raw_messages: Any
    history: List[ConversationMessage] = field(default_factory=list)
    fact: Optional[ProductFact] = None
    facts_text: Optional[str] = None
    prompt_messages: List[ConversationMessage] = field(default_factory=list)
    raw_reply: str = ""
    reply: str = ""


def sanitize_history(raw_messages: Any, window: int = 8) -> List[ConversationMessage]:
    """Purpose: Turn untrusted client input into a bounded, system-free history.
    Inputs/Outputs: Input is whatever the client sent as "messages"; output is the
        last `window` valid user/assistant messages in chronological order.
    Side Effects / State: None.
    Dependencies: Validates entries with the ConversationMessage model.
    Failure Modes: Non-list input yields []; invalid entries are skipped.
    If Removed: Clients could inject system instructions or unbounded history.
    Testing Notes: Mix system turns and junk entries; only valid user/assistant remain.
    """
    if not isinstance(raw_messages, list):
        return []
    history: List[ConversationMessage] = []
    for entry in raw_messages:
        if isinstance(entry, ConversationMessage):
            message = entry
        elif isinstance(entry, dict):
            try:
                message = ConversationMessage(**entry)
            except (ValidationError, TypeError):
                continue
        else:
            continue
        if message.role == "system":
            continue
        history.append(message)
    if window <= 0:
        return []
    return history[-window:]


def postprocess_reply(text: str) -> str:
    """Purpose: Make model output readable on surfaces without rich links.
    Inputs/Outputs: Input is raw reply text; output has "title: url" links.
    Side Effects / State: None.
    Dependencies: Uses rewrite_markdown_links and normalize_site_urls.
    Failure Modes: None; empty input yields "".
    If Removed: Users see raw markdown link syntax.
    Testing Notes: "See it [here](https://oclaria.com/x)" -> "See it here: https://oclaria.com/x".
    """
    return normalize_site_urls(rewrite_markdown_links(text or "")).strip()


def _has_no_fact(context: ChatContext) -> bool:
    return context.fact is None


class ChatPipeline:
    def __init__(
        self,
        composer: PromptComposer,
        completion: CompletionClient,
        pricing: PricingTable = PRICING,
        detection_window: int = 8,
    ) -> None:
        """Purpose: Wire the collaborators and build the ordered step runner.
        Inputs/Outputs: Inputs are the prompt composer, completion client, pricing
            table, and detection window; no return value.
        Side Effects / State: Constructs a StepRunner with the chat steps.
        Dependencies: Uses StepRunner/PipelineStep and the step methods below.
        Failure Modes: None at init; runtime errors occur within step functions.
        If Removed: The chat endpoint cannot process requests.
        Testing Notes: Instantiate with a fake completion client and run handle().
        """
        self._composer = composer
        self._completion = completion
        self._pricing = pricing
        self._detection_window = detection_window
        self._runner: StepRunner[ChatContext] = StepRunner(
            steps=[
                PipelineStep("sanitize_history", self._step_sanitize_history),
                PipelineStep("fact_detection", self._step_fact_detection),
                PipelineStep("fact_rendering", self._step_fact_rendering, skip_if=_has_no_fact),
                PipelineStep("prompt_composition", self._step_prompt_composition),
                PipelineStep("completion", self._step_completion),
                PipelineStep("postprocess", self._step_postprocess),
            ]
        )

    def run(self, raw_messages: Any) -> ChatContext:
        """Purpose: Run all steps and return the populated context.
        Inputs/Outputs: Input is the raw "messages" value; output is a ChatContext.
        Side Effects / State: Network call through the completion client.
        Dependencies: Uses StepRunner.run.
        Failure Modes: Exceptions from steps propagate to the caller.
        If Removed: Tests and the endpoint lose access to intermediate results.
        Testing Notes: Inspect prompt_messages to verify facts and history trimming.
        """
        context = ChatContext(raw_messages=raw_messages)
        self._runner.run(context)
        return context

    def handle(self, raw_messages: Any) -> ConversationMessage:
        context = self.run(raw_messages)
        return ConversationMessage(role="assistant", content=context.reply)

    def _step_sanitize_history(self, context: ChatContext) -> None:
        context.history = sanitize_history(context.raw_messages, self._detection_window)

    def _step_fact_detection(self, context: ChatContext) -> None:
        # Only the latest user turn is scanned; earlier turns never produce facts.
        context.fact = detect_product_fact(latest_user_text(context.history), pricing=self._pricing)
        if context.fact is None:
            return
        logger.info(
            "fact family=%s key=%s price=%s qualifies=%s",
            context.fact.family_type,
            context.fact.matched_key,
            context.fact.price,
            context.fact.qualifies,
        )

    def _step_fact_rendering(self, context: ChatContext) -> None:
        context.facts_text = render_fact(context.fact, pricing=self._pricing)

    def _step_prompt_composition(self, context: ChatContext) -> None:
        context.prompt_messages = self._composer.compose(context.history, context.facts_text)

    def _step_completion(self, context: ChatContext) -> None:
        context.raw_reply = self._completion.complete(context.prompt_messages)

    def _step_postprocess(self, context: ChatContext) -> None:
        context.reply = postprocess_reply(context.raw_reply)
