from __future__ import annotations

from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from oclaria_assistant.app import create_app
from oclaria_assistant.config import DEFAULT_CATALOG_PATH, Settings


class FakeGenerator:
    """Scripted stand-in for GeminiClient; each outcome is a reply or an exception."""

    def __init__(self, outcomes: Optional[list] = None) -> None:
        self.outcomes = list(outcomes or ["Salam! 👋"])
        self.calls: List[dict] = []

    def generate_content(
        self,
        contents: list,
        model: Optional[str] = None,
        system_instruction: Optional[str] = None,
        temperature: float = 0.5,
        max_output_tokens: int = 220,
    ) -> str:
        self.calls.append(
            {
                "contents": contents,
                "model": model,
                "system_instruction": system_instruction,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            }
        )
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key-123456",
        gemini_model="gemini-test",
        port=8787,
        catalog_path=DEFAULT_CATALOG_PATH,
    )


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def make_client(settings, sleep):
    def _make(generator: FakeGenerator) -> TestClient:
        return TestClient(create_app(settings, generator=generator, sleep=sleep))

    return _make


@pytest.fixture
def client(make_client, generator) -> TestClient:
    return make_client(generator)


@pytest.fixture
def scripted():
    """Build a FakeGenerator from a list of replies/exceptions."""
    return FakeGenerator
