"""pytest global fixtures: keep tests away from real providers."""

import pytest


@pytest.fixture(autouse=True)
def no_real_apis(monkeypatch):
    """Disable real LLM / Google credentials so every test runs on templates and mocks."""
    for name in (
        "DASHSCOPE_API_KEY",
        "OPENAI_API_KEY",
        "LLM_API_KEY",
        "LLM_MODEL",
        "LLM_BASE_URL",
        "GOOGLE_ACCESS_TOKEN",
        "GOOGLE_CALENDAR_ID",
        "SENDER_EMAIL",
        "REDIS_URL",
        "ENABLE_DOCS",
    ):
        monkeypatch.delenv(name, raising=False)
    # reset the LLM singleton so each test starts clean
    from meeting_agent.infrastructure.llm_factory import reset_llm

    reset_llm()
    yield
    reset_llm()
