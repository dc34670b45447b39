import pytest

from conftest import FakeLLM
from core.errors import ConfigurationError
from services.chat_assistant import MAX_CONTEXT_CHARS, ChatAssistant, context_prompt


def test_analyze_uses_the_page_prompt():
    llm = FakeLLM("3 orders stuck")
    assistant = ChatAssistant("", "gpt-test", llm=llm)

    answer = assistant.analyze("cls-management", {"stuck": 3}, "What is stuck?")

    assert answer == "3 orders stuck"
    system, user = llm.calls[0]
    assert system["role"] == "system"
    assert "Carrier Load Selection" in system["content"]
    assert '"stuck": 3' in user["content"]
    assert "User query: What is stuck?" in user["content"]


def test_unknown_page_gets_the_generic_prompt():
    llm = FakeLLM()
    ChatAssistant("", "gpt-test", llm=llm).summarize("other", {})
    assert llm.calls[0][0]["content"] == "You are a helpful assistant that analyzes data and provides insights."


def test_chat_replays_history_before_the_new_message():
    llm = FakeLLM()
    history = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
    ChatAssistant("", "gpt-test", llm=llm).chat("database-errors", {"totalErrors": 2}, history, "why?")

    messages = llm.calls[0]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert "totalErrors" in messages[0]["content"]
    assert messages[-1] == {"role": "user", "content": "why?"}


def test_large_page_data_is_truncated():
    prompt = context_prompt("release-manager", {"blob": "x" * (MAX_CONTEXT_CHARS * 2)})
    assert "... (data truncated due to size limits)" in prompt
    assert len(prompt) < MAX_CONTEXT_CHARS + 400


def test_missing_key_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        ChatAssistant("", "gpt-test").analyze("cls-management", {}, "q")


def test_model_failures_are_wrapped():
    llm = FakeLLM(error=TimeoutError("read timed out"))
    with pytest.raises(RuntimeError, match="Failed to call OpenAI API: read timed out"):
        ChatAssistant("", "gpt-test", llm=llm).summarize("cls-management", {})
