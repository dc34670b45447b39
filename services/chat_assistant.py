import json

from langchain_openai import ChatOpenAI

from core.errors import ConfigurationError
from core.logging_config import logger

MAX_CONTEXT_CHARS = 8000

SYSTEM_PROMPTS = {
    "database-errors": (
        "You are an expert in SQL Server error analysis and troubleshooting. "
        "You help analyze database errors, identify patterns, and suggest solutions for database issues."
    ),
    "cls-management": (
        "You are an expert in WMS (Warehouse Management System) CLS (Carrier Load Selection) queue management and routing. "
        "You help analyze CLS queue data, identify stuck orders, and provide insights about routing issues."
    ),
    "release-manager": (
        "You are an expert in deployment planning and Jira ticket management. "
        "You help analyze deployment plans, summarize release information, and provide insights about deployment schedules."
    ),
}
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant that analyzes data and provides insights."


def system_prompt(page_type: str) -> str:
    return SYSTEM_PROMPTS.get(page_type, DEFAULT_SYSTEM_PROMPT)


def context_prompt(page_type: str, page_data) -> str:
    try:
        data_json = json.dumps(page_data, indent=2, default=str)
    except (TypeError, ValueError) as e:
        logger.error(f"[CHAT] Error serializing page data: {e}")
        return f"Page data for {page_type} is available but could not be serialized."
    if len(data_json) > MAX_CONTEXT_CHARS:
        logger.warning(f"[CHAT] Page data JSON is {len(data_json)} characters, truncating to {MAX_CONTEXT_CHARS}")
        data_json = data_json[:MAX_CONTEXT_CHARS] + "\n\n... (data truncated due to size limits)"
    return (
        f"Here is the current page data for {page_type}:\n\n{data_json}\n\n"
        "Use this data to answer questions and provide context-aware responses."
    )


def analysis_prompt(page_type, page_data, query) -> str:
    return (
        context_prompt(page_type, page_data)
        + f"\n\nUser query: {query}\n\nPlease analyze the data and provide a detailed response to the user's query."
    )


def summary_prompt(page_type, page_data) -> str:
    return (
        context_prompt(page_type, page_data)
        + "\n\nPlease provide a concise summary of the key information in this data. "
        "Focus on the most important points, statistics, and any notable issues or patterns."
    )


class ChatAssistant:
    """
    Relays operator questions about a page's data to a chat model.
    The model client is built on first use so a missing key only fails chat calls.
    """

    def __init__(self, api_key, model, max_tokens=1000, temperature=0.7, base_url=None, llm=None):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.base_url = base_url
        self._llm = llm

    def _client(self):
        if self._llm is not None:
            return self._llm
        if not self.api_key:
            raise ConfigurationError("OpenAI API key is not configured. Please set OPENAI_API_KEY environment variable.")
        self._llm = ChatOpenAI(
            model=self.model,
            api_key=self.api_key,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            base_url=self.base_url,
        )
        return self._llm

    def _invoke(self, messages) -> str:
        llm = self._client()
        logger.debug(f"[CHAT] Calling model {self.model} with {len(messages)} messages")
        try:
            answer = llm.invoke(messages)
        except Exception as e:
            logger.exception(f"[CHAT] Error calling chat model: {e}")
            raise RuntimeError(f"Failed to call OpenAI API: {e}") from e
        return str(answer.content)

    def analyze(self, page_type, page_data, query) -> str:
        return self._invoke([
            {"role": "system", "content": system_prompt(page_type)},
            {"role": "user", "content": analysis_prompt(page_type, page_data, query)},
        ])

    def summarize(self, page_type, page_data) -> str:
        return self._invoke([
            {"role": "system", "content": system_prompt(page_type)},
            {"role": "user", "content": summary_prompt(page_type, page_data)},
        ])

    def chat(self, page_type, page_data, history, message) -> str:
        messages = [{"role": "system", "content": system_prompt(page_type) + "\n\n" + context_prompt(page_type, page_data)}]
        for msg in history or []:
            messages.append({"role": msg.get("role"), "content": msg.get("content")})
        messages.append({"role": "user", "content": message})
        return self._invoke(messages)
