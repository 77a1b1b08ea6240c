"""
OpenAI chat wrapper exposing the same ``prompt(...).text()`` interface as
``llm`` models, so either can be handed to the enrichment code.
"""

import os
from typing import Any, Dict, List, Optional

from openai import OpenAI

DEBUG = os.environ.get("DEBUG", "0") == "1"
TEST_MODE = os.environ.get("TEST_MODE", "0") == "1"

DEFAULT_MODEL = os.environ.get("VOCAB_MODEL", "gpt-4o-mini")
DEFAULT_TIMEOUT = float(os.environ.get("ENRICH_TIMEOUT", "20"))
MAX_COMPLETION_TOKENS = 2000


class Response:
    def __init__(self, content: str) -> None:
        self.content = content

    def text(self) -> str:
        return self.content


class OpenAIModel:
    """Wrapper for OpenAI API to match expected interface."""
    def __init__(self, client: Any, model_name: str = DEFAULT_MODEL, timeout: float = DEFAULT_TIMEOUT):
        self.client = client
        self.model_name = model_name
        self.timeout = timeout

    def prompt(self, prompt_text: str, system: str = "") -> Response:
        """Send prompt to OpenAI and return response."""
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt_text})

        if DEBUG:
            print(f"🤖 OpenAI API Call Details:")
            print(f"   Model: {self.model_name}")
            print(f"   User prompt length: {len(prompt_text)} characters")

        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=messages,  # type: ignore
                temperature=0.3,
                max_completion_tokens=MAX_COMPLETION_TOKENS,
                timeout=self.timeout,
            )
            content = response.choices[0].message.content or ""

            if DEBUG:
                print(f"✅ OpenAI API Response:")
                print(f"   Response length: {len(content)} characters")
                print(f"   Usage: {response.usage}")

            return Response(content)

        except Exception as e:
            if DEBUG:
                print(f"❌ OpenAI API call failed: {str(e)}")
            raise


def init_ai(api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            model_name: str = DEFAULT_MODEL,
            timeout: float = DEFAULT_TIMEOUT) -> Optional[OpenAIModel]:
    """Build the enrichment model, or return None when AI is unavailable."""
    if TEST_MODE:
        return None

    api_key = api_key or os.environ.get("OPENAI_API_KEY")
    base_url = base_url or os.environ.get("OPENAI_BASE_URL")
    if not api_key:
        print("Warning: No API key provided. Word enrichment will be disabled.")
        return None

    try:
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "timeout": timeout, "max_retries": 0}
        if base_url:
            client_kwargs["base_url"] = base_url
        client = OpenAI(**client_kwargs)
        print(f"✅ AI initialized with model: {model_name}")
        return OpenAIModel(client, model_name=model_name, timeout=timeout)
    except Exception as e:
        print(f"❌ Failed to initialize AI: {e}")
        return None
