"""
OpenAI helpers used by the message processor.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from openai import OpenAI


def make_client(api_key: str, timeout: Optional[float] = 30.0) -> OpenAI:
    """Create an OpenAI client with a per-request timeout and no SDK retries."""
    if not api_key:
        raise EnvironmentError("Missing GenAI API key. Set GENAI_API_KEY.")
    return OpenAI(api_key=api_key, timeout=timeout, max_retries=0)


def chat_completion(
    client: OpenAI,
    model: str,
    messages: List[Dict[str, str]],
    temperature: float = 0.2,
) -> str:
    """
    Call the Chat Completions API and return the first choice's text.

    Args:
        client: Configured OpenAI client.
        model: Name of the model (e.g., 'gpt-4o-mini').
        messages: List of message dicts with 'role' and 'content'.
        temperature: Sampling temperature.
    """
    response = client.chat.completions.create(
        model=model,
        messages=messages,
        temperature=temperature,
    )
    if not response.choices:
        return ""
    return (response.choices[0].message.content or "").strip()
