import re
import json
import logging
from typing import Any, Dict, Optional

import openai
from openai import OpenAI
from dotenv import load_dotenv

from utils import ConfigHelper

load_dotenv()

logger = logging.getLogger(__name__)

_client: Optional[OpenAI] = None
_client_key: Optional[str] = None


class AIUnavailableError(Exception):
    """The language-model service cannot be reached or refuses to serve us"""


def get_openai_client() -> Optional[OpenAI]:
    """Return a shared OpenAI client, or None when no API key is configured"""
    global _client, _client_key

    api_key = ConfigHelper.get_openai_config()['api_key']
    if not api_key:
        return None

    if _client is None or _client_key != api_key:
        _client = OpenAI(api_key=api_key)
        _client_key = api_key

    return _client


def is_unavailable_error(error: Exception) -> bool:
    """Quota exhaustion, rate limiting, 5xx and connection failures"""
    if isinstance(error, (AIUnavailableError, openai.RateLimitError, openai.APIConnectionError)):
        return True

    if isinstance(error, openai.APIStatusError):
        return error.status_code == 429 or error.status_code >= 500

    return getattr(error, 'code', None) == 'insufficient_quota'


def chat_json(system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> Dict[str, Any]:
    """Send one chat completion and decode the first JSON object in the reply"""
    client = get_openai_client()
    if client is None:
        raise AIUnavailableError("OPENAI_API_KEY is not configured")

    response = client.chat.completions.create(
        model=ConfigHelper.get_openai_config()['model'],
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ],
        temperature=temperature,
        max_tokens=max_tokens
    )

    content = response.choices[0].message.content
    if not content:
        raise ValueError("No response from OpenAI")

    return extract_json_object(content)


def extract_json_object(text: str) -> Dict[str, Any]:
    """Decode the outermost {...} block of a model reply"""
    json_match = re.search(r'\{[\s\S]*\}', text or '')
    if not json_match:
        raise ValueError("No valid JSON found in response")

    result = json.loads(json_match.group(0))
    if not isinstance(result, dict):
        raise ValueError("Response JSON is not an object")

    return result
