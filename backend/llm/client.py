"""
Completion client for the llama.cpp model server.
Used only for question generation; every failure comes back as an error string.
"""
import json
import time
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from utils.config import config
from utils.cleaning import ResponseCleaner

logger = logging.getLogger(__name__)


@dataclass
class Completion:
    """Text returned by one /completion call."""
    text: str = ""
    tokens: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LLMClient:
    """
    Thin wrapper over POST {base_url}/completion with retry and backoff.
    """

    def __init__(self, base_url: Optional[str] = None, enabled: Optional[bool] = None):
        self.url = f"{base_url or config.llm.base_url}{config.llm.completion_endpoint}"
        self.enabled = config.llm.enabled if enabled is None else enabled
        self.timeout = config.llm.timeout
        self.attempts = config.llm.max_retries + 1
        logger.info(f"Question model at {self.url} (enabled={self.enabled})")

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST to the server, backing off a little longer after each failure."""
        failure: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                reply = requests.post(self.url, json=body, timeout=self.timeout)
                reply.raise_for_status()
                return reply.json()
            except (requests.exceptions.RequestException, ValueError) as e:
                failure = e
                logger.debug(f"Completion attempt {attempt}/{self.attempts} failed: {e}")
                if attempt < self.attempts:
                    # Timeouts get the longer pause
                    step = 1.0 if isinstance(e, requests.exceptions.Timeout) else 0.5
                    time.sleep(step * attempt)
        raise ConnectionError(f"Model server unreachable after {self.attempts} attempts: {failure}")

    def complete(self, prompt: str, n_predict: int = 800, stop: Optional[List[str]] = None) -> Completion:
        if not self.enabled:
            return Completion(error="LLM client disabled")

        body: Dict[str, Any] = {
            "prompt": prompt,
            "n_predict": n_predict,
            "temperature": config.llm.default_temperature,
            "top_p": config.llm.default_top_p,
            "repeat_penalty": config.llm.default_repeat_penalty,
        }
        if stop:
            body["stop"] = stop

        try:
            data = self._post(body)
        except ConnectionError as e:
            return Completion(error=str(e))

        text = data.get("content") or ""
        if not text.strip():
            return Completion(error="empty completion")
        return Completion(text=text, tokens=data.get("tokens_predicted", 0))

    def generate_json(self, prompt: str, n_predict: int = 800) -> Tuple[Optional[Dict[str, Any]], str]:
        """
        Ask for a JSON object.

        Returns:
            (parsed object, "") on success, or (None, reason) on any failure
        """
        completion = self.complete(prompt, n_predict=n_predict)
        if not completion.ok:
            return None, completion.error

        try:
            parsed = json.loads(ResponseCleaner.clean_json_response(completion.text))
        except json.JSONDecodeError as e:
            logger.warning(f"Unparsable JSON from model: {completion.text[:200]}...")
            return None, f"unparsable JSON: {e}"

        if not isinstance(parsed, dict):
            return None, "expected a JSON object"
        return parsed, ""


# Global client instance
llm_client = LLMClient()
