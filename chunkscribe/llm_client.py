"""
Copyright © 2026 Vladimir Vaulin-Belskii. All rights reserved.

Lightweight chat-completions client used to post-process transcripts with a user prompt.
"""
import logging
import re
from typing import Any, Dict

import httpx

from .pipeline_config import RemoteClientConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are given the transcript of an audio recording. "
    "Follow the user's instruction using only the information in the transcript."
)


class TextGenerationClient:
    """Send a transcript plus an instruction to an OpenAI-compatible chat endpoint."""

    def __init__(self, config: RemoteClientConfig, timeout: float = 120.0):
        self.config = config
        self.model_name = config.text_generation_model
        self.timeout = timeout

    def _build_messages(self, transcript: str, prompt: str) -> list[dict]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"{prompt.strip()}\n\nTranscript:\n{transcript}"},
        ]

    def _extract_response(self, data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return (message.get("content") or "").strip()

    def _clean_response(self, text: str) -> str:
        """Remove a wrapping markdown fence some models add around plain answers."""
        match = re.fullmatch(r"```[a-zA-Z]*\n(.*)\n```", text.strip(), flags=re.DOTALL)
        return match.group(1).strip() if match else text.strip()

    async def _post(self, endpoint: str, payload: Dict[str, Any], purpose: str) -> Dict[str, Any]:
        logger.debug("Chat %s via %s (%s)", purpose, self.model_name, endpoint)
        base_url = self.config.base_url.rstrip("/") + "/"
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        async with httpx.AsyncClient(base_url=base_url, timeout=self.timeout, headers=headers) as client:
            response = await client.post(endpoint, json=payload)
            response.raise_for_status()
            return response.json()

    async def generate_from_transcript(self, transcript: str, prompt: str) -> str:
        """Return the model's answer, or an empty string when generation fails."""

        if not transcript.strip() or not prompt.strip():
            return ""

        payload = {
            "model": self.model_name,
            "messages": self._build_messages(transcript, prompt),
            "temperature": 0.3,
        }
        try:
            data = await self._post("chat/completions", payload, "text generation")
            return self._clean_response(self._extract_response(data))
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Text generation error: %r", e)
            return ""
