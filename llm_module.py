# llm_module.py
# Version 3.0: Chat brains for the agent
# GeminiBrain talks to Google's hosted models; LocalBrain keeps the KoboldCpp
# server option for running fully offline. Both expose complete(prompt).

import asyncio
import os

import requests
from google import genai

from bot_state import add_log


class BrainError(Exception):
    """Raised when a brain cannot produce a completion (network, quota, model)."""


class GeminiBrain:
    """Google Gemini via the google-genai SDK"""

    def __init__(self, api_key=None, model_name="gemini-1.5-flash"):
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise BrainError("GOOGLE_API_KEY not found in environment.")
        self.client = genai.Client(api_key=self.api_key)
        self.model_name = model_name
        add_log(f"🧠 Gemini brain ready - model: {self.model_name}")

    async def complete(self, prompt: str) -> str:
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=prompt,
            )
        except Exception as e:
            raise BrainError(f"Gemini request failed: {e}") from e

        text = (response.text or "").strip()
        if not text:
            raise BrainError("Gemini returned an empty response")
        return text


class LocalBrain:
    """KoboldCpp server (api/v1/generate) for an offline setup"""

    def __init__(self, server_url="http://127.0.0.1:5001", max_length=80, timeout=30):
        self.api_url_generate = f"{server_url}/api/v1/generate"
        self.max_length = max_length
        self.timeout = timeout
        add_log(f"🧠 LocalBrain initialized - Target: {server_url}")

    async def complete(self, prompt: str) -> str:
        # requests is blocking; keep the event loop free for game packets
        return await asyncio.to_thread(self._generate, prompt)

    def _generate(self, prompt: str) -> str:
        payload = {
            "prompt": prompt,
            "max_length": self.max_length,
            "temperature": 0.7,
            "stop_sequence": ["\n\n", "Player "],
        }
        try:
            response = requests.post(self.api_url_generate, json=payload, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise BrainError(f"KoboldCpp request failed: {e}") from e

        try:
            text = result['results'][0]['text'].strip()
        except (KeyError, IndexError, TypeError) as e:
            raise BrainError(f"Unexpected KoboldCpp response: {result}") from e
        if not text:
            raise BrainError("KoboldCpp returned an empty response")
        return text


def build_brain(ai_settings):
    """Pick the configured backend, or None when AI chat is disabled."""
    if not ai_settings.enabled:
        return None
    if ai_settings.backend == "kobold":
        return LocalBrain(server_url=ai_settings.kobold_url)
    return GeminiBrain(model_name=ai_settings.model)
