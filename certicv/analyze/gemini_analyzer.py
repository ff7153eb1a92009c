"""
Gemini Consistency Analyzer
============================

Uses Google Gemini as the reasoning model behind the Consistency
Analyzer. Drop-in alternative to the OpenAI path: same prompt, same
two-stage parsing, same fallback.
"""

from __future__ import annotations

import logging

from certicv.analyze.consistency import ConsistencyAnalyzer

logger = logging.getLogger("certicv.analyze.gemini_analyzer")


class GeminiConsistencyAnalyzer(ConsistencyAnalyzer):
    """
    Consistency analyzer backed by the Gemini API.

    Overrides the OpenAI transport only; prompt building, parsing and
    fallback are inherited.

    Usage:
        analyzer = GeminiConsistencyAnalyzer(config)   # uses gemini_api_key
        findings = await analyzer.analyze(text, claims)
    """

    @property
    def model_name(self) -> str:
        return self.config.gemini_model

    @property
    def has_credentials(self) -> bool:
        return bool(self.config.gemini_api_key) or self._client is not None

    def _get_client(self):
        """Lazy-initialize the Gemini client."""
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self.config.gemini_api_key)
        return self._client

    async def _call_openai(self, messages: list[dict[str, str]]) -> str:
        """Override: call Gemini instead of OpenAI."""
        return await self._call_gemini(messages)

    async def _call_gemini(self, messages: list[dict[str, str]]) -> str:
        client = self._get_client()

        # Gemini takes one prompt; fold the system message in front
        system_msg = ""
        user_msg = ""
        for msg in messages:
            if msg["role"] == "system":
                system_msg = msg["content"]
            elif msg["role"] == "user":
                user_msg = msg["content"]

        response = await client.aio.models.generate_content(
            model=self.model_name,
            contents=f"{system_msg}\n\n{user_msg}",
            config={
                "temperature": self.settings.temperature,
                "max_output_tokens": self.settings.max_output_tokens,
                "response_mime_type": "application/json",
            },
        )
        logger.debug(f"Gemini response: {len(response.text or '')} chars")
        return response.text
