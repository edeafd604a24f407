"""
OpenAI integration for instruction completions.
This module builds prompts from an instruction plus selected text and sends
them to the chat completions API, one request per chunk.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from openai import APIError, AsyncOpenAI

from config import settings as cfg
from config.settings import InstructSettings


@dataclass
class CompletionResult:
    """Outcome of one completion request; exactly one chunk per result."""
    chunk: str
    prompt: str
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text)

    def to_dict(self):
        return {
            'chunk': self.chunk,
            'text': self.text,
            'error': self.error,
        }


def build_prompt(instruction_text: str, chunk: str = "") -> str:
    """Join instruction and chunk with the prompt delimiter; an empty chunk sends the instruction alone."""
    if not chunk:
        return instruction_text
    return f"{instruction_text}{cfg.PROMPT_DELIMITER}{chunk}"


class OpenAIClient:
    """Sends instruction prompts to the OpenAI chat completions API."""

    def __init__(self, settings: InstructSettings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self.model = settings.model

        if client is not None:
            self.client = client
        elif settings.api_key:
            # No retries: a failed slot is reported as-is
            self.client = AsyncOpenAI(
                api_key=settings.api_key,
                timeout=settings.request_timeout,
                max_retries=0,
            )
            logging.info(f"OpenAI client configured: model={self.model}, timeout={settings.request_timeout}s")
        else:
            logging.warning("OpenAI API key is not configured; completion requests will fail")
            self.client = None

        if self.model not in cfg.AVAILABLE_MODELS:
            logging.warning(f"Model '{self.model}' not in models list. Available models: {cfg.AVAILABLE_MODELS}")

    def _request_params(self, prompt: str) -> dict:
        return {
            'model': self.model,
            'messages': [
                {
                    'role': 'user',
                    'content': prompt,
                },
            ],
            'temperature': self.settings.temperature,
            'max_tokens': int(self.settings.max_tokens),
            'top_p': self.settings.top_p,
            'frequency_penalty': self.settings.frequency_penalty,
            'presence_penalty': self.settings.presence_penalty,
        }

    async def complete(self, instruction_text: str, chunk: str = "") -> CompletionResult:
        """Request one completion for ``instruction_text`` applied to ``chunk``.

        Never raises: API and network failures are returned in ``error`` and an
        empty response leaves ``text`` as None.
        """
        prompt = build_prompt(instruction_text, chunk)
        result = CompletionResult(chunk=chunk, prompt=prompt)

        if self.client is None:
            result.error = "OpenAI API key is not configured"
            return result

        try:
            response = await self.client.chat.completions.create(**self._request_params(prompt))
        except APIError as e:
            logging.error(f"OpenAI API error for chunk of {len(chunk)} chars: {e}")
            result.error = f"OpenAI API error: {e}"
            return result
        except Exception as e:
            logging.error(f"OpenAI request failed: {e}")
            result.error = f"Request failed: {e}"
            return result

        choices = getattr(response, 'choices', None) or []
        if not choices:
            logging.warning("OpenAI response contained no choices")
            return result

        message = getattr(choices[0], 'message', None)
        content = getattr(message, 'content', None) if message is not None else None
        if content:
            result.text = content
        else:
            logging.debug("OpenAI response choice had no text content")
        return result

    async def complete_many(self, instruction_text: str, chunks: List[str]) -> List[CompletionResult]:
        """Request one completion per chunk concurrently, results in chunk order."""
        logging.info(f"Requesting {len(chunks)} completions concurrently")
        return list(await asyncio.gather(*(self.complete(instruction_text, chunk) for chunk in chunks)))
