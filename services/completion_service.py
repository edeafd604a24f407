"""
Completion Service
Turns an instruction and the current selection into the text that replaces it.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ai.openai_client import CompletionResult, OpenAIClient
from services.instruction_store import Instruction, InstructionStore, InstructionStoreError

logger = logging.getLogger(__name__)


@dataclass
class CompletionOutcome:
    """Replacement text for the selection plus anything the user should be told."""
    replacement: str
    instruction: Optional[Instruction] = None
    results: List[CompletionResult] = field(default_factory=list)
    notices: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            'replacement': self.replacement,
            'instruction': self.instruction.to_dict() if self.instruction else None,
            'results': [result.to_dict() for result in self.results],
            'notices': self.notices,
        }


def split_selection(selection: str) -> List[str]:
    """One chunk per line; a trailing newline yields a final empty chunk."""
    return selection.split("\n")


def assemble_replacement(selection: str, results: List[CompletionResult], multiple: bool) -> str:
    """Build the replacement text from completion results.

    - empty selection: the completion alone, or "" when there is none
    - single mode: the selection, a newline, then the completion; the
      selection is returned unchanged when there is no completion
    - multiple mode: per chunk in order, ``chunk\\ncompletion\\n\\n`` for a
      non-empty chunk or the bare completion for an empty one; chunks without
      a completion contribute nothing
    """
    if not selection:
        return (results[0].text or "") if results else ""

    if not multiple:
        completion = results[0].text if results else None
        if not completion:
            return selection
        return selection + "\n" + completion

    parts = []
    for result in results:
        if not result.text:
            continue
        if result.chunk != "":
            parts.append(result.chunk + "\n" + result.text + "\n\n")
        else:
            parts.append(result.text)
    return "".join(parts)


class CompletionService:
    """Records instruction usage, then requests and assembles completions."""

    def __init__(self, store: InstructionStore, client: OpenAIClient):
        self.store = store
        self.client = client

    async def instruct(self, instruction_text: str, selection: str = "", multiple: bool = False) -> CompletionOutcome:
        """Run a typed instruction, adding it to the history if it is new."""
        notices = []
        instruction = None
        try:
            instruction = await self.store.record_usage(instruction_text)
        except InstructionStoreError as e:
            logger.error(f"Failed to record usage of '{instruction_text}': {e}")
            notices.append(f"Instruction history was not updated: {e}")

        outcome = await self._complete(instruction_text, selection, multiple)
        outcome.instruction = instruction
        outcome.notices[:0] = notices
        return outcome

    async def instruct_with(self, instruction_id: int, selection: str = "", multiple: bool = False) -> CompletionOutcome:
        """Run an instruction picked from the history.

        Raises InstructionNotFoundError when ``instruction_id`` is unknown, since
        without the record there is no instruction text to send.
        """
        instruction = await self.store.bump_usage(instruction_id)
        outcome = await self._complete(instruction.text, selection, multiple)
        outcome.instruction = instruction
        return outcome

    async def _complete(self, instruction_text: str, selection: str, multiple: bool) -> CompletionOutcome:
        selection = selection or ""
        if selection and multiple:
            results = await self.client.complete_many(instruction_text, split_selection(selection))
        else:
            results = [await self.client.complete(instruction_text, selection)]

        notices = []
        for index, result in enumerate(results):
            if result.error:
                label = f"chunk {index + 1}" if len(results) > 1 else "completion"
                notices.append(f"No text inserted for {label}: {result.error}")

        replacement = assemble_replacement(selection, results, multiple)
        logger.info(
            f"Completed instruction over {len(results)} chunk(s), "
            f"{sum(1 for result in results if result.text)} with text"
        )
        return CompletionOutcome(replacement=replacement, results=results, notices=notices)
