"""
Instruction Store
Keeps the history of used instructions in a single JSON document.

The document is always shaped as ``{"instructions": [...]}`` and is read in full
and rewritten in full on every operation; nothing is cached between calls, so
the file stays the single source of truth. Mutations for one file path run
under a shared asyncio lock, which serializes read-modify-write cycles across
every store instance pointing at that path.
"""

import asyncio
import json
import logging
import time
import weakref
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.file_helpers import ensure_directories, read_text, write_text_atomic

logger = logging.getLogger(__name__)


class InstructionStoreError(Exception):
    """Base exception for instruction history errors."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class DataFileMissingError(InstructionStoreError):
    """The backing document does not exist."""


class DataFileCorruptError(InstructionStoreError):
    """The backing document is not a valid instruction collection."""


class InstructionNotFoundError(InstructionStoreError):
    """No instruction with the requested id exists."""

    def __init__(self, instruction_id: int, path: Optional[Path] = None):
        super().__init__(f"No instruction with id {instruction_id}", path)
        self.instruction_id = instruction_id


@dataclass
class Instruction:
    """A reusable prompt template with a usage counter."""
    id: int
    text: str
    usageCount: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Instruction':
        return cls(id=int(data['id']), text=str(data['text']), usageCount=int(data.get('usageCount', 0)))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def matches(self, text: str) -> bool:
        return self.text.lower() == text.lower()


# One lock per (event loop, resolved path); asyncio locks cannot be shared across loops
_path_locks: 'weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]' = weakref.WeakKeyDictionary()


def _lock_for(path: Path) -> asyncio.Lock:
    loop_locks = _path_locks.setdefault(asyncio.get_running_loop(), {})
    key = str(path.resolve())
    lock = loop_locks.get(key)
    if lock is None:
        lock = loop_locks[key] = asyncio.Lock()
    return lock


class InstructionStore:
    """Find, append and update instructions in the backing JSON document."""

    def __init__(self, data_file):
        self.data_file = Path(data_file)

    @property
    def _lock(self) -> asyncio.Lock:
        return _lock_for(self.data_file)

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------

    def _read_document(self) -> List[Instruction]:
        try:
            content = read_text(self.data_file)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read instruction data file {self.data_file}: {e}")
            raise InstructionStoreError(f"Cannot read {self.data_file}: {e}", self.data_file) from e
        if content is None:
            logger.error(f"Instruction data file not found: {self.data_file}")
            raise DataFileMissingError(f"Instruction data file not found: {self.data_file}", self.data_file)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse instruction data file {self.data_file}: {e}")
            raise DataFileCorruptError(f"Invalid JSON in {self.data_file}: {e}", self.data_file) from e

        if not isinstance(data, dict) or not isinstance(data.get('instructions'), list):
            logger.error(f"Instruction data file {self.data_file} has no 'instructions' list")
            raise DataFileCorruptError(f"{self.data_file} is not an instruction collection", self.data_file)

        try:
            return [Instruction.from_dict(item) for item in data['instructions']]
        except (KeyError, TypeError, ValueError) as e:
            raise DataFileCorruptError(f"Malformed instruction record in {self.data_file}: {e}", self.data_file) from e

    def _write_document(self, instructions: List[Instruction]):
        document = {'instructions': [instruction.to_dict() for instruction in instructions]}
        try:
            write_text_atomic(self.data_file, json.dumps(document, indent=4, ensure_ascii=False))
        except OSError as e:
            logger.error(f"Failed to write instruction data file {self.data_file}: {e}")
            raise InstructionStoreError(f"Cannot write {self.data_file}: {e}", self.data_file) from e

    async def load_instructions(self) -> List[Instruction]:
        """Read the full collection in insertion order.

        Raises DataFileMissingError if the document does not exist and
        DataFileCorruptError if it cannot be parsed as a collection.
        """
        return await asyncio.to_thread(self._read_document)

    async def save_instructions(self, instructions: List[Instruction]):
        async with self._lock:
            await asyncio.to_thread(self._write_document, instructions)

    async def ensure_data_file(self) -> bool:
        """Create the data directory and an empty collection if the file is missing.

        Returns True when a new file was written.
        """
        async with self._lock:
            if self.data_file.exists():
                return False
            await asyncio.to_thread(ensure_directories, self.data_file.parent)
            await asyncio.to_thread(self._write_document, [])
            logger.info(f"Created instruction data file: {self.data_file}")
            return True

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_instruction(self, text: str) -> Optional[Instruction]:
        """Return the first instruction whose text equals ``text`` ignoring case."""
        for instruction in await self.load_instructions():
            if instruction.matches(text):
                return instruction
        logger.debug(f"No stored instruction matches '{text}'")
        return None

    async def get_instruction(self, instruction_id: int) -> Instruction:
        for instruction in await self.load_instructions():
            if instruction.id == instruction_id:
                return instruction
        raise InstructionNotFoundError(instruction_id, self.data_file)

    async def get_suggestions(self, query: str = "") -> List[Instruction]:
        """Instructions containing ``query`` (case-insensitive), most used first."""
        needle = (query or "").lower()
        instructions = await self.load_instructions()
        ranked = sorted(instructions, key=lambda instruction: instruction.usageCount, reverse=True)
        return [instruction for instruction in ranked if needle in instruction.text.lower()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @staticmethod
    def _next_id(instructions: List[Instruction]) -> int:
        candidate = int(time.time() * 1000)
        if instructions:
            candidate = max(candidate, max(instruction.id for instruction in instructions) + 1)
        return candidate

    def _append(self, text: str) -> Instruction:
        instructions = self._read_document()
        instruction = Instruction(id=self._next_id(instructions), text=text, usageCount=1)
        instructions.append(instruction)
        self._write_document(instructions)
        logger.info(f"Appended instruction {instruction.id}: '{text}'")
        return instruction

    def _update(self, instruction: Instruction) -> Instruction:
        instructions = self._read_document()
        for index, existing in enumerate(instructions):
            if existing.id == instruction.id:
                instructions[index] = instruction
                break
        else:
            logger.error(f"Cannot update instruction {instruction.id}: no such id in {self.data_file}")
            raise InstructionNotFoundError(instruction.id, self.data_file)
        self._write_document(instructions)
        logger.info(f"Updated instruction {instruction.id} (usageCount={instruction.usageCount})")
        return instruction

    def _record_usage(self, text: str) -> Instruction:
        for existing in self._read_document():
            if existing.matches(text):
                existing.usageCount += 1
                return self._update(existing)
        return self._append(text)

    def _bump_usage(self, instruction_id: int) -> Instruction:
        for existing in self._read_document():
            if existing.id == instruction_id:
                existing.usageCount += 1
                return self._update(existing)
        raise InstructionNotFoundError(instruction_id, self.data_file)

    async def append_instruction(self, text: str) -> Instruction:
        """Append a new instruction with a fresh id and a usage count of one."""
        async with self._lock:
            return await asyncio.to_thread(self._append, text)

    async def update_instruction(self, instruction: Instruction) -> Instruction:
        """Replace the stored record that has the same id.

        Raises InstructionNotFoundError if the id is not in the collection.
        """
        async with self._lock:
            return await asyncio.to_thread(self._update, instruction)

    async def record_usage(self, text: str) -> Instruction:
        """Bump the matching instruction, or append it if it was never used."""
        async with self._lock:
            return await asyncio.to_thread(self._record_usage, text)

    async def bump_usage(self, instruction_id: int) -> Instruction:
        async with self._lock:
            return await asyncio.to_thread(self._bump_usage, instruction_id)
