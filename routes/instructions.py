"""
Instruction API routes (FastAPI)
Handles instruction history lookups and running instructions on a selection
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from services.completion_service import CompletionOutcome
from services.instruct_runtime import InstructRuntime
from services.instruction_store import InstructionNotFoundError, InstructionStoreError

logger = logging.getLogger(__name__)

instructions_bp = APIRouter(prefix='/api/instructions', tags=['instructions'])


class SelectionRequest(BaseModel):
    """Editor state sent with every instruction run."""
    model_config = ConfigDict(populate_by_name=True)

    selection: str = ""
    multiple: bool = False
    has_document: bool = Field(default=True, alias='hasDocument')


class InstructRequest(SelectionRequest):
    instruction: str


def get_runtime(request: Request) -> InstructRuntime:
    return request.app.state.runtime


def require_document(body: SelectionRequest):
    if not body.has_document:
        raise HTTPException(status_code=409, detail='No active document')


def outcome_response(outcome: CompletionOutcome):
    return {'success': True, **outcome.to_dict()}


async def run_instruction(runtime: InstructRuntime, text: str, body: SelectionRequest):
    require_document(body)
    if not text.strip():
        raise HTTPException(status_code=400, detail='Instruction cannot be empty')
    outcome = await runtime.completion_service.instruct(text, body.selection, body.multiple)
    return outcome_response(outcome)


async def run_stored_instruction(runtime: InstructRuntime, instruction_id: int, body: SelectionRequest):
    require_document(body)
    try:
        outcome = await runtime.completion_service.instruct_with(instruction_id, body.selection, body.multiple)
    except InstructionNotFoundError:
        raise HTTPException(status_code=404, detail='Instruction not found')
    except InstructionStoreError as e:
        logger.error(f"Failed to run instruction {instruction_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error running instruction {instruction_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to run instruction: {str(e)}")
    return outcome_response(outcome)


@instructions_bp.get('')
async def get_instructions(query: Optional[str] = None, runtime: InstructRuntime = Depends(get_runtime)):
    """Instruction suggestions, most used first, filtered by ``query``."""
    try:
        instructions = await runtime.store.get_suggestions(query or '')
        return {
            'success': True,
            'instructions': [instruction.to_dict() for instruction in instructions],
            'count': len(instructions),
        }
    except InstructionStoreError as e:
        logger.error(f"Failed to load instructions: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error loading instructions: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load instructions: {str(e)}")


@instructions_bp.get('/{instruction_id}')
async def get_instruction(instruction_id: int, runtime: InstructRuntime = Depends(get_runtime)):
    try:
        instruction = await runtime.store.get_instruction(instruction_id)
        return {'success': True, 'instruction': instruction.to_dict()}
    except InstructionNotFoundError:
        raise HTTPException(status_code=404, detail='Instruction not found')
    except InstructionStoreError as e:
        logger.error(f"Failed to load instruction {instruction_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error loading instruction {instruction_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to load instruction: {str(e)}")


@instructions_bp.post('/instruct')
async def instruct(body: InstructRequest, runtime: InstructRuntime = Depends(get_runtime)):
    """Run a typed instruction on the selection and return the replacement text."""
    return await run_instruction(runtime, body.instruction, body)


@instructions_bp.post('/{instruction_id}/instruct')
async def instruct_with_stored(instruction_id: int, body: SelectionRequest,
                               runtime: InstructRuntime = Depends(get_runtime)):
    """Run an instruction picked from the history."""
    return await run_stored_instruction(runtime, instruction_id, body)
