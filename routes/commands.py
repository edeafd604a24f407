"""
Command palette API routes (FastAPI)
Lists the editor commands and dispatches them to the instruction routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from routes.instructions import SelectionRequest, get_runtime, run_instruction, run_stored_instruction
from services.instruct_runtime import InstructRuntime

logger = logging.getLogger(__name__)

commands_bp = APIRouter(prefix='/api/commands', tags=['commands'])

COMMANDS = [
    {'id': 'instruct', 'name': 'Instruct', 'multiple': False, 'source': 'prompt',
     'hotkeys': [{'modifiers': ['Mod'], 'key': '/'}]},
    {'id': 'instruct-multiple', 'name': 'Instruct - Multiple', 'multiple': True, 'source': 'prompt',
     'hotkeys': []},
    {'id': 'find-instruction', 'name': 'Find Instruction', 'multiple': False, 'source': 'history',
     'hotkeys': []},
    {'id': 'find-instruction-multiple', 'name': 'Find Instruction - Multiple', 'multiple': True,
     'source': 'history', 'hotkeys': []},
]
COMMANDS_BY_ID = {command['id']: command for command in COMMANDS}


class CommandRequest(SelectionRequest):
    """Payload for a command run; ``multiple`` is taken from the command itself."""
    instruction: Optional[str] = None
    instruction_id: Optional[int] = Field(default=None, alias='instructionId')


@commands_bp.get('')
async def get_commands():
    return {'success': True, 'commands': COMMANDS, 'count': len(COMMANDS)}


@commands_bp.post('/{command_id}')
async def run_command(command_id: str, body: CommandRequest, runtime: InstructRuntime = Depends(get_runtime)):
    command = COMMANDS_BY_ID.get(command_id)
    if not command:
        raise HTTPException(status_code=404, detail=f'Unknown command: {command_id}')

    body.multiple = command['multiple']
    logger.info(f"Running command '{command['name']}'")

    if command['source'] == 'history':
        if body.instruction_id is None:
            raise HTTPException(status_code=400, detail='instructionId is required')
        return await run_stored_instruction(runtime, body.instruction_id, body)

    if body.instruction is None:
        raise HTTPException(status_code=400, detail='instruction is required')
    return await run_instruction(runtime, body.instruction, body)
