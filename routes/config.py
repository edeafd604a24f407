"""
Configuration API routes (FastAPI)
Handles plugin settings and model configuration
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from config.settings import AVAILABLE_MODELS, DEFAULT_MODEL, SETTING_BOUNDS
from routes.instructions import get_runtime
from services.instruct_runtime import InstructRuntime
from services.instruction_store import InstructionStoreError

logger = logging.getLogger(__name__)

config_bp = APIRouter(prefix='/api/settings', tags=['settings'])


@config_bp.get('')
async def get_settings(runtime: InstructRuntime = Depends(get_runtime)):
    """Current settings with the API key masked."""
    return {'success': True, 'settings': runtime.settings.public_dict()}


@config_bp.put('')
async def update_settings(request: Request, runtime: InstructRuntime = Depends(get_runtime)):
    """Update settings; only the fields sent are changed."""
    try:
        data = await request.json()
    except ValueError:
        return JSONResponse({'error': 'Request body must be JSON'}, status_code=400)

    if not isinstance(data, dict) or not data:
        return JSONResponse({'error': 'No configuration data provided'}, status_code=400)

    try:
        settings = await runtime.update_settings(data)
    except (ValueError, TypeError) as e:
        return JSONResponse({'error': str(e)}, status_code=400)
    except (OSError, InstructionStoreError) as e:
        logger.error(f"Failed to update settings: {e}")
        return JSONResponse({'error': f'Failed to update settings: {str(e)}'}, status_code=500)

    logger.info("Settings updated successfully")
    return {'success': True, 'settings': settings.public_dict()}


@config_bp.get('/models')
async def get_models(runtime: InstructRuntime = Depends(get_runtime)):
    """Return the selectable models and slider limits for the settings form."""
    return {
        'models': AVAILABLE_MODELS,
        'defaultModel': DEFAULT_MODEL,
        'currentModel': runtime.settings.model,
        'bounds': {
            name: {'min': low, 'max': high, 'step': step}
            for name, (low, high, step) in SETTING_BOUNDS.items()
        },
    }
