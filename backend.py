from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import os
import uvicorn


# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()  # Load .env file if it exists

from config import settings as cfg
from routes.commands import commands_bp
from routes.config import config_bp
from routes.instructions import instructions_bp
from services.instruct_runtime import InstructRuntime
from services.instruction_store import InstructionStoreError
from services.settings_service import SettingsService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(), logging.FileHandler(cfg.LOG_FILE)]
)
logger = logging.getLogger(__name__)


def create_app(settings_service: SettingsService = None, client_factory=None) -> FastAPI:
    """Build the API app; tests pass their own settings store and client factory."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """FastAPI lifespan event handler for startup and shutdown."""
        logger.info('Application starting up')
        runtime_kwargs = {'client_factory': client_factory} if client_factory else {}
        runtime = InstructRuntime(settings_service or SettingsService(), **runtime_kwargs)
        try:
            await runtime.start()
        except (OSError, InstructionStoreError) as e:
            logger.error(f'Failed to initialize instruction data file: {e}')
        app.state.runtime = runtime

        yield

        logger.info('Application shutting down')

    app = FastAPI(title='Instruct API', version='1.0.0', lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    app.include_router(instructions_bp)
    app.include_router(commands_bp)
    app.include_router(config_bp)

    @app.get('/api/status')
    def get_status():
        runtime = app.state.runtime
        return JSONResponse(status_code=200, content={
            'status': 'Open API Loaded',
            'model': runtime.settings.model,
            'dataFile': str(runtime.store.data_file),
            'apiKeySet': bool(runtime.settings.api_key),
        })

    return app


app = create_app()


if __name__ == '__main__':
    logger.info(f'Starting Instruct API server on http://{cfg.HOST}:{cfg.PORT}')
    uvicorn.run(
        app,
        host=cfg.HOST,
        port=cfg.PORT,
        timeout_graceful_shutdown=float(os.getenv('GRACEFUL_SHUTDOWN_TIMEOUT', '5.0')),
    )
