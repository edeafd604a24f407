from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict
import os

# File paths
DATA_DIR = "Data"  # Folder holding the instruction history
DATA_FILE_NAME = "instructions.json"
SETTINGS_PATH = Path(os.getenv("INSTRUCT_SETTINGS_PATH", "data.json"))  # Plugin key-value settings store

# Server
HOST = os.getenv("INSTRUCT_HOST", "127.0.0.1")
PORT = int(os.getenv("INSTRUCT_PORT", "8001"))
LOG_FILE = "instruct.log"

# ============================================================================
# AI SETTINGS - OpenAI chat completions
# ============================================================================

# Prompt layout: instruction, delimiter, selected text
PROMPT_DELIMITER = "\n\n###\n\n"

DEFAULT_MODEL = "gpt-3.5-turbo"
AVAILABLE_MODELS = [
    'gpt-4-1106-preview',
    'gpt-4-0613',
    'gpt-4-0314',
    'gpt-4',
    'gpt-3.5-turbo-16k',
    'gpt-3.5-turbo',
]

# Request timeout in seconds, override with INSTRUCT_OPENAI_TIMEOUT
DEFAULT_REQUEST_TIMEOUT = 60.0

# Slider limits for the generation parameters: (min, max, step)
SETTING_BOUNDS = {
    'temperature': (0.0, 2.0, 0.01),
    'max_tokens': (1, 4096, 1),
    'top_p': (0.0, 1.0, 0.01),
    'frequency_penalty': (0.0, 2.0, 0.01),
    'presence_penalty': (0.0, 2.0, 0.01),
}


# Keys GET /api/settings adds for display; ignored when a form sends them back
DISPLAY_ONLY_SETTINGS = ('api_key_set', 'resolved_data_file')


def mask_api_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) > 8:
        return f"{api_key[:3]}...{api_key[-4:]}"
    return '***'


@dataclass
class InstructSettings:
    """Settings threaded into the store, the completion client and the routes."""

    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 1.0
    max_tokens: int = 256
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    data_dir: str = DATA_DIR
    data_file_path: str = ""
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InstructSettings':
        """Build settings from saved data, defaults filling any missing key."""
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in (data or {}).items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def public_dict(self) -> Dict[str, Any]:
        """Settings safe to show in a form; the API key is masked."""
        data = self.to_dict()
        data['api_key'] = mask_api_key(self.api_key)
        data['api_key_set'] = bool(self.api_key)
        data['resolved_data_file'] = str(self.resolved_data_file)
        return data

    @property
    def resolved_data_file(self) -> Path:
        if self.data_file_path:
            return Path(self.data_file_path)
        return Path(self.data_dir) / DATA_FILE_NAME

    def validate(self):
        """Raise ValueError when a value falls outside what the settings form allows."""
        if self.model not in AVAILABLE_MODELS:
            raise ValueError(f"Unknown model '{self.model}'. Available models: {AVAILABLE_MODELS}")
        for name, (low, high, _step) in SETTING_BOUNDS.items():
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number")
            if not low <= value <= high:
                raise ValueError(f"{name} must be between {low} and {high}, got {value}")
        if self.max_tokens != int(self.max_tokens):
            raise ValueError("max_tokens must be a whole number")
        timeout = self.request_timeout
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise ValueError("request_timeout must be a number")
            if timeout <= 0:
                raise ValueError("request_timeout must be positive")
        for name in ('api_key', 'model', 'data_dir', 'data_file_path'):
            if not isinstance(getattr(self, name), str):
                raise ValueError(f"{name} must be a string")
        if not self.data_dir.strip() and not self.data_file_path.strip():
            raise ValueError("data_dir cannot be empty")
