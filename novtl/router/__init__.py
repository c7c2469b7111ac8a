from novtl.router.base import ProviderAdapter
from novtl.router.models import ProviderConfig, has_valid_api_key
from novtl.router.errors import ErrorKind, TranslationError, classify_error
from novtl.router.prompt_builder import build_standard_prompt, build_draft_prompt, build_polish_prompt
from novtl.router.config_loader import load_config

__all__ = [
    "ProviderAdapter",
    "ProviderConfig",
    "has_valid_api_key",
    "ErrorKind",
    "TranslationError",
    "classify_error",
    "build_standard_prompt",
    "build_draft_prompt",
    "build_polish_prompt",
    "load_config",
]
