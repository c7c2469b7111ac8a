# router/models.py
from dataclasses import dataclass, field
from typing import Optional


# Familias de backend que hablan el formato chat-completions de OpenAI
OPENAI_COMPATIBLE = ("openai", "deepseek", "grok", "openai_compatible")

DEFAULT_MODELS: dict[str, str] = {
    "gemini":   "gemini-2.0-flash",
    "claude":   "claude-haiku-4-5-20251001",
    "openai":   "gpt-4o",
    "deepseek": "deepseek-chat",
    "grok":     "grok-2-latest",
}

DEFAULT_ENDPOINTS: dict[str, str] = {
    "openai":   "https://api.openai.com/v1/chat/completions",
    "deepseek": "https://api.deepseek.com/chat/completions",
    "grok":     "https://api.x.ai/v1/chat/completions",
}


@dataclass
class ProviderConfig:
    """
    Configuración de un proveedor individual.
    Se carga desde ~/.novtl/config.yaml. El pipeline la trata como opaca.
    """
    name:               str
    model:              str
    api_key:            Optional[str]   = field(default=None, repr=False)   # nunca en logs
    endpoint:           Optional[str]   = None
    supports_streaming: bool            = True
    timeout_seconds:    int             = 120
    temperature:        Optional[float] = None   # None → la decide el pipeline por pasada


def has_valid_api_key(config: ProviderConfig) -> bool:
    return bool(config.api_key) and len(config.api_key) > 5
