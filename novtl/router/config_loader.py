# router/config_loader.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from novtl.router.models import DEFAULT_MODELS, OPENAI_COMPATIBLE, ProviderConfig

_DEFAULT_CONFIG_PATH = Path.home() / ".novtl" / "config.yaml"

_KNOWN_PROVIDERS = ("gemini", "claude") + OPENAI_COMPATIBLE


class ConfigError(RuntimeError):
    """Configuración ausente o inválida. Culpa del usuario, no del proveedor."""


@dataclass
class TranslationSettings:
    """Valores por defecto del proyecto; el CLI puede sobreescribirlos."""
    target_language:   str   = "Indonesian"
    style_instruction: str   = "Novel style that flows naturally."
    mode:              str   = "standard"
    max_chunk_tokens:  int   = 2500
    chunk_delay:       float = 0.5


@dataclass
class AppConfig:
    active_provider: str
    providers:       dict[str, ProviderConfig]
    translation:     TranslationSettings = field(default_factory=TranslationSettings)

    def provider(self, name: Optional[str] = None) -> ProviderConfig:
        key = (name or self.active_provider).lower()
        if key not in self.providers:
            available = ", ".join(sorted(self.providers)) or "ninguno"
            raise ConfigError(f"Proveedor '{key}' no configurado. Disponibles: {available}")
        return self.providers[key]


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Carga la configuración desde YAML.
    Resuelve variables de entorno en los api_key (${VAR}).
    """
    path = Path(config_path or os.environ.get("NOVTL_CONFIG_PATH") or _DEFAULT_CONFIG_PATH)

    if not path.exists():
        raise FileNotFoundError(
            f"Config no encontrada en {path}. "
            f"Copia config.example.yaml a ~/.novtl/config.yaml"
        )

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    providers: dict[str, ProviderConfig] = {}
    for entry in raw.get("providers", []):
        config = _provider_from_entry(entry)
        providers[config.name] = config

    if not providers:
        raise ConfigError(f"{path}: la sección 'providers' está vacía")

    active = str(raw.get("active_provider") or next(iter(providers))).lower()

    settings = raw.get("translation") or {}
    translation = TranslationSettings(
        target_language   = settings.get("target_language", TranslationSettings.target_language),
        style_instruction = settings.get("style_instruction", TranslationSettings.style_instruction),
        mode              = settings.get("mode", TranslationSettings.mode),
        max_chunk_tokens  = int(settings.get("max_chunk_tokens", TranslationSettings.max_chunk_tokens)),
        chunk_delay       = float(settings.get("chunk_delay", TranslationSettings.chunk_delay)),
    )

    return AppConfig(active_provider=active, providers=providers, translation=translation)


def _provider_from_entry(entry: dict) -> ProviderConfig:
    name = str(entry.get("name") or "").lower()
    if name not in _KNOWN_PROVIDERS:
        raise ConfigError(
            f"Proveedor desconocido: '{name}'. "
            f"Soportados: {', '.join(_KNOWN_PROVIDERS)}"
        )

    model = entry.get("model") or DEFAULT_MODELS.get(name)
    if not model:
        raise ConfigError(f"{name}: falta 'model'")

    temperature = entry.get("temperature")
    return ProviderConfig(
        name               = name,
        model              = model,
        api_key            = _resolve_env(entry.get("api_key")),
        endpoint           = entry.get("endpoint"),
        supports_streaming = bool(entry.get("stream", True)),
        timeout_seconds    = int(entry.get("timeout_seconds", 120)),
        temperature        = float(temperature) if temperature is not None else None,
    )


def _resolve_env(value: Optional[str]) -> Optional[str]:
    """Expande ${VAR_NAME} desde el entorno."""
    if not value or not value.startswith("${"):
        return value
    var_name = value.strip("${}").strip()
    return os.environ.get(var_name)
