# novtl/factory.py
from typing import Optional

from novtl.orchestrator import ChunkOrchestrator
from novtl.pipeline import TranslationPipeline
from novtl.processor.chunker.chunker import Chunker
from novtl.processor.chunker.models import ChunkConfig
from novtl.router.base import ProviderAdapter
from novtl.router.claude import ClaudeAdapter
from novtl.router.config_loader import AppConfig, ConfigError, load_config
from novtl.router.gemini import GeminiAdapter
from novtl.router.models import OPENAI_COMPATIBLE, ProviderConfig, has_valid_api_key
from novtl.router.openai_compat import OpenAICompatibleAdapter


def build_pipeline(
    config:      Optional[AppConfig] = None,
    provider:    Optional[str]       = None,
    config_path: Optional[str]       = None,
) -> TranslationPipeline:
    """
    Ensambla el TranslationPipeline con todas sus dependencias.
    Punto de entrada único para el CLI y los tests de integración.
    """
    config  = config or load_config(config_path)
    adapter = build_adapter(config.provider(provider))

    return TranslationPipeline(
        orchestrator = ChunkOrchestrator(adapter),
        chunker      = Chunker(ChunkConfig(max_tokens=config.translation.max_chunk_tokens)),
        chunk_delay  = config.translation.chunk_delay,
    )


def build_adapter(config: ProviderConfig) -> ProviderAdapter:
    """El único sitio que conoce las clases concretas de cada backend."""
    if not has_valid_api_key(config) and not config.endpoint:
        raise ConfigError(
            f"API key de {config.name} ausente o inválida. "
            f"Revisa ~/.novtl/config.yaml y tus variables de entorno."
        )

    if config.name == "gemini":
        return GeminiAdapter(config)
    if config.name == "claude":
        return ClaudeAdapter(config)
    if config.name in OPENAI_COMPATIBLE:
        return OpenAICompatibleAdapter(config)

    raise ConfigError(f"Proveedor sin adaptador: {config.name}")
