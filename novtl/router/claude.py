# router/claude.py
import logging
from typing import TYPE_CHECKING, Iterator

import anthropic

from novtl.router.base import ProviderAdapter
from novtl.router.models import ProviderConfig

if TYPE_CHECKING:
    from novtl.cancellation import CancellationToken

logger = logging.getLogger(__name__)

_MAX_OUTPUT_TOKENS = 8192


class ClaudeAdapter(ProviderAdapter):
    """Stream de eventos nativo del SDK de Anthropic (text_stream)."""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        self._client = anthropic.Anthropic(
            api_key     = config.api_key,
            timeout     = config.timeout_seconds,
            max_retries = 0,   # los reintentos los decide el orquestador
        )

    def generate(
        self,
        prompt:             str,
        system_instruction: str,
        token:              "CancellationToken",
        temperature:        float = 0.3,
    ) -> str:
        token.raise_if_cancelled()
        response = self._client.messages.create(
            model       = self._config.model,
            max_tokens  = _MAX_OUTPUT_TOKENS,
            temperature = self._temperature(temperature),
            system      = system_instruction,
            messages    = [{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )

    def _iter_deltas(
        self,
        prompt:             str,
        system_instruction: str,
        temperature:        float,
    ) -> Iterator[str]:
        with self._client.messages.stream(
            model       = self._config.model,
            max_tokens  = _MAX_OUTPUT_TOKENS,
            temperature = temperature,
            system      = system_instruction,
            messages    = [{"role": "user", "content": prompt}],
        ) as stream:
            yield from stream.text_stream
