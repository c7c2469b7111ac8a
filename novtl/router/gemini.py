# router/gemini.py
import logging
from typing import TYPE_CHECKING, Iterator

import google.generativeai as genai

from novtl.router.base import ProviderAdapter
from novtl.router.errors import EmptyResponseError
from novtl.router.models import ProviderConfig

if TYPE_CHECKING:
    from novtl.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class GeminiAdapter(ProviderAdapter):
    """Stream nativo de Gemini: cada respuesta parcial trae su fragmento en .text"""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        genai.configure(api_key=config.api_key)

    def generate(
        self,
        prompt:             str,
        system_instruction: str,
        token:              "CancellationToken",
        temperature:        float = 0.3,
    ) -> str:
        token.raise_if_cancelled()
        response = self._model(system_instruction, temperature).generate_content(
            prompt,
            request_options={"timeout": self._config.timeout_seconds},
        )
        try:
            return response.text or ""
        except ValueError as e:
            # Sin partes en la respuesta completa: bloqueo o candidato vacío
            raise EmptyResponseError(f"Gemini sin texto: {_block_reason(response) or e}") from e

    def _iter_deltas(
        self,
        prompt:             str,
        system_instruction: str,
        temperature:        float,
    ) -> Iterator[str]:
        stream = self._model(system_instruction, temperature).generate_content(
            prompt,
            stream=True,
            request_options={"timeout": self._config.timeout_seconds},
        )
        for part in stream:
            yield _safe_text(part)

    def _model(self, system_instruction: str, temperature: float) -> "genai.GenerativeModel":
        # La instrucción de sistema va en el modelo, no en el contenido
        return genai.GenerativeModel(
            model_name         = self._config.model,
            system_instruction = system_instruction,
            generation_config  = genai.GenerationConfig(
                temperature = self._temperature(temperature),
            ),
        )


def _safe_text(response) -> str:
    """
    .text lanza ValueError cuando el candidato no trae partes
    (p. ej. un fragmento final solo con finish_reason). Eso no es texto.
    """
    try:
        return response.text or ""
    except ValueError:
        logger.debug("Gemini devolvió un fragmento sin texto")
        return ""


def _block_reason(response) -> str:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    return f"block_reason={reason}" if reason else ""
