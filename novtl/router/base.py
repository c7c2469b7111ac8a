# router/base.py
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Iterator, Optional

from novtl.router.models import ProviderConfig

if TYPE_CHECKING:
    from novtl.cancellation import CancellationToken

logger = logging.getLogger(__name__)

DeltaSink = Callable[[str], None]


class ProviderAdapter(ABC):
    """
    Contrato que deben cumplir todos los adaptadores.
    El ChunkOrchestrator solo habla con esta interfaz.
    Nunca importa gemini.py, claude.py ni openai_compat.py directamente.

    Los adaptadores lanzan los errores crudos de su SDK o de httpx;
    la clasificación vive en router/errors.py.
    """

    def __init__(self, config: ProviderConfig):
        self._config = config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def supports_streaming(self) -> bool:
        return self._config.supports_streaming

    @abstractmethod
    def generate(
        self,
        prompt:             str,
        system_instruction: str,
        token:              "CancellationToken",
        temperature:        float = 0.3,
    ) -> str:
        """Una llamada sin stream. Devuelve el texto completo."""
        ...

    @abstractmethod
    def _iter_deltas(
        self,
        prompt:             str,
        system_instruction: str,
        temperature:        float,
    ) -> Iterator[str]:
        """Fragmentos de texto en orden, tal como los entrega el backend."""
        ...

    def generate_stream(
        self,
        prompt:             str,
        system_instruction: str,
        token:              "CancellationToken",
        on_delta:           DeltaSink,
        temperature:        float = 0.5,
    ) -> str:
        """
        Emite cada fragmento a on_delta y devuelve el acumulado.

        Si el token se cancela a mitad del stream deja de leer y devuelve
        lo acumulado sin lanzar; el orquestador ve el token y aborta.
        Sin soporte de stream, degrada a una sola emisión con todo el texto.
        """
        temperature = self._temperature(temperature)

        if not self.supports_streaming:
            text = self.generate(prompt, system_instruction, token, temperature)
            if text and not token.cancelled:
                on_delta(text)
            return text

        accumulated = ""
        deltas = self._iter_deltas(prompt, system_instruction, temperature)
        try:
            for delta in deltas:
                if token.cancelled:
                    logger.debug("%s: stream cortado por cancelación", self.name)
                    break
                if not delta:
                    continue
                accumulated += delta
                on_delta(delta)
        finally:
            close = getattr(deltas, "close", None)
            if close is not None:
                close()   # libera la conexión del generador
        return accumulated

    def _temperature(self, requested: float) -> float:
        override: Optional[float] = self._config.temperature
        return requested if override is None else override
