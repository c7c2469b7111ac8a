# novtl/orchestrator.py
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from novtl.cancellation import CancellationToken
from novtl.processor.chunker.token_estimator import CharTokenEstimator, TokenEstimator
from novtl.router.base import DeltaSink, ProviderAdapter
from novtl.router.errors import (
    EmptyResponseError,
    InputTooLargeError,
    StreamInterruptedError,
    TranslationError,
    classify_error,
)
from novtl.router.prompt_builder import PromptPair, build_polish_prompt

logger = logging.getLogger(__name__)

# Temperaturas por pasada
_DRAFT_TEMPERATURE    = 0.3
_STANDARD_TEMPERATURE = 0.5
_POLISH_TEMPERATURE   = 0.7

_MAX_PROMPT_TOKENS = 120_000


# ------------------------------------------------------------------
# Estados y resultado por chunk
# ------------------------------------------------------------------

class ChunkState(Enum):
    PENDING      = "pending"
    IN_FLIGHT    = "in_flight"
    RETRYING     = "retrying"
    SUCCEEDED    = "succeeded"
    FAILED_FATAL = "failed_fatal"
    ABORTED      = "aborted"


@dataclass(frozen=True)
class ChunkOutcome:
    """
    Resultado inmutable de orquestar un chunk.
    El texto acumulado se devuelve aquí; nadie lo muta desde fuera.
    """
    state:    ChunkState
    text:     str                        = ""
    attempts: int                        = 0
    error:    Optional[TranslationError] = None
    history:  tuple[ChunkState, ...]     = ()

    @property
    def succeeded(self) -> bool:
        return self.state is ChunkState.SUCCEEDED


@dataclass(frozen=True)
class ChunkPlan:
    """
    Qué hay que pedirle al modelo para un chunk.
    - standard: solo `final`, que se hace stream al llamador
    - two_pass: `draft` sin stream; el pulido se construye con su salida
    """
    final:       Optional[PromptPair] = None
    draft:       Optional[PromptPair] = None
    target_lang: str                  = ""
    style:       Optional[str]        = None

    @property
    def two_pass(self) -> bool:
        return self.draft is not None


# ------------------------------------------------------------------
# ChunkOrchestrator
# ------------------------------------------------------------------

class ChunkOrchestrator:
    """
    Lleva un chunk por el adaptador con reintentos, backoff y cancelación.

    PENDING → IN_FLIGHT → SUCCEEDED
                        → RETRYING → IN_FLIGHT ...   (error transitorio, intentos < max)
                        → FAILED_FATAL               (error fatal o intentos agotados)
                        → ABORTED                    (token cancelado; nunca se reintenta)
    """

    def __init__(
        self,
        adapter:           ProviderAdapter,
        max_attempts:      int                      = 3,
        backoff_seconds:   float                    = 1.0,
        max_prompt_tokens: int                      = _MAX_PROMPT_TOKENS,
        estimator:         Optional[TokenEstimator] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts debe ser al menos 1")
        self._adapter           = adapter
        self._max_attempts      = max_attempts
        self._backoff_seconds   = backoff_seconds
        self._max_prompt_tokens = max_prompt_tokens
        self._estimator         = estimator or CharTokenEstimator()

    @property
    def adapter(self) -> ProviderAdapter:
        return self._adapter

    def translate_chunk(
        self,
        plan:     ChunkPlan,
        token:    CancellationToken,
        on_delta: DeltaSink,
    ) -> ChunkOutcome:
        """Standard: una llamada en stream. Two-pass: borrador silencioso + pulido en stream."""
        if not plan.two_pass:
            return self.execute(
                lambda: self._stream(plan.final, token, on_delta, _STANDARD_TEMPERATURE),
                token,
            )

        draft = self.execute(lambda: self._generate(plan.draft, token), token)
        if not draft.succeeded:
            # El borrador nunca llegó al llamador: no forma parte del parcial
            return replace(draft, text="")

        logger.debug("Borrador listo (%d caracteres), pasando a pulido", len(draft.text))
        polish_prompt = build_polish_prompt(draft.text, plan.target_lang, plan.style)
        polish = self.execute(
            lambda: self._stream(polish_prompt, token, on_delta, _POLISH_TEMPERATURE),
            token,
        )
        return ChunkOutcome(
            state    = polish.state,
            text     = polish.text,
            attempts = draft.attempts + polish.attempts,
            error    = polish.error,
            history  = draft.history + polish.history,
        )

    def execute(self, call: Callable[[], str], token: CancellationToken) -> ChunkOutcome:
        """
        Máquina de estados de un chunk alrededor de `call`.
        La cancelación se mira antes de cada intento, al volver de la
        llamada y alrededor de cada espera de backoff. Siempre gana.
        """
        history: list[ChunkState] = [ChunkState.PENDING]
        last_error: Optional[TranslationError] = None
        attempts = 0

        def finish(state: ChunkState, text: str = "", error: Optional[TranslationError] = None) -> ChunkOutcome:
            history.append(state)
            return ChunkOutcome(state, text, attempts, error, tuple(history))

        while attempts < self._max_attempts:
            if token.cancelled:
                return finish(ChunkState.ABORTED)

            attempts += 1
            history.append(ChunkState.IN_FLIGHT)

            try:
                text = call()
            except Exception as e:
                if token.cancelled:
                    return finish(ChunkState.ABORTED, text=_emitted(e))

                error = classify_error(e)
                if not error.retryable:
                    logger.error("Error fatal (%s), sin reintento: %s", error.kind.value, error)
                    return finish(ChunkState.FAILED_FATAL, error=error)

                last_error = error
                logger.warning(
                    "Intento %d/%d falló (%s): %s",
                    attempts, self._max_attempts, error.kind.value, error,
                )
                if attempts >= self._max_attempts:
                    break

                history.append(ChunkState.RETRYING)
                if token.wait(self._backoff_seconds * 2 ** attempts):
                    return finish(ChunkState.ABORTED)
                continue

            if token.cancelled:
                # Lo acumulado antes del corte ya se mostró
                return finish(ChunkState.ABORTED, text=text)
            return finish(ChunkState.SUCCEEDED, text=text)

        logger.error("Chunk agotó %d intentos: %s", self._max_attempts, last_error)
        return finish(ChunkState.FAILED_FATAL, error=last_error)

    # ------------------------------------------------------------------
    # Llamadas al adaptador
    # ------------------------------------------------------------------

    def _generate(self, prompt: PromptPair, token: CancellationToken) -> str:
        self._assert_fits(prompt)
        text = self._adapter.generate(
            prompt.user, prompt.system, token, temperature=_DRAFT_TEMPERATURE,
        )
        return _require_text(text, token)

    def _stream(
        self,
        prompt:      PromptPair,
        token:       CancellationToken,
        on_delta:    DeltaSink,
        temperature: float,
    ) -> str:
        self._assert_fits(prompt)
        emitted: list[str] = []

        def sink(delta: str) -> None:
            emitted.append(delta)
            on_delta(delta)

        try:
            text = self._adapter.generate_stream(
                prompt.user, prompt.system, token, sink, temperature=temperature,
            )
            return _require_text(text, token)
        except Exception as e:
            if emitted:
                raise StreamInterruptedError(e, "".join(emitted)) from e
            raise

    def _assert_fits(self, prompt: PromptPair) -> None:
        estimated = self._estimator.estimate(prompt.system + prompt.user)
        if estimated > self._max_prompt_tokens:
            raise InputTooLargeError(
                f"TokenLimit: ~{estimated} tokens supera el máximo de {self._max_prompt_tokens}"
            )


def _require_text(text: str, token: CancellationToken) -> str:
    """Una respuesta vacía es un fallo reintentable, salvo que venga de una cancelación."""
    if not text.strip() and not token.cancelled:
        raise EmptyResponseError()
    return text


def _emitted(error: Exception) -> str:
    return error.emitted if isinstance(error, StreamInterruptedError) else ""
