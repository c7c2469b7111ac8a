# novtl/pipeline.py
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from novtl.cancellation import CancellationToken
from novtl.context.glossary import GlossaryEntry, GlossaryIndex
from novtl.context.window import ContextSnapshot, ContextWindow, clip_tail
from novtl.orchestrator import ChunkOrchestrator, ChunkPlan, ChunkState
from novtl.processor.chunker.chunker import Chunker
from novtl.processor.chunker.models import Chunk
from novtl.router.base import DeltaSink
from novtl.router.errors import ErrorKind, TranslationError, UserAbortedError
from novtl.router.prompt_builder import build_draft_prompt, build_standard_prompt

logger = logging.getLogger(__name__)

_CHUNK_DELAY_SECONDS = 0.5
_PARAGRAPH_BREAK     = "\n\n"
_BATCH_TAIL_CHARS    = 1500


class TranslationMode(Enum):
    STANDARD = "standard"
    TWO_PASS = "two_pass"   # borrador + pulido: doble latencia y coste por chunk


# ------------------------------------------------------------------
# Entrada y salida del pipeline
# ------------------------------------------------------------------

@dataclass(frozen=True)
class TranslationRequest:
    """Se crea una vez por invocación y nunca se modifica."""
    source_text:           str
    target_language:       str
    style_instruction:     str                       = ""
    glossary:              tuple[GlossaryEntry, ...] = ()
    mode:                  TranslationMode           = TranslationMode.STANDARD
    previous_chapter_tail: Optional[str]             = None
    cancel_token:          CancellationToken         = field(
        default_factory=CancellationToken, compare=False, repr=False,
    )

    def __post_init__(self):
        # Acepta listas del llamador pero guarda una tupla: inmutable
        object.__setattr__(self, "glossary", tuple(self.glossary))
        if isinstance(self.mode, str):
            object.__setattr__(self, "mode", TranslationMode(self.mode))


@dataclass
class PipelineResult:
    text:         str
    total_chunks: int
    attempts:     list[int]
    mode:         TranslationMode


# ------------------------------------------------------------------
# TranslationPipeline
# ------------------------------------------------------------------

class TranslationPipeline:
    """
    Secuencia los chunks de un capítulo por el ChunkOrchestrator.
    No tiene lógica de red propia, solo coordina módulos.

    Estrictamente secuencial: el prompt del chunk n+1 depende del texto
    original del chunk n, y el orden de los deltas es el orden de lectura.
    El único estado mutable entre pasos es el ContextSnapshot.
    """

    def __init__(
        self,
        orchestrator:   ChunkOrchestrator,
        chunker:        Optional[Chunker]       = None,
        context_window: Optional[ContextWindow] = None,
        chunk_delay:    float                   = _CHUNK_DELAY_SECONDS,
    ):
        self._orchestrator   = orchestrator
        self._chunker        = chunker or Chunker()
        self._context_window = context_window or ContextWindow()
        self._chunk_delay    = chunk_delay

    def run(self, request: TranslationRequest, on_chunk: DeltaSink) -> PipelineResult:
        """
        Traduce el capítulo completo emitiendo cada fragmento a on_chunk.

        Lanza UserAbortedError si se cancela, o el TranslationError
        clasificado del chunk que falló. Lo ya emitido queda visible;
        nunca se devuelve un éxito parcial.
        """
        token  = request.cancel_token
        chunks = self._chunker.split(request.source_text)
        index  = GlossaryIndex(request.glossary)

        logger.info(
            "Traduciendo %d caracteres en %d chunks (modo %s, glosario %d términos)",
            len(request.source_text), len(chunks), request.mode.value, len(index),
        )

        output   = ""
        attempts: list[int] = []
        snapshot: Optional[ContextSnapshot] = self._context_window.opening(
            request.previous_chapter_tail
        )

        for chunk in chunks:
            if token.cancelled:
                raise self._aborted(chunk.index, output)

            plan    = self._plan(chunk, request, index, snapshot)
            outcome = self._orchestrator.translate_chunk(plan, token, on_chunk)
            attempts.append(outcome.attempts)

            if outcome.state is ChunkState.ABORTED:
                raise self._aborted(chunk.index, output + outcome.text)

            if not outcome.succeeded:
                error = outcome.error or TranslationError(ErrorKind.UNKNOWN)
                error.chunk_index  = chunk.index
                # partial_text del error trae lo que el chunk alcanzó a emitir
                error.partial_text = output + error.partial_text
                logger.error(
                    "Chunk %d/%d falló tras %d intentos: %s",
                    chunk.index + 1, len(chunks), outcome.attempts, error,
                )
                raise error

            output += outcome.text
            logger.info(
                "Chunk %d/%d traducido (%d caracteres, %d intentos)",
                chunk.index + 1, len(chunks), len(outcome.text), outcome.attempts,
            )

            if chunk.index == len(chunks) - 1:
                break

            separator = _missing_separator(output)
            if separator:
                output += separator
                on_chunk(separator)

            snapshot = self._context_window.following(chunk.text)

            # Cortesía con el rate limit del proveedor; cancelable
            token.wait(self._chunk_delay)

        return PipelineResult(
            text         = output.strip(),
            total_chunks = len(chunks),
            attempts     = attempts,
            mode         = request.mode,
        )

    @staticmethod
    def _plan(
        chunk:    Chunk,
        request:  TranslationRequest,
        index:    GlossaryIndex,
        snapshot: Optional[ContextSnapshot],
    ) -> ChunkPlan:
        terms = index.relevant_terms(chunk.text)
        if terms:
            logger.debug("Chunk %d: %d términos de glosario relevantes", chunk.index, len(terms))

        if request.mode is TranslationMode.TWO_PASS:
            return ChunkPlan(
                draft       = build_draft_prompt(chunk.text, request.target_language, terms, snapshot),
                target_lang = request.target_language,
                style       = request.style_instruction,
            )
        return ChunkPlan(
            final = build_standard_prompt(
                chunk.text,
                request.target_language,
                request.style_instruction,
                terms,
                snapshot,
            ),
            target_lang = request.target_language,
            style       = request.style_instruction,
        )

    @staticmethod
    def _aborted(chunk_index: int, partial_text: str) -> UserAbortedError:
        logger.info("Traducción detenida por el usuario en chunk %d", chunk_index + 1)
        error = UserAbortedError()
        error.chunk_index  = chunk_index
        error.partial_text = partial_text
        return error


def _missing_separator(text: str) -> str:
    """Lo que falta para que el texto termine en línea en blanco. Idempotente."""
    if text.endswith(_PARAGRAPH_BREAK):
        return ""
    if text.endswith("\n"):
        return "\n"
    return _PARAGRAPH_BREAK


# ------------------------------------------------------------------
# Lotes de capítulos
# ------------------------------------------------------------------

def translate_batch(
    pipeline:        TranslationPipeline,
    chapters:        Iterable[str],
    make_request:    Callable[[str, Optional[str]], TranslationRequest],
    on_chunk:        Optional[DeltaSink]                              = None,
    on_chapter_done: Optional[Callable[[int, PipelineResult], None]] = None,
) -> list[PipelineResult]:
    """
    Traduce capítulos en orden, una invocación del pipeline por capítulo.
    La cola de cada traducción es el contexto del capítulo siguiente.

    make_request(source_text, previous_tail) construye cada request; así el
    llamador comparte un único token de cancelación en todo el lote.
    Una cancelación o un error fatal detienen el lote y se propagan.
    """
    results: list[PipelineResult] = []
    previous_tail: Optional[str] = None

    for number, source_text in enumerate(chapters):
        if not source_text.strip():
            logger.info("Capítulo %d vacío, se omite", number + 1)
            continue

        request = make_request(source_text, previous_tail)
        request.cancel_token.raise_if_cancelled()

        result = pipeline.run(request, on_chunk or _discard)
        results.append(result)

        if on_chapter_done:
            on_chapter_done(number, result)

        previous_tail = _chapter_tail(result.text)

    return results


def _chapter_tail(text: str) -> str:
    if len(text) > _BATCH_TAIL_CHARS:
        return "..." + clip_tail(text, _BATCH_TAIL_CHARS - 3)
    return text


def _discard(_: str) -> None:
    pass
