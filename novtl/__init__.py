from novtl.cancellation import CancellationToken
from novtl.context.glossary import GlossaryEntry
from novtl.pipeline import (
    PipelineResult,
    TranslationMode,
    TranslationPipeline,
    TranslationRequest,
    translate_batch,
)
from novtl.router.errors import ErrorKind, TranslationError, UserAbortedError

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "GlossaryEntry",
    "PipelineResult",
    "TranslationMode",
    "TranslationPipeline",
    "TranslationRequest",
    "translate_batch",
    "ErrorKind",
    "TranslationError",
    "UserAbortedError",
]
