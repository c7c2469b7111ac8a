# router/errors.py
import logging
import re
from enum import Enum
from typing import Optional

import anthropic
import httpx
from google.api_core import exceptions as google_exceptions

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Taxonomía cerrada que ve el llamador. Nunca el mensaje crudo del backend."""
    INVALID_CREDENTIAL = "invalid_credential"
    QUOTA_EXCEEDED     = "quota_exceeded"
    SERVER_OVERLOADED  = "server_overloaded"
    USER_ABORTED       = "user_aborted"
    INPUT_TOO_LARGE    = "input_too_large"
    UNKNOWN            = "unknown"


# Mensajes para la UI: no requieren conocer strings de cada proveedor
_USER_MESSAGES = {
    ErrorKind.INVALID_CREDENTIAL: "Invalid API Key. Please check your settings.",
    ErrorKind.QUOTA_EXCEEDED:     "API Quota Exceeded. Please wait a moment or check your plan.",
    ErrorKind.SERVER_OVERLOADED:  "AI Server is overloaded. Try again in 1 minute.",
    ErrorKind.USER_ABORTED:       "Process stopped by user.",
    ErrorKind.INPUT_TOO_LARGE:    "Input too long for this model. Try shortening the chapter.",
}

_RETRYABLE_KINDS = frozenset({
    ErrorKind.QUOTA_EXCEEDED,
    ErrorKind.SERVER_OVERLOADED,
    ErrorKind.UNKNOWN,
})


# ------------------------------------------------------------------
# Jerarquía de errores
# ------------------------------------------------------------------

class TranslationError(Exception):
    """
    Error clasificado que se propaga al llamador.
    chunk_index y partial_text los rellena el pipeline al fallar un chunk.
    """

    def __init__(
        self,
        kind:      ErrorKind,
        message:   str            = "",
        retryable: Optional[bool] = None,
    ):
        super().__init__(message or _USER_MESSAGES.get(kind, kind.value))
        self.kind         = kind
        self._retryable   = retryable
        self.chunk_index: Optional[int] = None
        self.partial_text: str          = ""

    @property
    def retryable(self) -> bool:
        if self._retryable is not None:
            return self._retryable
        return self.kind in _RETRYABLE_KINDS

    @property
    def user_message(self) -> str:
        if self.kind in _USER_MESSAGES:
            return _USER_MESSAGES[self.kind]
        return f"AI Error: {str(self)[:50]}..."


class UserAbortedError(TranslationError):
    """Cancelación pedida por el usuario. Es un final esperado, no una falla."""

    def __init__(self, message: str = ""):
        super().__init__(ErrorKind.USER_ABORTED, message, retryable=False)


class InputTooLargeError(TranslationError):
    """El prompt supera el presupuesto del modelo. Reintentar no sirve."""

    def __init__(self, message: str = ""):
        super().__init__(ErrorKind.INPUT_TOO_LARGE, message, retryable=False)


class EmptyResponseError(TranslationError):
    """
    El modelo respondió sin texto (bloqueo de seguridad, candidato sin partes).
    Un chunk con contenido nunca se da por traducido con una salida vacía.
    """

    def __init__(self, message: str = ""):
        super().__init__(ErrorKind.UNKNOWN, message or "Respuesta vacía del modelo")


class StreamInterruptedError(Exception):
    """
    El stream falló después de emitir texto al llamador.
    Reintentar duplicaría fragmentos ya visibles, así que no se reintenta.
    """

    def __init__(self, cause: Exception, emitted: str):
        super().__init__(f"Stream interrumpido tras {len(emitted)} caracteres: {cause}")
        self.cause   = cause
        self.emitted = emitted


# ------------------------------------------------------------------
# Clasificador
# ------------------------------------------------------------------

# Patrones de mensaje, último recurso cuando no hay status ni tipo conocido
_MESSAGE_PATTERNS: list[tuple[re.Pattern, ErrorKind]] = [
    (re.compile(r"\b401\b|api key not valid|invalid api key|unauthori[sz]ed|incorrect api key", re.I),
     ErrorKind.INVALID_CREDENTIAL),
    (re.compile(r"tokenlimit|context[_ ]length|maximum context|too many tokens|"
                r"reduce the length|request too large|prompt is too long", re.I),
     ErrorKind.INPUT_TOO_LARGE),
    (re.compile(r"\b429\b|quota exceeded|rate[_ ]limit|resource[_ ]exhausted", re.I),
     ErrorKind.QUOTA_EXCEEDED),
    (re.compile(r"\b50[0234]\b|\b529\b|overloaded|unavailable", re.I),
     ErrorKind.SERVER_OVERLOADED),
]

_TRANSPORT_ERRORS = (
    httpx.TransportError,          # incluye timeouts y errores de conexión
    anthropic.APIConnectionError,  # incluye APITimeoutError
    google_exceptions.DeadlineExceeded,
    ConnectionError,
    TimeoutError,
)


def classify_error(error: Exception) -> TranslationError:
    """
    Convierte cualquier excepción de transporte o proveedor en un
    TranslationError de la taxonomía. Nunca lanza.

    Orden: ya clasificado → stream interrumpido → status HTTP →
    tipos de SDK → errores de transporte → patrones de mensaje.
    """
    if isinstance(error, TranslationError):
        return error

    if isinstance(error, StreamInterruptedError):
        cause = classify_error(error.cause)
        result = TranslationError(cause.kind, str(error), retryable=False)
        # Lo ya emitido es parte del parcial del chunk
        result.partial_text = error.emitted
        return result

    status = _status_code(error)
    if status is not None:
        kind = _kind_from_status(status, _error_text(error))
        if kind is not None:
            return TranslationError(kind, _short(error))

    kind = _kind_from_sdk_type(error)
    if kind is not None:
        return TranslationError(kind, _short(error))

    if isinstance(error, _TRANSPORT_ERRORS):
        return TranslationError(ErrorKind.SERVER_OVERLOADED, _short(error))

    message = str(error)
    for pattern, kind in _MESSAGE_PATTERNS:
        if pattern.search(message):
            return TranslationError(kind, _short(error))

    logger.debug("Error sin clasificar (%s): %s", type(error).__name__, message)
    return TranslationError(ErrorKind.UNKNOWN, _short(error))


def _status_code(error: Exception) -> Optional[int]:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, anthropic.APIStatusError):
        return error.status_code
    if isinstance(error, google_exceptions.GoogleAPICallError) and error.code is not None:
        return int(error.code)
    return None


def _kind_from_status(status: int, message: str) -> Optional[ErrorKind]:
    if status in (401, 403):
        return ErrorKind.INVALID_CREDENTIAL
    if status == 413:
        return ErrorKind.INPUT_TOO_LARGE
    if status == 429:
        return ErrorKind.QUOTA_EXCEEDED
    if status >= 500:
        return ErrorKind.SERVER_OVERLOADED
    if status == 400:
        # Un 400 con wording de contexto es input demasiado grande;
        # Gemini además devuelve 400 para claves inválidas.
        for pattern, kind in _MESSAGE_PATTERNS:
            if kind in (ErrorKind.INPUT_TOO_LARGE, ErrorKind.INVALID_CREDENTIAL) and pattern.search(message):
                return kind
    return None


def _kind_from_sdk_type(error: Exception) -> Optional[ErrorKind]:
    if isinstance(error, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return ErrorKind.INVALID_CREDENTIAL
    if isinstance(error, google_exceptions.ResourceExhausted):
        return ErrorKind.QUOTA_EXCEEDED
    if isinstance(error, (google_exceptions.ServiceUnavailable, google_exceptions.InternalServerError)):
        return ErrorKind.SERVER_OVERLOADED
    return None


def _short(error: Exception) -> str:
    return f"{type(error).__name__}: {str(error)[:200]}"


def _error_text(error: Exception) -> str:
    text = str(error)
    if isinstance(error, httpx.HTTPStatusError):
        try:
            text += " " + error.response.text[:500]
        except httpx.ResponseNotRead:
            pass
    return text
