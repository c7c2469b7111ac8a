# router/sse.py
import json
import logging
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

_DATA_FIELD = "data:"
_DONE_SENTINEL = "[DONE]"


def iter_sse_deltas(lines: Iterable[str]) -> Iterator[str]:
    """
    Decodifica el stream SSE de chat-completions (OpenAI, DeepSeek, Grok).

    Cada frame útil es `data: {json}`; el texto viaja en
    choices[0].delta.content. `data: [DONE]` termina el stream.
    Heartbeats (`: ping`), líneas vacías, eventos sin `data: `, JSON
    malformado y deltas sin contenido salen como "": el bucle de
    generate_stream los descarta, pero mira el token en cada frame.
    """
    for raw in lines:
        line = raw.strip()
        if not line.startswith(_DATA_FIELD):
            yield ""
            continue

        payload = line[len(_DATA_FIELD):].strip()
        if payload == _DONE_SENTINEL:
            return

        yield _delta_content(payload) or ""


def _delta_content(payload: str) -> Optional[str]:
    try:
        frame = json.loads(payload)
    except (json.JSONDecodeError, ValueError):
        logger.debug("Frame SSE malformado ignorado: %.80s", payload)
        return None

    if not isinstance(frame, dict):
        return None

    choices = frame.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None

    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else None
