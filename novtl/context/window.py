# context/window.py
from dataclasses import dataclass
from typing import Optional

_MAX_CHAPTER_TAIL = 1500
_MAX_CHUNK_TAIL   = 300

_CHAPTER_LABEL = "STORY CONTEXT FROM PREVIOUS CHAPTER"
_CHUNK_LABEL   = "PREVIOUS CHUNK CONTEXT"


@dataclass(frozen=True)
class ContextSnapshot:
    label: str
    text:  str

    def render(self) -> str:
        if self.label == _CHAPTER_LABEL:
            return f"\n[{self.label}]\n(The story continues from here)...{self.text}\n"
        return f"\n[{self.label}]\n...{self.text}\n"


class ContextWindow:
    """
    Produce el contexto de continuidad que se antepone a cada chunk.
    Siempre recortado: nunca crece con el tamaño del capítulo.

    - chunk 0: cola del capítulo anterior (si el llamador la dio)
    - chunk i>0: cola del texto ORIGINAL del chunk i-1, no de su traducción
    """

    def __init__(
        self,
        chapter_tail_chars: int = _MAX_CHAPTER_TAIL,
        chunk_tail_chars:   int = _MAX_CHUNK_TAIL,
    ):
        self._chapter_tail_chars = chapter_tail_chars
        self._chunk_tail_chars   = chunk_tail_chars

    def opening(self, previous_chapter_tail: Optional[str]) -> Optional[ContextSnapshot]:
        tail = clip_tail(previous_chapter_tail, self._chapter_tail_chars)
        if not tail.strip():
            return None
        return ContextSnapshot(label=_CHAPTER_LABEL, text=tail)

    def following(self, source_chunk: str) -> ContextSnapshot:
        return ContextSnapshot(
            label = _CHUNK_LABEL,
            text  = clip_tail(source_chunk, self._chunk_tail_chars),
        )


def clip_tail(text: Optional[str], limit: int) -> str:
    """Conserva el FINAL del texto: es lo más cercano al contenido nuevo."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[-limit:]
