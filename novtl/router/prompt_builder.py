# router/prompt_builder.py
from dataclasses import dataclass
from typing import Optional

from novtl.context.glossary import GlossaryEntry, format_glossary_block
from novtl.context.window import ContextSnapshot


# Las instrucciones van como system prompt; el chunk viaja como mensaje
# de usuario. Así se separan reglas de contenido en todos los backends.
_STANDARD_SYSTEM = (
    "Role: Professional Novel Translator. Target: {target_lang}. Style: {style}. "
    "Rules: 1. Translate ONLY [CURRENT SOURCE]. 2. No glossary/context in output."
)

_DRAFT_SYSTEM = (
    "Role: Translator. Task: Translate STRICTLY to {target_lang}. "
    "Focus on accuracy and meaning."
)

_POLISH_SYSTEM = (
    "Role: Professional Novel Editor. Rewrite the provided draft into "
    "high-quality {target_lang} novel prose. Style: {style}."
)

_POLISH_USER = (
    "[DRAFT TEXT]\n{draft}\n\n"
    "[INSTRUCTION]\nPolish this draft. Output ONLY final text."
)

# Fallbacks: nunca dejan huecos en el prompt
_TARGET_LANG_DEFAULT = "Indonesian"
_STYLE_DEFAULT       = "Novel style that flows naturally."


@dataclass(frozen=True)
class PromptPair:
    system: str
    user:   str

    def __len__(self) -> int:
        return len(self.system) + len(self.user)


def build_standard_prompt(
    chunk_text:  str,
    target_lang: str,
    style:       Optional[str]                 = None,
    glossary:    Optional[list[GlossaryEntry]] = None,
    context:     Optional[ContextSnapshot]     = None,
) -> PromptPair:
    """
    Traducción en una sola pasada (modo standard).
    Glosario y contexto van antes del fuente, marcados como referencia.
    """
    return PromptPair(
        system = _STANDARD_SYSTEM.format(
            target_lang = target_lang or _TARGET_LANG_DEFAULT,
            style       = style or _STYLE_DEFAULT,
        ),
        user = f"{_preamble(glossary, context)}\n[CURRENT SOURCE]\n{chunk_text}",
    )


def build_draft_prompt(
    chunk_text:  str,
    target_lang: str,
    glossary:    Optional[list[GlossaryEntry]] = None,
    context:     Optional[ContextSnapshot]     = None,
) -> PromptPair:
    """Primera pasada del modo two_pass: fidelidad literal, sin estilo."""
    return PromptPair(
        system = _DRAFT_SYSTEM.format(target_lang=target_lang or _TARGET_LANG_DEFAULT),
        user   = f"{_preamble(glossary, context)}\n[SOURCE]\n{chunk_text}",
    )


def build_polish_prompt(
    draft_text:  str,
    target_lang: str,
    style:       Optional[str] = None,
) -> PromptPair:
    """Segunda pasada: reescribe el borrador en prosa final con el estilo del proyecto."""
    return PromptPair(
        system = _POLISH_SYSTEM.format(
            target_lang = target_lang or _TARGET_LANG_DEFAULT,
            style       = style or _STYLE_DEFAULT,
        ),
        user = _POLISH_USER.format(draft=draft_text),
    )


def _preamble(
    glossary: Optional[list[GlossaryEntry]],
    context:  Optional[ContextSnapshot],
) -> str:
    context_text = context.render() if context else ""
    return f"{format_glossary_block(glossary or [])}{context_text}"
