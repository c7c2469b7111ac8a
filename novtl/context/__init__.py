from novtl.context.glossary import GlossaryEntry, GlossaryIndex, load_glossary
from novtl.context.window import ContextSnapshot, ContextWindow

__all__ = [
    "GlossaryEntry", "GlossaryIndex", "load_glossary",
    "ContextSnapshot", "ContextWindow",
]
