from dataclasses import dataclass


@dataclass
class Chunk:
    """Unidad de trabajo del pipeline. Derivada, nunca se persiste."""
    index: int
    text: str


@dataclass
class ChunkConfig:
    """Configuracion del chunker. Centralizada y explicita."""
    max_tokens: int = 2500
    chars_per_token: float = 3.5
