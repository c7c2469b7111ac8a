# chunker/chunker.py
from .models import Chunk, ChunkConfig
from .token_estimator import TokenEstimator, CharTokenEstimator


class Chunker:
    """
    Divide un texto de longitud arbitraria en chunks acotados.
    Corta por saltos de línea; solo un párrafo más largo que el
    presupuesto se corta a offsets fijos.
    """

    def __init__(
        self,
        config: ChunkConfig | None = None,
        estimator: TokenEstimator | None = None,
    ):
        self._config = config or ChunkConfig()
        self._estimator = estimator or CharTokenEstimator(self._config.chars_per_token)
        self.max_chars = self._estimator.max_chars(self._config.max_tokens)

    def split(self, text: str) -> list[Chunk]:
        return [Chunk(index=i, text=t) for i, t in enumerate(self.split_text(text))]

    def split_text(self, text: str) -> list[str]:
        max_chars = self.max_chars

        if len(text) <= max_chars:
            # Cabe entero: sin cortes ni chunks vacíos
            return [text] if text.strip() else []

        pieces: list[str] = []
        current = ""

        for para in text.split("\n"):
            if len(para) > max_chars:
                # Párrafo gigante: no hay frontera natural más pequeña
                if current:
                    pieces.append(current.strip())
                    current = ""
                pieces.extend(
                    para[i:i + max_chars] for i in range(0, len(para), max_chars)
                )
            elif len(current) + len(para) > max_chars:
                pieces.append(current.strip())
                current = para + "\n"
            else:
                current += para + "\n"

        if current:
            pieces.append(current.strip())

        return [p for p in pieces if p.strip()]
