import math
from abc import ABC, abstractmethod

# Empírico para prosa en alfabetos latinos; sobreestima un poco en CJK,
# lo que deja el presupuesto del lado seguro.
CHARS_PER_TOKEN = 3.5


class TokenEstimator(ABC):
    @abstractmethod
    def estimate(self, text: str) -> int: ...

    @abstractmethod
    def max_chars(self, max_tokens: int) -> int: ...


class CharTokenEstimator(TokenEstimator):
    """
    Estimacion por caracteres, sin tokenizer del backend.
    Aproximada a proposito: el mismo factor sirve para Gemini, Claude y OpenAI.
    """
    def __init__(self, chars_per_token: float = CHARS_PER_TOKEN):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token debe ser positivo")
        self._ratio = chars_per_token

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / self._ratio)

    def max_chars(self, max_tokens: int) -> int:
        #floor: el presupuesto en caracteres nunca excede el de tokens
        return max(1, math.floor(max_tokens * self._ratio))
