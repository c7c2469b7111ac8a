# router/openai_compat.py
import logging
from typing import TYPE_CHECKING, Iterator, Optional

import httpx

from novtl.router.base import ProviderAdapter
from novtl.router.models import DEFAULT_ENDPOINTS, ProviderConfig
from novtl.router.sse import iter_sse_deltas

if TYPE_CHECKING:
    from novtl.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """
    Cualquier endpoint con el formato chat-completions de OpenAI
    (OpenAI, DeepSeek, Grok, llama.cpp, vLLM...).

    El stream llega como SSE: una línea `data: {json}` por fragmento
    y `data: [DONE]` al final. El decoder vive en router/sse.py.
    """

    def __init__(self, config: ProviderConfig, client: Optional[httpx.Client] = None):
        super().__init__(config)
        endpoint = config.endpoint or DEFAULT_ENDPOINTS.get(config.name)
        if not endpoint:
            raise ValueError(f"{config.name}: falta 'endpoint' en la configuración")
        self._endpoint = endpoint
        self._client = client or httpx.Client(timeout=httpx.Timeout(config.timeout_seconds))

    def close(self) -> None:
        self._client.close()

    def generate(
        self,
        prompt:             str,
        system_instruction: str,
        token:              "CancellationToken",
        temperature:        float = 0.3,
    ) -> str:
        token.raise_if_cancelled()
        response = self._client.post(
            self._endpoint,
            json    = self._payload(prompt, system_instruction, temperature, stream=False),
            headers = self._headers(),
        )
        response.raise_for_status()

        data = response.json()
        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    def _iter_deltas(
        self,
        prompt:             str,
        system_instruction: str,
        temperature:        float,
    ) -> Iterator[str]:
        with self._client.stream(
            "POST",
            self._endpoint,
            json    = self._payload(prompt, system_instruction, temperature, stream=True),
            headers = self._headers(),
        ) as response:
            if response.is_error:
                response.read()   # el cuerpo lleva el motivo (quota, contexto...)
                response.raise_for_status()
            yield from iter_sse_deltas(response.iter_lines())

    def _payload(self, prompt: str, system_instruction: str, temperature: float, stream: bool) -> dict:
        return {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user",   "content": prompt},
            ],
            "temperature": self._temperature(temperature),
            "stream": stream,
        }

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers
