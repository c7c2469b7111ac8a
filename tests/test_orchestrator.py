# tests/test_orchestrator.py
import httpx
import pytest

from novtl.cancellation import CancellationToken
from novtl.orchestrator import ChunkOrchestrator, ChunkPlan, ChunkState
from novtl.router.base import ProviderAdapter
from novtl.router.errors import ErrorKind
from novtl.router.models import ProviderConfig
from novtl.router.prompt_builder import build_draft_prompt, build_standard_prompt


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------

class ScriptedAdapter(ProviderAdapter):
    """
    Cada llamada consume un paso del guion.
    - stream: lista de fragmentos; una excepción en la lista se lanza en ese punto
    - generate: texto o excepción
    """

    def __init__(self, stream_script=(), generate_script=()):
        super().__init__(ProviderConfig(name="fake", model="fake-1"))
        self.stream_script   = list(stream_script)
        self.generate_script = list(generate_script)
        self.stream_calls    = []
        self.generate_calls  = []

    def generate(self, prompt, system_instruction, token, temperature=0.3):
        self.generate_calls.append({"prompt": prompt, "temperature": temperature})
        step = self.generate_script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    def _iter_deltas(self, prompt, system_instruction, temperature):
        self.stream_calls.append({"prompt": prompt, "temperature": temperature})
        for item in self.stream_script.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item


class RecordingToken(CancellationToken):
    """Registra las esperas de backoff sin dormir."""

    def __init__(self, cancel_on_wait=False):
        super().__init__()
        self.waits = []
        self._cancel_on_wait = cancel_on_wait

    def wait(self, timeout):
        self.waits.append(timeout)
        if self._cancel_on_wait:
            self.cancel()
        return self.cancelled


def standard_plan(text="Hello world."):
    return ChunkPlan(final=build_standard_prompt(text, "Indonesian"), target_lang="Indonesian")


def two_pass_plan(text="Hello world."):
    return ChunkPlan(
        draft       = build_draft_prompt(text, "Indonesian"),
        target_lang = "Indonesian",
        style       = "Formal",
    )


def unauthorized() -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.com")
    return httpx.HTTPStatusError(
        "HTTP 401", request=request, response=httpx.Response(401, request=request),
    )


# ------------------------------------------------------------------
# Modo standard y reintentos
# ------------------------------------------------------------------

class TestEjecucion:

    def test_exito_al_primer_intento(self):
        adapter = ScriptedAdapter(stream_script=[["Halo", " dunia."]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)
        received = []

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), received.append)

        assert outcome.state is ChunkState.SUCCEEDED
        assert outcome.text == "Halo dunia."
        assert outcome.attempts == 1
        assert outcome.history == (ChunkState.PENDING, ChunkState.IN_FLIGHT, ChunkState.SUCCEEDED)
        assert received == ["Halo", " dunia."]
        assert adapter.stream_calls[0]["temperature"] == 0.5

    def test_dos_fallos_transitorios_y_exito(self):
        adapter = ScriptedAdapter(stream_script=[
            [ConnectionError("reset")],
            [httpx.ReadTimeout("timeout")],
            ["ok"],
        ])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.SUCCEEDED
        assert outcome.attempts == 3
        assert outcome.history == (
            ChunkState.PENDING,
            ChunkState.IN_FLIGHT, ChunkState.RETRYING,
            ChunkState.IN_FLIGHT, ChunkState.RETRYING,
            ChunkState.IN_FLIGHT, ChunkState.SUCCEEDED,
        )

    def test_nunca_hay_cuarto_intento(self):
        adapter = ScriptedAdapter(stream_script=[[ConnectionError("reset")] for _ in range(4)])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert outcome.attempts == 3
        assert len(adapter.stream_calls) == 3
        assert outcome.error.kind is ErrorKind.SERVER_OVERLOADED

    def test_error_fatal_no_se_reintenta(self):
        adapter = ScriptedAdapter(stream_script=[[unauthorized()], ["nunca"]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert outcome.attempts == 1
        assert outcome.error.kind is ErrorKind.INVALID_CREDENTIAL

    def test_backoff_exponencial(self):
        adapter = ScriptedAdapter(stream_script=[
            [ConnectionError("a")], [ConnectionError("b")], ["ok"],
        ])
        orch = ChunkOrchestrator(adapter, backoff_seconds=1.0)
        token = RecordingToken()

        orch.translate_chunk(standard_plan(), token, lambda _: None)

        assert token.waits == [2.0, 4.0]

    def test_prompt_demasiado_grande_es_fatal_sin_llamar(self):
        adapter = ScriptedAdapter()
        orch = ChunkOrchestrator(adapter, max_prompt_tokens=10)

        outcome = orch.translate_chunk(standard_plan("x" * 500), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert outcome.error.kind is ErrorKind.INPUT_TOO_LARGE
        assert outcome.attempts == 1
        assert adapter.stream_calls == []

    def test_max_attempts_invalido(self):
        with pytest.raises(ValueError):
            ChunkOrchestrator(ScriptedAdapter(), max_attempts=0)


# ------------------------------------------------------------------
# Cancelación
# ------------------------------------------------------------------

class TestCancelacion:

    def test_cancelado_antes_de_empezar(self):
        orch = ChunkOrchestrator(ScriptedAdapter(), backoff_seconds=0)
        token = CancellationToken()
        token.cancel()
        calls = []

        outcome = orch.execute(lambda: calls.append(1) or "x", token)

        assert outcome.state is ChunkState.ABORTED
        assert outcome.attempts == 0
        assert calls == []

    def test_cancelar_antes_del_segundo_intento(self):
        adapter = ScriptedAdapter(stream_script=[[ConnectionError("reset")], ["habría funcionado"]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=1.0)
        token = RecordingToken(cancel_on_wait=True)

        outcome = orch.translate_chunk(standard_plan(), token, lambda _: None)

        assert outcome.state is ChunkState.ABORTED
        assert outcome.attempts == 1
        assert len(adapter.stream_calls) == 1
        assert outcome.history[-1] is ChunkState.ABORTED

    def test_cancelar_durante_la_llamada_que_falla(self):
        orch = ChunkOrchestrator(ScriptedAdapter(), backoff_seconds=0)
        token = CancellationToken()

        def call():
            token.cancel()
            raise ConnectionError("cortado")

        outcome = orch.execute(call, token)

        assert outcome.state is ChunkState.ABORTED
        assert outcome.error is None

    def test_cancelar_durante_una_llamada_exitosa(self):
        orch = ChunkOrchestrator(ScriptedAdapter(), backoff_seconds=0)
        token = CancellationToken()

        def call():
            token.cancel()
            return "texto tardío"

        outcome = orch.execute(call, token)

        assert outcome.state is ChunkState.ABORTED
        assert outcome.text == "texto tardío"

    def test_cancelar_a_mitad_del_stream(self):
        adapter = ScriptedAdapter(stream_script=[["uno", "dos", "tres"]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)
        token = CancellationToken()
        received = []

        def on_delta(delta):
            received.append(delta)
            token.cancel()

        outcome = orch.translate_chunk(standard_plan(), token, on_delta)

        assert outcome.state is ChunkState.ABORTED
        assert received == ["uno"]
        # Lo ya emitido queda en el resultado abortado
        assert outcome.text == "uno"


# ------------------------------------------------------------------
# Stream interrumpido
# ------------------------------------------------------------------

class TestStreamInterrumpido:

    def test_fallo_tras_emitir_no_se_reintenta(self):
        adapter = ScriptedAdapter(stream_script=[
            ["Halo", ConnectionError("reset")],
            ["Halo dunia."],
        ])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)
        received = []

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), received.append)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert outcome.attempts == 1
        assert received == ["Halo"]
        assert outcome.error.retryable is False
        assert outcome.error.kind is ErrorKind.SERVER_OVERLOADED
        assert outcome.error.partial_text == "Halo"

    def test_fallo_antes_de_emitir_si_se_reintenta(self):
        adapter = ScriptedAdapter(stream_script=[[ConnectionError("reset")], ["Halo dunia."]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)
        received = []

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), received.append)

        assert outcome.state is ChunkState.SUCCEEDED
        assert outcome.attempts == 2
        assert received == ["Halo dunia."]


# ------------------------------------------------------------------
# Respuestas vacías
# ------------------------------------------------------------------

class TestRespuestaVacia:

    def test_stream_vacio_se_reintenta(self):
        adapter = ScriptedAdapter(stream_script=[[""], ["ok"]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.SUCCEEDED
        assert outcome.text == "ok"
        assert outcome.attempts == 2

    def test_siempre_vacio_nunca_es_exito(self):
        adapter = ScriptedAdapter(stream_script=[[], [""], []])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert outcome.attempts == 3
        assert outcome.error.kind is ErrorKind.UNKNOWN

    def test_solo_espacios_ya_emitidos_no_se_reintentan(self):
        adapter = ScriptedAdapter(stream_script=[["  ", "\n"], ["ok"]])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)
        received = []

        outcome = orch.translate_chunk(standard_plan(), CancellationToken(), received.append)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert outcome.attempts == 1
        assert outcome.error.partial_text == "".join(received) == "  \n"

    def test_borrador_vacio_se_reintenta(self):
        adapter = ScriptedAdapter(
            generate_script = ["", "Borrador"],
            stream_script   = [["Final"]],
        )
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(two_pass_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.SUCCEEDED
        assert outcome.attempts == 3
        assert "Borrador" in adapter.stream_calls[0]["prompt"]

    def test_vacio_por_cancelacion_es_abortado(self):
        orch = ChunkOrchestrator(ScriptedAdapter(), backoff_seconds=0)
        token = CancellationToken()

        def call():
            token.cancel()
            return ""

        outcome = orch.execute(call, token)

        assert outcome.state is ChunkState.ABORTED
        assert outcome.error is None


# ------------------------------------------------------------------
# Two-pass
# ------------------------------------------------------------------

class TestTwoPass:

    def test_solo_el_pulido_llega_al_llamador(self):
        adapter = ScriptedAdapter(
            generate_script = ["Borrador literal"],
            stream_script   = [["Prosa", " pulida"]],
        )
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)
        received = []

        outcome = orch.translate_chunk(two_pass_plan(), CancellationToken(), received.append)

        assert outcome.state is ChunkState.SUCCEEDED
        assert outcome.text == "Prosa pulida"
        assert received == ["Prosa", " pulida"]
        assert outcome.attempts == 2
        assert adapter.generate_calls[0]["temperature"] == 0.3
        assert adapter.stream_calls[0]["temperature"] == 0.7
        assert "Borrador literal" in adapter.stream_calls[0]["prompt"]

    def test_borrador_fallido_no_llega_al_pulido(self):
        adapter = ScriptedAdapter(generate_script=[unauthorized()])
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(two_pass_plan(), CancellationToken(), lambda _: None)

        assert outcome.state is ChunkState.FAILED_FATAL
        assert adapter.stream_calls == []

    def test_reintentos_se_suman_entre_pasadas(self):
        adapter = ScriptedAdapter(
            generate_script = [ConnectionError("a"), "Borrador"],
            stream_script   = [["Final"]],
        )
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(two_pass_plan(), CancellationToken(), lambda _: None)

        assert outcome.attempts == 3
        assert outcome.history.count(ChunkState.PENDING) == 2
        assert outcome.history[-1] is ChunkState.SUCCEEDED

    def test_borrador_cancelado_no_forma_parte_del_parcial(self):
        adapter = ScriptedAdapter(generate_script=["Borrador"], stream_script=[["nunca"]])
        token = CancellationToken()
        scripted_generate = adapter.generate

        def generate(*args, **kwargs):
            token.cancel()
            return scripted_generate(*args, **kwargs)

        adapter.generate = generate
        orch = ChunkOrchestrator(adapter, backoff_seconds=0)

        outcome = orch.translate_chunk(two_pass_plan(), token, lambda _: None)

        assert outcome.state is ChunkState.ABORTED
        assert outcome.text == ""
        assert adapter.stream_calls == []
