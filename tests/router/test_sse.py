# tests/router/test_sse.py
import json

from novtl.router.sse import iter_sse_deltas


def frame(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


def texts(lines) -> list[str]:
    """Solo los fragmentos con contenido; los marcos vacíos se descartan."""
    return [delta for delta in iter_sse_deltas(lines) if delta]


class TestIterSseDeltas:

    def test_fragmentos_en_orden(self):
        lines = [frame("Halo"), "", frame(" dunia"), "", "data: [DONE]"]

        assert texts(lines) == ["Halo", " dunia"]

    def test_done_termina_el_stream(self):
        lines = [frame("uno"), "data: [DONE]", frame("nunca")]

        assert texts(lines) == ["uno"]

    def test_ignora_heartbeats_y_eventos(self):
        lines = [": ping", "event: message", "id: 3", frame("texto"), "retry: 1000"]

        assert texts(lines) == ["texto"]

    def test_heartbeats_salen_como_cadena_vacia(self):
        # Cada marco produce algo: quien consume revisa la cancelación en cada uno
        lines = [": ping", "", ": ping", "event: message"]

        assert list(iter_sse_deltas(lines)) == ["", "", "", ""]

    def test_ignora_json_malformado(self):
        lines = ["data: {no es json", frame("sigue")]

        assert list(iter_sse_deltas(lines)) == ["", "sigue"]

    def test_ignora_deltas_sin_contenido(self):
        lines = [
            'data: {"choices": [{"delta": {"role": "assistant"}}]}',
            'data: {"choices": [{"delta": {"content": null}}]}',
            'data: {"choices": []}',
            "data: []",
            frame("ok"),
        ]

        assert texts(lines) == ["ok"]

    def test_data_sin_espacio(self):
        lines = ['data:{"choices": [{"delta": {"content": "pegado"}}]}']

        assert texts(lines) == ["pegado"]

    def test_stream_sin_done(self):
        assert texts([frame("a"), frame("b")]) == ["a", "b"]
