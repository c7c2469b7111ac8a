# tests/test_cancellation.py
import threading
import time

import pytest

from novtl.cancellation import CancellationToken
from novtl.router.errors import UserAbortedError


class TestCancellationToken:

    def test_nuevo_token_no_esta_cancelado(self):
        token = CancellationToken()

        assert token.cancelled is False
        token.raise_if_cancelled()

    def test_cancelar_es_idempotente(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()

        assert token.cancelled is True

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(UserAbortedError):
            token.raise_if_cancelled()

    def test_wait_sin_cancelar_agota_el_timeout(self):
        assert CancellationToken().wait(0.01) is False

    def test_wait_cero_no_duerme(self):
        token = CancellationToken()
        token.cancel()

        assert token.wait(0) is True

    def test_cancelar_desde_otro_hilo_despierta_la_espera(self):
        token = CancellationToken()
        timer = threading.Timer(0.05, token.cancel)
        timer.start()

        started = time.monotonic()
        woke_cancelled = token.wait(10)
        elapsed = time.monotonic() - started
        timer.join()

        assert woke_cancelled is True
        assert elapsed < 5
