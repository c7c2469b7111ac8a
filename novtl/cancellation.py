# novtl/cancellation.py
import threading

from novtl.router.errors import UserAbortedError


class CancellationToken:
    """
    Token de cancelación cooperativa.
    Se pasa explícitamente a cada llamada que puede suspenderse
    (red, stream, backoff, pausa entre chunks). Nadie lo consulta
    por variable global.

    Es seguro cancelarlo desde otro hilo o desde un signal handler.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """
        Duerme hasta `timeout` segundos o hasta que alguien cancele.
        Devuelve True si el token quedó cancelado.
        """
        if timeout <= 0:
            return self.cancelled
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise UserAbortedError()
