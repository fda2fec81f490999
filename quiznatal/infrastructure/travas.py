"""
Trava por sessão sobre o cache do Django.

Impede que duas requisições da mesma sessão gerem ou verifiquem o PIX ao mesmo
tempo. O timeout libera a chave se o processo morrer no meio da operação.
"""
import uuid

from django.core.cache import cache


class TravaCache:
    """Mesma interface de threading.Lock (acquire/release), usada pelo checkout."""

    PREFIXO = "trava-checkout"

    def __init__(self, chave: str, timeout: int = 60, backend=None):
        self.chave = f"{self.PREFIXO}:{chave}"
        self.timeout = timeout
        self.backend = backend or cache
        self._token = None

    def acquire(self, blocking: bool = True) -> bool:
        token = uuid.uuid4().hex
        # cache.add só grava se a chave não existir
        if not self.backend.add(self.chave, token, self.timeout):
            return False
        self._token = token
        return True

    def release(self) -> None:
        # Depois do timeout a chave pode já pertencer a outra requisição
        if self._token is not None and self.backend.get(self.chave) == self._token:
            self.backend.delete(self.chave)
        self._token = None
