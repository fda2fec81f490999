# quiznatal/presentation/cart_manager.py
# Gerencia o Carrinho na sessão do Django e o estado do Checkout no cache, por sessão.

import logging

from django.conf import settings
from django.core.cache import cache
from django.http import HttpRequest

from quiznatal.core.entities import Carrinho, ItemCarrinho, EstadoCheckout
from quiznatal.core.ports import ICatalogoProdutos, IRepositorioCheckout

logger = logging.getLogger(__name__)


def garantir_sessao(request: HttpRequest) -> str:
    """Garante que a sessão tenha uma chave (usada na trava do checkout)."""
    if not request.session.session_key:
        request.session.save()
    return request.session.session_key


class CartManager:
    """
    Gerencia o carrinho de compras, utilizando a sessão do Django
    para persistir o estado do carrinho entre requisições.
    """

    SESSION_KEY = 'carrinho_quiznatal'

    def __init__(self, request: HttpRequest, catalogo: ICatalogoProdutos):
        """Inicializa o CartManager e carrega o carrinho da sessão."""
        self.request = request
        self.catalogo = catalogo
        self.carrinho: Carrinho = self._load_carrinho_from_session()

    # --- Métodos de Persistência ---

    def _load_carrinho_from_session(self) -> Carrinho:
        """
        Carrega o Carrinho da sessão do Django.
        Se não existir, cria um novo objeto Carrinho vazio.
        """
        raw_cart = self.request.session.get(self.SESSION_KEY)

        if not raw_cart:
            return Carrinho()

        itens = []
        # O carrinho armazenado é um dicionário {produto_id: quantidade}, na ordem de inclusão
        for produto_id, quantidade in raw_cart.items():
            produto = self.catalogo.buscar_por_id(produto_id)
            if produto is None or quantidade <= 0:
                logger.warning("Descartando item inválido da sessão: produto %s, quantidade %s.", produto_id, quantidade)
                continue
            itens.append(ItemCarrinho(produto=produto, quantidade=quantidade))

        return Carrinho(itens=itens)

    def save(self):
        """
        Serializa o Carrinho para um formato simples e salva na sessão.
        Apenas o ID e a quantidade são armazenados; preços vêm sempre do catálogo.
        """
        self.request.session[self.SESSION_KEY] = {
            str(item.produto_id): item.quantidade for item in self.carrinho.itens
        }
        self.request.session.modified = True

    def clear(self):
        """Esvazia o carrinho (novo pedido depois de um pagamento confirmado)."""
        if self.SESSION_KEY in self.request.session:
            del self.request.session[self.SESSION_KEY]
            self.request.session.modified = True
        self.carrinho.limpar()


class CheckoutManager(IRepositorioCheckout):
    """
    Repositório do EstadoCheckout de uma sessão.

    O estado fica no cache, fora do dicionário da sessão que o SessionMiddleware
    regrava ao fim de cada requisição. Só é lido e gravado dentro da TravaCache.
    """

    PREFIXO = 'checkout-quiznatal'

    def __init__(self, request: HttpRequest, backend=None):
        self.request = request
        self.session_key = garantir_sessao(request)
        self.chave = f"{self.PREFIXO}:{self.session_key}"
        self.backend = backend or cache

    def carregar(self) -> EstadoCheckout:
        dados = self.backend.get(self.chave)
        if not dados:
            return EstadoCheckout()
        try:
            return EstadoCheckout.de_dict(dados)
        except (KeyError, TypeError, ValueError):
            logger.exception("Estado de checkout corrompido; iniciando um novo.")
            return EstadoCheckout()

    def salvar(self, estado: EstadoCheckout) -> None:
        self.backend.set(self.chave, estado.para_dict(), settings.SESSION_COOKIE_AGE)
