"""
Catálogo estático da loja de Natal.

Os produtos são criados na importação do módulo e nunca alterados.
"""
from decimal import Decimal
from typing import List, Optional

from quiznatal.core.entities import Produto
from quiznatal.core.ports import ICatalogoProdutos


PRODUTOS = (
    Produto(
        id=1,
        nome="Chocottone Recheio Pistache",
        descricao="Recheio cremoso de pistache com gotas de chocolate",
        preco_original=Decimal("120.00"),
        preco_com_desconto=Decimal("12.90"),
        avaliacao=5,
        numero_avaliacoes=847,
        imagem="chocottone-pistache.jpg",
        selo="Lançamento",
    ),
    Produto(
        id=2,
        nome="Chocottone Recheio Mousse",
        descricao="Recheio de mousse de chocolate ao leite",
        preco_original=Decimal("90.00"),
        preco_com_desconto=Decimal("12.90"),
        avaliacao=5,
        numero_avaliacoes=623,
        imagem="chocottone-mousse.jpg",
        selo="-45%",
    ),
    Produto(
        id=3,
        nome="Chocottone Ovomaltine",
        descricao="Com creme de Ovomaltine e flocos crocantes",
        preco_original=Decimal("85.00"),
        preco_com_desconto=Decimal("12.90"),
        avaliacao=5,
        numero_avaliacoes=512,
        imagem="chocottone-ovomaltine.jpg",
        selo="-45%",
    ),
    Produto(
        id=4,
        nome="Chocottone Tradicional 500g",
        descricao="O clássico Chocottone com gotas de chocolate",
        preco_original=Decimal("65.00"),
        preco_com_desconto=Decimal("8.90"),
        avaliacao=5,
        numero_avaliacoes=1247,
        imagem="chocottone-tradicional.jpg",
        selo="-45%",
    ),
    Produto(
        id=5,
        nome="Panetone Frutas Premium",
        descricao="Com frutas cristalizadas selecionadas",
        preco_original=Decimal("75.00"),
        preco_com_desconto=Decimal("9.90"),
        avaliacao=4,
        numero_avaliacoes=389,
        imagem="panetone-frutas.jpg",
    ),
    Produto(
        id=6,
        nome="Mini Panetone Gotas",
        descricao="Mini panetone com gotas de chocolate",
        preco_original=Decimal("25.00"),
        preco_com_desconto=Decimal("4.90"),
        avaliacao=5,
        numero_avaliacoes=756,
        imagem="mini-panetone.jpg",
        selo="-45%",
    ),
)


class CatalogoEstatico(ICatalogoProdutos):
    """Implementação do catálogo sobre a tupla PRODUTOS (somente leitura)."""

    def __init__(self, produtos=PRODUTOS):
        self._produtos = {produto.id: produto for produto in produtos}

    def listar(self) -> List[Produto]:
        return list(self._produtos.values())

    def buscar_por_id(self, produto_id: int) -> Optional[Produto]:
        try:
            return self._produtos.get(int(produto_id))
        except (TypeError, ValueError):
            return None
