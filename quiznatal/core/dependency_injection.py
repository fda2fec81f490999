# quiznatal/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Responsável por instanciar os Use Cases com suas dependências de Gateways
concretos da camada de Infraestrutura.
"""
from typing import Optional

from quiznatal.core.entities import EstadoCheckout
from quiznatal.core.ports import ITrava, IRepositorioCheckout
from quiznatal.infrastructure.catalogo import CatalogoEstatico
from quiznatal.infrastructure.configuracao import get_configuracao
from quiznatal.infrastructure.gateways import (
    EvolutPayGateway,
    ConsultaCepGateway,
    UtmifyReporter,
    ReporterEmSegundoPlano,
)
from .use_cases import (
    ListarProdutosUseCase,
    GerenciarCarrinhoUseCase,
    BuscarEnderecoPorCepUseCase,
    ConsultarSaldoUseCase,
    CheckoutPixUseCase,
)

# Catálogo é imutável; os gateways dependem da configuração atual
catalogo = CatalogoEstatico()


def get_pagamento_gateway() -> EvolutPayGateway:
    return EvolutPayGateway(get_configuracao())

def get_reporter_conversao() -> ReporterEmSegundoPlano:
    return ReporterEmSegundoPlano(UtmifyReporter(get_configuracao()))


# ====================================================================
# Use Cases de Catálogo/Carrinho
# ====================================================================

def get_listar_produtos_use_case() -> ListarProdutosUseCase:
    return ListarProdutosUseCase(catalogo)

def get_gerenciar_carrinho_use_case() -> GerenciarCarrinhoUseCase:
    return GerenciarCarrinhoUseCase(catalogo)


# ====================================================================
# Use Cases de Endereço, Saldo e Checkout
# ====================================================================

def get_buscar_endereco_use_case() -> BuscarEnderecoPorCepUseCase:
    return BuscarEnderecoPorCepUseCase(ConsultaCepGateway(get_configuracao()))

def get_consultar_saldo_use_case() -> ConsultarSaldoUseCase:
    return ConsultarSaldoUseCase(get_pagamento_gateway())

def get_checkout_pix_use_case(
    estado: Optional[EstadoCheckout] = None,
    trava: Optional[ITrava] = None,
    repositorio: Optional[IRepositorioCheckout] = None,
) -> CheckoutPixUseCase:
    return CheckoutPixUseCase(
        pagamento_gateway=get_pagamento_gateway(),
        reporter=get_reporter_conversao(),
        valor_minimo=get_configuracao().valor_minimo,
        estado=estado,
        trava=trava,
        repositorio=repositorio,
    )
