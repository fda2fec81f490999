# quiznatal/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (Catálogo, Gateways)
DEVE seguir para se conectar à camada Core (Casos de Uso).
"""

from typing import Protocol, List, Optional
from abc import abstractmethod
from decimal import Decimal

from quiznatal.core.entities import (
    Produto, DadosCliente, Endereco, ItemCobranca, CobrancaPix, StatusCobranca,
    SaldoGateway, PedidoConversao, EstadoCheckout
)


# ====================================================================
# 1. CATÁLOGO
# ====================================================================

class ICatalogoProdutos(Protocol):
    """Protocolo para a fonte (somente leitura) de produtos da loja."""

    @abstractmethod
    def listar(self) -> List[Produto]: ...

    @abstractmethod
    def buscar_por_id(self, produto_id: int) -> Optional[Produto]: ...


# ====================================================================
# 2. GATEWAYS (Portas de Serviços Externos)
# ====================================================================

class IGatewayPagamento(Protocol):
    """Protocolo para o processador de pagamentos PIX."""

    @abstractmethod
    def criar_cobranca(
        self,
        valor: Decimal,
        cliente: DadosCliente,
        endereco: Optional[Endereco],
        itens: List[ItemCobranca],
        pedido_id: str,
    ) -> CobrancaPix:
        """
        Faz exatamente uma chamada ao processador. Não há novas tentativas:
        qualquer recusa vira PagamentoFalhouError e falhas de rede ou de
        configuração viram ServicoIndisponivelError.
        """
        ...

    @abstractmethod
    def consultar_status(self, transacao_id: str) -> StatusCobranca:
        """Status desconhecidos devem ser tratados como não pagos."""
        ...

    @abstractmethod
    def consultar_saldo(self) -> SaldoGateway: ...


class IConsultaCep(Protocol):
    """Protocolo para o serviço de busca de endereço por CEP."""

    @abstractmethod
    def buscar(self, cep: str) -> Endereco: ...


class IReporterConversao(Protocol):
    """Protocolo para o envio de conversões à plataforma de atribuição."""

    @abstractmethod
    def reportar(self, pedido: PedidoConversao) -> None: ...


class ITrava(Protocol):
    """Trava não bloqueante que impede chamadas sobrepostas ao gateway."""

    def acquire(self, blocking: bool = ...) -> bool: ...

    def release(self) -> None: ...


class IRepositorioCheckout(Protocol):
    """
    Protocolo para a persistência do EstadoCheckout de uma sessão.
    O checkout carrega e salva o estado dentro da trava.
    """

    @abstractmethod
    def carregar(self) -> EstadoCheckout: ...

    @abstractmethod
    def salvar(self, estado: EstadoCheckout) -> None: ...
