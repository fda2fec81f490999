# quiznatal/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da aplicação.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import dataclasses
import logging
import threading
from decimal import Decimal
from typing import List, Optional

# Entidades e Exceções
from quiznatal.core.entities import (
    Produto, Carrinho, DadosCliente, Endereco, ItemCobranca, ParametrosRastreamento,
    PedidoConversao, EstadoCheckout, FaseCheckout, SaldoGateway
)
from quiznatal.core.exceptions import (
    BaseErroCore,
    CarrinhoVazioError,
    CamposObrigatoriosError,
    CPFInvalidoError,
    CepInvalidoError,
    ValorMinimoError,
    PagamentoFalhouError,
    ProdutoNaoEncontradoError,
    TransicaoInvalidaError,
    OperacaoEmAndamentoError,
    VerificacaoFalhouError,
)
from quiznatal.core.validators import (
    cpf_valido, cep_valido, uf_valida, somente_digitos, atende_valor_minimo, arredondar_valor
)

# Portas (Interfaces) - Importadas do quiznatal/core/ports.py
from quiznatal.core.ports import (
    ICatalogoProdutos,
    IGatewayPagamento,
    IConsultaCep,
    IReporterConversao,
    IRepositorioCheckout,
    ITrava,
)

logger = logging.getLogger(__name__)


# ====================================================================
# 1. CASOS DE USO DO CATÁLOGO E DO CARRINHO
# ====================================================================

class ListarProdutosUseCase:
    """Caso de Uso responsável por listar o catálogo da loja."""
    def __init__(self, catalogo: ICatalogoProdutos):
        self.catalogo = catalogo

    def executar(self) -> List[Produto]:
        return self.catalogo.listar()


class GerenciarCarrinhoUseCase:
    """
    Caso de Uso para as operações do carrinho. Resolve os produtos no catálogo
    e delega as regras de linhas/quantidades à entidade Carrinho.
    """
    def __init__(self, catalogo: ICatalogoProdutos):
        self.catalogo = catalogo

    def _obter_produto(self, produto_id: int) -> Produto:
        produto = self.catalogo.buscar_por_id(produto_id)
        if not produto:
            raise ProdutoNaoEncontradoError(f"Produto {produto_id} não encontrado.")
        return produto

    def adicionar_item(self, carrinho: Carrinho, produto_id: int) -> Carrinho:
        carrinho.adicionar_item(self._obter_produto(produto_id))
        return carrinho

    def remover_item(self, carrinho: Carrinho, produto_id: int) -> Carrinho:
        carrinho.remover_item(produto_id)
        return carrinho

    def atualizar_quantidade(self, carrinho: Carrinho, produto_id: int, quantidade: int) -> Carrinho:
        if quantidade > 0 and not carrinho.get_item(produto_id):
            raise ProdutoNaoEncontradoError(f"Produto {produto_id} não está no carrinho.")
        carrinho.atualizar_quantidade(produto_id, quantidade)
        return carrinho


# ====================================================================
# 2. CASOS DE USO DE ENDEREÇO E SALDO
# ====================================================================

class BuscarEnderecoPorCepUseCase:
    """Busca o endereço de um CEP; só chega ao serviço externo com 8 dígitos."""
    def __init__(self, consulta_cep: IConsultaCep):
        self.consulta_cep = consulta_cep

    def executar(self, cep: str) -> Endereco:
        if not cep_valido(cep):
            raise CepInvalidoError()
        return self.consulta_cep.buscar(somente_digitos(cep))


class ConsultarSaldoUseCase:
    def __init__(self, pagamento_gateway: IGatewayPagamento):
        self.pagamento_gateway = pagamento_gateway

    def executar(self) -> SaldoGateway:
        return self.pagamento_gateway.consultar_saldo()


# ====================================================================
# 3. CHECKOUT PIX (máquina de estados)
# ====================================================================

def endereco_para_cobranca(endereco: Optional[Endereco]) -> Optional[Endereco]:
    """
    Devolve o endereço normalizado para envio ao gateway, ou None.

    O bloco só é enviado com CEP de 8 dígitos e UF de duas letras; caso
    contrário é omitido por inteiro, nunca enviado pela metade.
    """
    if not endereco:
        return None
    if not cep_valido(endereco.cep) or not uf_valida(endereco.estado):
        return None
    return dataclasses.replace(
        endereco,
        cep=somente_digitos(endereco.cep),
        estado=endereco.estado.strip().upper(),
    )


class CheckoutPixUseCase:
    """
    Orquestra o checkout PIX de uma sessão:

        OCIOSO -> GERANDO -> AGUARDANDO_PAGAMENTO -> CONFIRMADO

    Os métodos públicos nunca levantam os erros do Core: cada falha fica
    registrada no EstadoCheckout (mensagem + código) e a fase volta para a
    anterior à ação. CONFIRMADO é terminal; um novo pedido exige um novo
    EstadoCheckout.
    """

    MENSAGEM_PIX_GERADO = "PIX gerado! Escaneie o QR Code ou copie o código para pagar."
    MENSAGEM_PENDENTE = "Pagamento ainda não identificado. Se você já pagou, aguarde alguns instantes e verifique novamente."
    MENSAGEM_CONFIRMADO = "Pagamento confirmado! Obrigado pela sua compra."

    def __init__(
        self,
        pagamento_gateway: IGatewayPagamento,
        reporter: Optional[IReporterConversao],
        valor_minimo: Decimal,
        estado: Optional[EstadoCheckout] = None,
        trava: Optional[ITrava] = None,
        repositorio: Optional[IRepositorioCheckout] = None,
    ):
        self.pagamento_gateway = pagamento_gateway
        self.reporter = reporter
        self.valor_minimo = Decimal(str(valor_minimo))
        self.estado = estado or EstadoCheckout()
        self.trava = trava or threading.Lock()
        self.repositorio = repositorio
        self.pedido_anterior_confirmado = False

    # --- Operações públicas ---

    def gerar_pix(
        self,
        carrinho: Carrinho,
        cliente: DadosCliente,
        rastreamento: Optional[ParametrosRastreamento] = None,
    ) -> EstadoCheckout:
        """Valida os dados, cria a cobrança no gateway e passa a aguardar o pagamento."""
        return self._executar_exclusivo(self._gerar, carrinho, cliente, rastreamento)

    def verificar_pagamento(self) -> EstadoCheckout:
        """Ação "Já paguei": consulta o status da cobrança ativa uma única vez."""
        return self._executar_exclusivo(self._verificar)

    def reiniciar(self) -> EstadoCheckout:
        """
        Abandona o pedido atual e começa um novo (nova cobrança, novo pedido_id).
        `pedido_anterior_confirmado` indica se o pedido descartado já estava pago.
        """
        return self._executar_exclusivo(self._reiniciar)

    def codigo_para_copiar(self) -> str:
        """Código PIX "copia e cola"; só existe enquanto houver uma cobrança ativa."""
        cobranca = self.estado.cobranca
        fases_com_cobranca = (FaseCheckout.AGUARDANDO_PAGAMENTO, FaseCheckout.CONFIRMADO)
        if self.estado.fase not in fases_com_cobranca or not cobranca or not cobranca.codigo_pix:
            raise TransicaoInvalidaError("Nenhum código PIX disponível para copiar.")
        return cobranca.codigo_pix

    # --- Execução ---

    def _executar_exclusivo(self, operacao, *args) -> EstadoCheckout:
        if not self.trava.acquire(blocking=False):
            logger.info("Operação de checkout ignorada: outra já está em andamento (pedido %s).", self.estado.pedido_id)
            self.estado.registrar_erro(OperacaoEmAndamentoError())
            return self.estado

        try:
            if self.repositorio is not None:
                self.estado = self.repositorio.carregar()
            try:
                operacao(*args)
            except BaseErroCore as erro:
                self.estado.registrar_erro(erro)
            if self.repositorio is not None:
                self.repositorio.salvar(self.estado)
        finally:
            self.trava.release()

        return self.estado

    def _reiniciar(self):
        self.pedido_anterior_confirmado = self.estado.fase == FaseCheckout.CONFIRMADO
        logger.info("Checkout reiniciado (pedido anterior %s, fase %s).", self.estado.pedido_id, self.estado.fase.value)
        self.estado = EstadoCheckout()

    def _gerar(self, carrinho: Carrinho, cliente: DadosCliente, rastreamento: Optional[ParametrosRastreamento]):
        fase_anterior = self.estado.fase
        if fase_anterior == FaseCheckout.CONFIRMADO:
            raise TransicaoInvalidaError("O pagamento deste pedido já foi confirmado.")
        if fase_anterior == FaseCheckout.GERANDO:
            # Estado salvo no meio de uma geração interrompida
            fase_anterior = FaseCheckout.OCIOSO

        self.estado.limpar_mensagens()

        _, total = carrinho.totais()
        if carrinho.esta_vazio() or total <= 0:
            raise CarrinhoVazioError()

        if not all(str(valor or "").strip() for valor in (cliente.nome, cliente.email, cliente.cpf)):
            raise CamposObrigatoriosError()

        if not cpf_valido(cliente.cpf):
            raise CPFInvalidoError()

        if not atende_valor_minimo(total, self.valor_minimo):
            raise ValorMinimoError(self.valor_minimo)

        valor = arredondar_valor(total)
        itens = [
            ItemCobranca(
                id=str(item.produto_id),
                nome=item.produto.nome,
                quantidade=item.quantidade,
                preco=item.produto.preco_com_desconto,
            )
            for item in carrinho.itens
        ]
        cliente_normalizado = dataclasses.replace(
            cliente,
            nome=cliente.nome.strip(),
            email=cliente.email.strip(),
            cpf=somente_digitos(cliente.cpf),
            telefone=somente_digitos(cliente.telefone),
        )

        self.estado.fase = FaseCheckout.GERANDO
        try:
            cobranca = self.pagamento_gateway.criar_cobranca(
                valor=valor,
                cliente=cliente_normalizado,
                endereco=endereco_para_cobranca(cliente.endereco),
                itens=itens,
                pedido_id=self.estado.pedido_id,
            )
            if cobranca is None or not cobranca.tem_dados_pagamento:
                raise PagamentoFalhouError()
        except BaseErroCore:
            self.estado.fase = fase_anterior
            raise
        except Exception:
            logger.exception("Erro inesperado do gateway ao gerar PIX do pedido %s.", self.estado.pedido_id)
            self.estado.fase = fase_anterior
            raise PagamentoFalhouError()

        self.estado.cobranca = cobranca
        self.estado.fase = FaseCheckout.AGUARDANDO_PAGAMENTO
        self.estado.cliente = cliente_normalizado
        self.estado.itens = itens
        self.estado.total = valor
        self.estado.rastreamento = rastreamento or ParametrosRastreamento()
        self.estado.informar(self.MENSAGEM_PIX_GERADO, "pix_generated")
        logger.info("PIX gerado para o pedido %s (transação %s).", self.estado.pedido_id, cobranca.transacao_id)

    def _verificar(self):
        if self.estado.fase == FaseCheckout.CONFIRMADO:
            self.estado.limpar_mensagens()
            self.estado.informar(self.MENSAGEM_CONFIRMADO, "payment_confirmed")
            return

        if self.estado.fase != FaseCheckout.AGUARDANDO_PAGAMENTO or not self.estado.cobranca:
            raise TransicaoInvalidaError("Gere o PIX antes de verificar o pagamento.")

        self.estado.limpar_mensagens()
        transacao_id = self.estado.cobranca.transacao_id

        try:
            status = self.pagamento_gateway.consultar_status(transacao_id)
        except BaseErroCore as erro:
            logger.warning("Falha ao verificar a transação %s: %s", transacao_id, erro.message)
            raise VerificacaoFalhouError()
        except Exception:
            logger.exception("Erro inesperado ao verificar a transação %s.", transacao_id)
            raise VerificacaoFalhouError()

        if not status.pago:
            self.estado.informar(self.MENSAGEM_PENDENTE, "payment_pending")
            return

        self.estado.fase = FaseCheckout.CONFIRMADO
        self.estado.pagamento_confirmado = True
        self.estado.informar(self.MENSAGEM_CONFIRMADO, "payment_confirmed")
        logger.info("Pagamento confirmado para o pedido %s (transação %s).", self.estado.pedido_id, transacao_id)

        self._reportar_conversao()

    def _reportar_conversao(self):
        if self.reporter is None or self.estado.conversao_reportada:
            return

        self.estado.conversao_reportada = True
        pedido = PedidoConversao(
            pedido_id=self.estado.pedido_id,
            criado_em=self.estado.criado_em,
            cliente=self.estado.cliente,
            itens=list(self.estado.itens),
            total=self.estado.total,
            rastreamento=self.estado.rastreamento,
        )

        try:
            self.reporter.reportar(pedido)
        except Exception:
            # A confirmação do pagamento não depende da atribuição
            logger.exception("Falha ao reportar a conversão do pedido %s.", pedido.pedido_id)
