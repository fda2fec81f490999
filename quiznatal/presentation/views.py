# quiznatal/presentation/views.py

import logging
import secrets

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status

from quiznatal.core.dependency_injection import (
    catalogo,
    get_listar_produtos_use_case,
    get_gerenciar_carrinho_use_case,
    get_buscar_endereco_use_case,
    get_consultar_saldo_use_case,
    get_checkout_pix_use_case,
)
from quiznatal.core.exceptions import (
    BaseErroCore,
    DadosInvalidosError,
    ItemNaoEncontradoError,
    PagamentoFalhouError,
    ServicoIndisponivelError,
    TransicaoInvalidaError,
    OperacaoEmAndamentoError,
)
from quiznatal.infrastructure.configuracao import get_configuracao
from quiznatal.infrastructure.travas import TravaCache
from .cart_manager import CartManager, CheckoutManager
from .serializers import (
    ProdutoSerializer,
    CarrinhoSerializer,
    AdicionarItemSerializer,
    AtualizarQuantidadeSerializer,
    CepSerializer,
    EnderecoSerializer,
    DadosCheckoutSerializer,
    EstadoCheckoutSerializer,
    SaldoSerializer,
)

logger = logging.getLogger(__name__)


# ====================================================================
# TRADUÇÃO DOS ERROS DO CORE PARA HTTP
# ====================================================================

STATUS_POR_ERRO = (
    (DadosInvalidosError, status.HTTP_400_BAD_REQUEST),
    (PagamentoFalhouError, status.HTTP_402_PAYMENT_REQUIRED),
    (ServicoIndisponivelError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ItemNaoEncontradoError, status.HTTP_404_NOT_FOUND),
    (TransicaoInvalidaError, status.HTTP_409_CONFLICT),
    (OperacaoEmAndamentoError, status.HTTP_409_CONFLICT),
)


def _classes_de_erro(base=BaseErroCore):
    for subclasse in base.__subclasses__():
        yield subclasse
        yield from _classes_de_erro(subclasse)


ERROS_POR_CODIGO = {classe.codigo: classe for classe in _classes_de_erro()}


def status_para_erro(classe_erro) -> int:
    for classe, codigo_http in STATUS_POR_ERRO:
        if issubclass(classe_erro, classe):
            return codigo_http
    return status.HTTP_400_BAD_REQUEST


def resposta_erro(erro: BaseErroCore) -> Response:
    return Response({'error': erro.message, 'code': erro.codigo}, status=status_para_erro(type(erro)))


def resposta_estado(estado, status_sucesso=status.HTTP_200_OK) -> Response:
    """Serializa o EstadoCheckout; o status HTTP reflete o erro registrado, se houver."""
    codigo_http = status_sucesso
    if estado.codigo_erro:
        codigo_http = status_para_erro(ERROS_POR_CODIGO.get(estado.codigo_erro, BaseErroCore))
    return Response(EstadoCheckoutSerializer(estado).data, status=codigo_http)


# ====================================================================
# CATÁLOGO E CARRINHO
# ====================================================================

class ProdutosAPIView(APIView):
    """Lista o catálogo da loja."""

    def get(self, request):
        produtos = get_listar_produtos_use_case().executar()
        return Response(ProdutoSerializer(produtos, many=True).data)


class CarrinhoAPIView(APIView):
    """
    API View para gerenciar o carrinho da sessão.
    """

    def get(self, request):
        """
        Retorna o carrinho da sessão com os totais recalculados.
        """
        cart = CartManager(request, catalogo)
        return Response(CarrinhoSerializer(cart.carrinho).data)

    def post(self, request):
        """
        Adiciona uma unidade do produto ao carrinho.
        """
        serializer = AdicionarItemSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        cart = CartManager(request, catalogo)
        try:
            get_gerenciar_carrinho_use_case().adicionar_item(cart.carrinho, serializer.validated_data['produto_id'])
        except BaseErroCore as e:
            return resposta_erro(e)

        cart.save()
        return Response(CarrinhoSerializer(cart.carrinho).data, status=status.HTTP_201_CREATED)

    def patch(self, request):
        """
        Define a quantidade de um item; zero ou menos remove a linha.
        """
        serializer = AtualizarQuantidadeSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        cart = CartManager(request, catalogo)
        try:
            get_gerenciar_carrinho_use_case().atualizar_quantidade(
                cart.carrinho,
                serializer.validated_data['produto_id'],
                serializer.validated_data['quantidade'],
            )
        except BaseErroCore as e:
            return resposta_erro(e)

        cart.save()
        return Response(CarrinhoSerializer(cart.carrinho).data)


class CarrinhoItemAPIView(APIView):

    def delete(self, request, produto_id):
        cart = CartManager(request, catalogo)
        get_gerenciar_carrinho_use_case().remover_item(cart.carrinho, produto_id)
        cart.save()
        return Response(CarrinhoSerializer(cart.carrinho).data)


# ====================================================================
# ENDEREÇO
# ====================================================================

class CepAPIView(APIView):
    """
    Busca o endereço de um CEP. Em qualquer falha o cliente continua podendo
    preencher o endereço manualmente.
    """

    def post(self, request):
        serializer = CepSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        try:
            endereco = get_buscar_endereco_use_case().executar(serializer.validated_data['cep'])
        except BaseErroCore as e:
            return resposta_erro(e)

        return Response(EnderecoSerializer(endereco).data)


# ====================================================================
# CHECKOUT PIX
# ====================================================================

def _checkout_da_sessao(request):
    """Monta o caso de uso de checkout ligado à sessão (estado + trava)."""
    repositorio = CheckoutManager(request)
    return get_checkout_pix_use_case(
        estado=repositorio.carregar(),
        trava=TravaCache(repositorio.session_key),
        repositorio=repositorio,
    )


class CheckoutAPIView(APIView):
    """
    Estado atual do checkout da sessão. DELETE abandona o pedido e começa um
    novo; se o pedido descartado já estava pago, o carrinho é esvaziado.
    """

    def get(self, request):
        return Response(EstadoCheckoutSerializer(CheckoutManager(request).carregar()).data)

    def delete(self, request):
        checkout = _checkout_da_sessao(request)
        estado = checkout.reiniciar()
        if checkout.pedido_anterior_confirmado:
            CartManager(request, catalogo).clear()
        return resposta_estado(estado)


class GerarPixAPIView(APIView):
    """
    Gera a cobrança PIX do carrinho da sessão.
    """

    def post(self, request):
        serializer = DadosCheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        cart = CartManager(request, catalogo)
        estado = _checkout_da_sessao(request).gerar_pix(
            carrinho=cart.carrinho,
            cliente=serializer.to_cliente_entity(),
            rastreamento=serializer.to_rastreamento_entity(),
        )
        return resposta_estado(estado, status_sucesso=status.HTTP_201_CREATED)


class VerificarPagamentoAPIView(APIView):
    """Ação "Já paguei"."""

    def post(self, request):
        estado = _checkout_da_sessao(request).verificar_pagamento()
        return resposta_estado(estado)


class CodigoPixAPIView(APIView):
    """Código "copia e cola" da cobrança ativa."""

    def get(self, request):
        checkout = _checkout_da_sessao(request)
        try:
            codigo = checkout.codigo_para_copiar()
        except BaseErroCore as e:
            return resposta_erro(e)
        return Response({'codigo_pix': codigo})


# ====================================================================
# ADMINISTRAÇÃO
# ====================================================================

class SaldoAPIView(APIView):
    """
    Saldo da conta no gateway. Exige o cabeçalho X-Saldo-Token igual a
    SALDO_TOKEN_ADMIN; sem token configurado o endpoint não existe.
    """

    def get(self, request):
        token_admin = get_configuracao().saldo_token_admin
        if not token_admin:
            return Response(status=status.HTTP_404_NOT_FOUND)

        token = request.headers.get('X-Saldo-Token', '')
        if not secrets.compare_digest(token, token_admin):
            logger.warning("Tentativa de consulta de saldo com token inválido.")
            return Response({'error': 'Não autorizado', 'code': 'forbidden'}, status=status.HTTP_403_FORBIDDEN)

        try:
            saldo = get_consultar_saldo_use_case().executar()
        except BaseErroCore as e:
            return resposta_erro(e)

        return Response(SaldoSerializer(saldo).data)
