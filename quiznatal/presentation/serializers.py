from rest_framework import serializers

from quiznatal.core.entities import DadosCliente, Endereco, ParametrosRastreamento


class ProdutoSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    nome = serializers.CharField()
    descricao = serializers.CharField()
    preco_original = serializers.DecimalField(max_digits=10, decimal_places=2)
    preco_com_desconto = serializers.DecimalField(max_digits=10, decimal_places=2)
    avaliacao = serializers.IntegerField()
    numero_avaliacoes = serializers.IntegerField()
    imagem = serializers.CharField()
    selo = serializers.CharField(allow_null=True)


# ====================================================================
# SERIALIZERS PARA O CARRINHO
# ====================================================================

class ItemCarrinhoSerializer(serializers.Serializer):
    """
    Serializer para o item do carrinho.
    Usa o ProdutoSerializer para representar o produto aninhado.
    """
    produto = ProdutoSerializer(read_only=True)
    quantidade = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2)


class CarrinhoSerializer(serializers.Serializer):
    """Serializer principal do carrinho: linhas e totais recalculados."""
    itens = ItemCarrinhoSerializer(many=True, read_only=True)
    quantidade_total = serializers.SerializerMethodField()
    total = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    def get_quantidade_total(self, carrinho) -> int:
        return carrinho.totais()[0]


class AdicionarItemSerializer(serializers.Serializer):
    produto_id = serializers.IntegerField()


class AtualizarQuantidadeSerializer(serializers.Serializer):
    produto_id = serializers.IntegerField()
    quantidade = serializers.IntegerField(help_text="Zero ou menos remove o item do carrinho.")


# ====================================================================
# SERIALIZERS DE ENDEREÇO
# ====================================================================

class CepSerializer(serializers.Serializer):
    cep = serializers.CharField(max_length=9)


class EnderecoSerializer(serializers.Serializer):
    cep = serializers.CharField()
    rua = serializers.CharField()
    bairro = serializers.CharField()
    cidade = serializers.CharField()
    estado = serializers.CharField()


# SERIALIZER PARA CHECKOUT
# ====================================================================
class DadosCheckoutSerializer(serializers.Serializer):
    """
    Serializer para os dados do checkout PIX.

    Os campos obrigatórios (nome, e-mail, CPF) aceitam vazio aqui: quem
    recusa é o checkout, com a mensagem e o código de erro do Core.
    """
    nome = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    email = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    cpf = serializers.CharField(max_length=14, required=False, allow_blank=True, default="")
    telefone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")

    # Endereço (opcional; só vai ao gateway com CEP e UF válidos)
    cep = serializers.CharField(max_length=9, required=False, allow_blank=True, default="")
    rua = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    numero = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    complemento = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    bairro = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    cidade = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    estado = serializers.CharField(max_length=2, required=False, allow_blank=True, default="")

    # Parâmetros de campanha
    src = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    sck = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    utm_source = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    utm_campaign = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    utm_medium = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    utm_content = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)
    utm_term = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)

    CAMPOS_ENDERECO = ("cep", "rua", "numero", "complemento", "bairro", "cidade", "estado")
    CAMPOS_RASTREAMENTO = ("src", "sck", "utm_source", "utm_campaign", "utm_medium", "utm_content", "utm_term")

    def to_cliente_entity(self) -> DadosCliente:
        dados = self.validated_data
        endereco = None
        if any(dados.get(campo) for campo in self.CAMPOS_ENDERECO):
            endereco = Endereco(**{campo: dados.get(campo, "") for campo in self.CAMPOS_ENDERECO})

        return DadosCliente(
            nome=dados.get("nome", ""),
            email=dados.get("email", ""),
            cpf=dados.get("cpf", ""),
            telefone=dados.get("telefone", ""),
            endereco=endereco,
        )

    def to_rastreamento_entity(self) -> ParametrosRastreamento:
        return ParametrosRastreamento(
            **{campo: self.validated_data.get(campo) or None for campo in self.CAMPOS_RASTREAMENTO}
        )


class CobrancaPixSerializer(serializers.Serializer):
    transacao_id = serializers.CharField()
    codigo_pix = serializers.CharField()
    qr_code_base64 = serializers.CharField()
    qr_code_url = serializers.CharField(allow_null=True)
    status = serializers.CharField()


class EstadoCheckoutSerializer(serializers.Serializer):
    """Estado do checkout devolvido em todas as respostas do fluxo PIX."""
    fase = serializers.SerializerMethodField()
    pedido_id = serializers.CharField()
    cobranca = CobrancaPixSerializer(allow_null=True)
    total = serializers.DecimalField(max_digits=10, decimal_places=2)
    pagamento_confirmado = serializers.BooleanField()
    mensagem = serializers.CharField(allow_null=True)
    codigo_mensagem = serializers.CharField(allow_null=True)
    ultimo_erro = serializers.CharField(allow_null=True)
    codigo_erro = serializers.CharField(allow_null=True)

    def get_fase(self, estado) -> str:
        return estado.fase.value


class SaldoSerializer(serializers.Serializer):
    disponivel = serializers.DecimalField(max_digits=12, decimal_places=2)
    pendente = serializers.DecimalField(max_digits=12, decimal_places=2)
    bloqueado = serializers.DecimalField(max_digits=12, decimal_places=2)
