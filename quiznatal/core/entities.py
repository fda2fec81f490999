from dataclasses import dataclass, field, asdict
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Tuple
import uuid

from quiznatal.core.exceptions import DadosInvalidosError

# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros.
# ====================================================================

@dataclass(frozen=True)
class Produto:
    """Entrada imutável do catálogo estático da loja."""
    id: int
    nome: str
    descricao: str
    preco_original: Decimal
    preco_com_desconto: Decimal
    avaliacao: int
    numero_avaliacoes: int
    imagem: str
    selo: Optional[str] = None

    def __post_init__(self):
        if self.preco_original < 0 or self.preco_com_desconto < 0:
            raise DadosInvalidosError(f"Produto {self.id}: preços não podem ser negativos.")
        if self.preco_com_desconto > self.preco_original:
            raise DadosInvalidosError(f"Produto {self.id}: preço com desconto maior que o original.")
        if not 0 <= self.avaliacao <= 5:
            raise DadosInvalidosError(f"Produto {self.id}: avaliação deve estar entre 0 e 5.")
        if self.numero_avaliacoes < 0:
            raise DadosInvalidosError(f"Produto {self.id}: número de avaliações negativo.")


@dataclass
class ItemCarrinho:
    """Entidade que representa um item no carrinho."""
    produto: Produto
    quantidade: int = 1

    @property
    def produto_id(self) -> int:
        return self.produto.id

    @property
    def subtotal(self) -> Decimal:
        """Calcula o subtotal do item."""
        return self.produto.preco_com_desconto * self.quantidade


@dataclass
class Carrinho:
    """
    Entidade do Carrinho de Compras.

    Mantém no máximo uma linha por produto, na ordem em que cada produto foi
    adicionado pela primeira vez. Uma linha nunca fica com quantidade zero:
    ela é removida.
    """
    itens: List[ItemCarrinho] = field(default_factory=list)

    def get_item(self, produto_id: int) -> Optional[ItemCarrinho]:
        for item in self.itens:
            if item.produto_id == produto_id:
                return item
        return None

    def adicionar_item(self, produto: Produto) -> ItemCarrinho:
        """Soma uma unidade à linha existente ou cria uma nova linha com quantidade 1."""
        existente = self.get_item(produto.id)
        if existente:
            existente.quantidade += 1
            return existente

        novo_item = ItemCarrinho(produto=produto, quantidade=1)
        self.itens.append(novo_item)
        return novo_item

    def remover_item(self, produto_id: int):
        self.itens = [item for item in self.itens if item.produto_id != produto_id]

    def atualizar_quantidade(self, produto_id: int, quantidade: int):
        """Define a quantidade de uma linha existente; zero ou menos remove a linha."""
        if quantidade <= 0:
            self.remover_item(produto_id)
            return

        existente = self.get_item(produto_id)
        if existente:
            existente.quantidade = quantidade

    def totais(self) -> Tuple[int, Decimal]:
        """Retorna (quantidade de unidades, valor total), sempre recalculados."""
        quantidade_total = sum(item.quantidade for item in self.itens)
        valor_total = sum((item.subtotal for item in self.itens), Decimal("0"))
        return quantidade_total, valor_total

    @property
    def total(self) -> Decimal:
        return self.totais()[1]

    def esta_vazio(self) -> bool:
        return not self.itens

    def limpar(self):
        self.itens = []


@dataclass
class Endereco:
    """Endereço de entrega informado no checkout (todos os campos são opcionais)."""
    cep: str = ""
    rua: str = ""
    numero: str = ""
    complemento: str = ""
    bairro: str = ""
    cidade: str = ""
    estado: str = ""


@dataclass
class DadosCliente:
    """Dados pessoais coletados no checkout."""
    nome: str
    email: str
    cpf: str
    telefone: str = ""
    endereco: Optional[Endereco] = None


@dataclass
class ParametrosRastreamento:
    """Parâmetros de atribuição de campanha (UTM) repassados à Utmify."""
    src: Optional[str] = None
    sck: Optional[str] = None
    utm_source: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None


@dataclass(frozen=True)
class ItemCobranca:
    """Snapshot de uma linha do carrinho enviada ao gateway e à Utmify."""
    id: str
    nome: str
    quantidade: int
    preco: Decimal


@dataclass(frozen=True)
class CobrancaPix:
    """Cobrança PIX devolvida pelo gateway. Imutável; uma nova geração a substitui."""
    transacao_id: str
    codigo_pix: str
    qr_code_base64: str
    status: str = "waiting_payment"
    qr_code_url: Optional[str] = None
    pedido_gateway_id: Optional[str] = None
    criada_em: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def tem_dados_pagamento(self) -> bool:
        return bool(self.codigo_pix or self.qr_code_base64)


@dataclass(frozen=True)
class StatusCobranca:
    """Resultado de uma consulta de status no gateway."""
    status: str
    pago: bool
    pago_em: Optional[str] = None
    valor: Optional[Decimal] = None


@dataclass(frozen=True)
class SaldoGateway:
    disponivel: Decimal
    pendente: Decimal
    bloqueado: Decimal


@dataclass
class PedidoConversao:
    """Pedido confirmado, no formato entregue ao reporter de conversão."""
    pedido_id: str
    criado_em: datetime
    cliente: DadosCliente
    itens: List[ItemCobranca]
    total: Decimal
    rastreamento: ParametrosRastreamento = field(default_factory=ParametrosRastreamento)


class FaseCheckout(str, Enum):
    OCIOSO = "idle"
    GERANDO = "generating"
    AGUARDANDO_PAGAMENTO = "awaiting_payment"
    CONFIRMADO = "confirmed"


@dataclass
class EstadoCheckout:
    """
    Estado da máquina de checkout de uma sessão.

    Erros não são uma fase: ficam em `ultimo_erro` enquanto a fase volta para
    aquela em que a ação falha começou.
    """
    fase: FaseCheckout = FaseCheckout.OCIOSO
    cobranca: Optional[CobrancaPix] = None
    ultimo_erro: Optional[str] = None
    codigo_erro: Optional[str] = None
    mensagem: Optional[str] = None
    codigo_mensagem: Optional[str] = None
    pagamento_confirmado: bool = False
    conversao_reportada: bool = False
    pedido_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    criado_em: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cliente: Optional[DadosCliente] = None
    itens: List[ItemCobranca] = field(default_factory=list)
    total: Decimal = Decimal("0")
    rastreamento: ParametrosRastreamento = field(default_factory=ParametrosRastreamento)

    def limpar_mensagens(self):
        self.ultimo_erro = None
        self.codigo_erro = None
        self.mensagem = None
        self.codigo_mensagem = None

    def registrar_erro(self, erro):
        self.ultimo_erro = erro.message
        self.codigo_erro = erro.codigo
        self.mensagem = None
        self.codigo_mensagem = None

    def informar(self, mensagem: str, codigo: str):
        self.mensagem = mensagem
        self.codigo_mensagem = codigo

    # --- Serialização para a sessão ---

    def para_dict(self) -> Dict:
        cobranca = None
        if self.cobranca:
            cobranca = asdict(self.cobranca)
            cobranca["criada_em"] = self.cobranca.criada_em.isoformat()

        cliente = asdict(self.cliente) if self.cliente else None

        return {
            "fase": self.fase.value,
            "cobranca": cobranca,
            "ultimo_erro": self.ultimo_erro,
            "codigo_erro": self.codigo_erro,
            "mensagem": self.mensagem,
            "codigo_mensagem": self.codigo_mensagem,
            "pagamento_confirmado": self.pagamento_confirmado,
            "conversao_reportada": self.conversao_reportada,
            "pedido_id": self.pedido_id,
            "criado_em": self.criado_em.isoformat(),
            "cliente": cliente,
            "itens": [
                {"id": i.id, "nome": i.nome, "quantidade": i.quantidade, "preco": str(i.preco)}
                for i in self.itens
            ],
            "total": str(self.total),
            "rastreamento": asdict(self.rastreamento),
        }

    @classmethod
    def de_dict(cls, dados: Dict) -> "EstadoCheckout":
        cobranca = None
        if dados.get("cobranca"):
            bruto = dict(dados["cobranca"])
            bruto["criada_em"] = datetime.fromisoformat(bruto["criada_em"])
            cobranca = CobrancaPix(**bruto)

        cliente = None
        if dados.get("cliente"):
            bruto = dict(dados["cliente"])
            endereco = bruto.pop("endereco", None)
            cliente = DadosCliente(**bruto, endereco=Endereco(**endereco) if endereco else None)

        return cls(
            fase=FaseCheckout(dados.get("fase", FaseCheckout.OCIOSO.value)),
            cobranca=cobranca,
            ultimo_erro=dados.get("ultimo_erro"),
            codigo_erro=dados.get("codigo_erro"),
            mensagem=dados.get("mensagem"),
            codigo_mensagem=dados.get("codigo_mensagem"),
            pagamento_confirmado=dados.get("pagamento_confirmado", False),
            conversao_reportada=dados.get("conversao_reportada", False),
            pedido_id=dados.get("pedido_id") or str(uuid.uuid4()),
            criado_em=datetime.fromisoformat(dados["criado_em"]) if dados.get("criado_em") else datetime.now(timezone.utc),
            cliente=cliente,
            itens=[
                ItemCobranca(id=i["id"], nome=i["nome"], quantidade=i["quantidade"], preco=Decimal(i["preco"]))
                for i in dados.get("itens", [])
            ],
            total=Decimal(dados.get("total", "0")),
            rastreamento=ParametrosRastreamento(**(dados.get("rastreamento") or {})),
        )
