import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

import requests

# Importa os Protocols e Entidades da camada Core (Use Cases e Entities)
from quiznatal.core.ports import IGatewayPagamento, IConsultaCep, IReporterConversao
from quiznatal.core.entities import (
    DadosCliente, Endereco, ItemCobranca, CobrancaPix, StatusCobranca, SaldoGateway, PedidoConversao
)
from quiznatal.core.exceptions import (
    PagamentoFalhouError,
    ServicoIndisponivelError,
    CepInvalidoError,
    CepNaoEncontradoError,
    ReporteConversaoError,
)
from quiznatal.core.validators import somente_digitos
from quiznatal.infrastructure.configuracao import ConfiguracaoPix

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Implementações concretas que se comunicam com APIs externas.
# ====================================================================

class EvolutPayGateway(IGatewayPagamento):
    """
    Gateway para comunicação com a API PIX da EvolutPay.
    Implementa a interface IGatewayPagamento do Core.
    """

    MENSAGEM_VALOR_MINIMO = "O valor do pedido está abaixo do mínimo aceito para pagamento via PIX."
    MENSAGEM_DOCUMENTO = "CPF inválido. Verifique os dados informados."
    MENSAGEM_ESTADO = "Estado inválido. Verifique o CEP informado."
    MENSAGEM_DADOS_CLIENTE = "Dados do cliente inválidos. Verifique as informações informadas."

    def __init__(self, configuracao: ConfiguracaoPix):
        self.configuracao = configuracao
        self.api_base_url = configuracao.evolutpay_api_url.rstrip("/")
        self.status_base_url = configuracao.evolutpay_status_api_url.rstrip("/")
        self.timeout = configuracao.gateway_timeout
        self.status_pagos = {s.lower() for s in configuracao.status_pagos}

    # --- MÉTODOS PRIVADOS ---

    def _verificar_credenciais(self):
        if not self.configuracao.credenciais_gateway_configuradas:
            logger.error("Gateway de pagamento não configurado (EVOLUTPAY_PUBLIC_KEY/EVOLUTPAY_SECRET_KEY).")
            raise ServicoIndisponivelError()

    def _headers_chaves(self) -> dict:
        self._verificar_credenciais()
        return {
            "x-public-key": self.configuracao.evolutpay_public_key,
            "x-secret-key": self.configuracao.evolutpay_secret_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _ler_json(response) -> dict:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _formatar_cep(cep: str) -> str:
        cep = somente_digitos(cep)
        return f"{cep[:5]}-{cep[5:]}"

    def _montar_cliente(self, cliente: DadosCliente, endereco: Optional[Endereco]) -> dict:
        dados_cliente = {
            "name": cliente.nome,
            "email": cliente.email,
            "phone": cliente.telefone,
            "document": cliente.cpf,
        }
        # O Caso de Uso só repassa endereço com CEP e UF válidos
        if endereco:
            dados_cliente["address"] = {
                "zipCode": self._formatar_cep(endereco.cep),
                "country": "BR",
                "state": endereco.estado,
                "city": endereco.cidade or "",
                "neighborhood": endereco.bairro or "",
                "street": endereco.rua or "",
                "number": endereco.numero or "",
                "complement": endereco.complemento or "",
            }
        return dados_cliente

    def _mapear_erro(self, data: dict) -> PagamentoFalhouError:
        """Traduz a resposta de erro do processador para uma mensagem ao cliente."""
        mensagem = str(data.get("message") or "").lower()
        detalhes = data.get("details")
        campos = []
        if isinstance(detalhes, list):
            campos = [str(d.get("field", "")).lower() for d in detalhes if isinstance(d, dict)]

        if "mínimo" in mensagem or "minimo" in mensagem or "minimum" in mensagem:
            return PagamentoFalhouError(self.MENSAGEM_VALOR_MINIMO, PagamentoFalhouError.CATEGORIA_VALOR_MINIMO)
        if "documento" in mensagem or "document" in mensagem or "cpf" in mensagem:
            return PagamentoFalhouError(self.MENSAGEM_DOCUMENTO, PagamentoFalhouError.CATEGORIA_DOCUMENTO_INVALIDO)
        if any("state" in campo for campo in campos):
            return PagamentoFalhouError(self.MENSAGEM_ESTADO, PagamentoFalhouError.CATEGORIA_DADOS_CLIENTE)
        if any(campo.startswith("client") for campo in campos):
            return PagamentoFalhouError(self.MENSAGEM_DADOS_CLIENTE, PagamentoFalhouError.CATEGORIA_DADOS_CLIENTE)
        return PagamentoFalhouError()

    # --- MÉTODOS PÚBLICOS QUE IMPLEMENTAM O PROTOCOLO CORE ---

    def criar_cobranca(
        self,
        valor: Decimal,
        cliente: DadosCliente,
        endereco: Optional[Endereco],
        itens: List[ItemCobranca],
        pedido_id: str,
    ) -> CobrancaPix:
        headers = self._headers_chaves()

        payload = {
            "identifier": pedido_id,
            "amount": float(valor),
            "client": self._montar_cliente(cliente, endereco),
            "metadata": {
                "source": self.configuracao.origem_metadata,
                "orderId": pedido_id,
            },
        }
        if itens:
            payload["products"] = [
                {
                    "id": item.id,
                    "name": item.nome,
                    "quantity": item.quantidade,
                    "price": float(item.preco),
                    "physical": True,
                }
                for item in itens
            ]

        logger.info("Gerando PIX para o pedido %s.", pedido_id)
        try:
            url = f"{self.api_base_url}/gateway/pix/receive"
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("Erro de conexão com a EvolutPay ao gerar PIX do pedido %s: %s", pedido_id, e)
            raise ServicoIndisponivelError()

        data = self._ler_json(response)

        if response.status_code >= 500 and not data.get("errorCode"):
            logger.error("EvolutPay indisponível (HTTP %s) ao gerar PIX do pedido %s.", response.status_code, pedido_id)
            raise ServicoIndisponivelError()

        if not response.ok or data.get("errorCode") or data.get("success") is False:
            logger.error(
                "EvolutPay recusou o PIX do pedido %s: HTTP %s, código %s, mensagem %s, detalhes %s",
                pedido_id, response.status_code, data.get("errorCode"), data.get("message"), data.get("details"),
            )
            raise self._mapear_erro(data)

        pix = data.get("pix") or {}
        transacao_id = data.get("transactionId")
        if not transacao_id:
            logger.error("Resposta da EvolutPay sem transactionId para o pedido %s.", pedido_id)
            raise PagamentoFalhouError()

        return CobrancaPix(
            transacao_id=str(transacao_id),
            codigo_pix=pix.get("code") or "",
            qr_code_base64=pix.get("base64") or "",
            qr_code_url=pix.get("image"),
            status=data.get("status") or "waiting_payment",
            pedido_gateway_id=(data.get("order") or {}).get("id"),
        )

    def consultar_status(self, transacao_id: str) -> StatusCobranca:
        """
        Consulta o status atual de uma transação na EvolutPay.
        Qualquer status fora de PIX_STATUS_PAGOS é tratado como não pago.
        """
        self._verificar_credenciais()
        auth = (self.configuracao.evolutpay_public_key, self.configuracao.evolutpay_secret_key)
        url = f"{self.status_base_url}/payment-transaction/{transacao_id}"

        try:
            response = requests.get(url, auth=auth, headers={"Accept": "application/json"}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("Erro de conexão com a EvolutPay ao consultar a transação %s: %s", transacao_id, e)
            raise ServicoIndisponivelError("Não foi possível verificar o pagamento")

        data = self._ler_json(response)
        if not response.ok:
            logger.error("Consulta da transação %s falhou: HTTP %s %s", transacao_id, response.status_code, data)
            raise ServicoIndisponivelError("Não foi possível verificar o pagamento")

        status = str(data.get("status") or "")
        valor = data.get("amount")

        return StatusCobranca(
            status=status,
            pago=status.lower() in self.status_pagos,
            pago_em=data.get("paid_at") or data.get("payedAt"),
            valor=Decimal(str(valor)) if valor is not None else None,
        )

    def consultar_saldo(self) -> SaldoGateway:
        headers = self._headers_chaves()
        try:
            response = requests.get(f"{self.api_base_url}/gateway/producer/balance", headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("Erro de conexão com a EvolutPay ao consultar saldo: %s", e)
            raise ServicoIndisponivelError("Não foi possível consultar o saldo")

        data = self._ler_json(response)
        if not response.ok:
            logger.error("Consulta de saldo falhou: HTTP %s, código %s", response.status_code, data.get("errorCode"))
            raise ServicoIndisponivelError("Não foi possível consultar o saldo")

        return SaldoGateway(
            disponivel=Decimal(str(data.get("available") or 0)),
            pendente=Decimal(str(data.get("pending") or 0)),
            bloqueado=Decimal(str(data.get("fundLock") or 0)),
        )


class ConsultaCepGateway(IConsultaCep):
    """
    Busca de endereço por CEP com dois provedores: ViaCEP e, se ele falhar ou
    não conhecer o CEP, uma única nova tentativa na BrasilAPI.
    """

    def __init__(self, configuracao: ConfiguracaoPix):
        self.url_primaria = configuracao.cep_provedor_primario_url
        self.url_secundaria = configuracao.cep_provedor_secundario_url
        self.timeout = configuracao.cep_timeout

    def _get_json(self, url: str, provedor: str):
        try:
            response = requests.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise ServicoIndisponivelError(f"{provedor}: erro de conexão ({e})")

        if response.status_code == 404:
            raise CepNaoEncontradoError()
        if not response.ok:
            raise ServicoIndisponivelError(f"{provedor}: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise ServicoIndisponivelError(f"{provedor}: resposta malformada")
        if not isinstance(data, dict):
            raise ServicoIndisponivelError(f"{provedor}: resposta malformada")
        return data

    def _consultar_viacep(self, cep: str) -> Endereco:
        data = self._get_json(self.url_primaria.format(cep=cep), "ViaCEP")
        if data.get("erro") in (True, "true"):
            raise CepNaoEncontradoError()
        return Endereco(
            cep=cep,
            rua=data.get("logradouro") or "",
            bairro=data.get("bairro") or "",
            cidade=data.get("localidade") or "",
            estado=(data.get("uf") or "").upper(),
        )

    def _consultar_brasilapi(self, cep: str) -> Endereco:
        data = self._get_json(self.url_secundaria.format(cep=cep), "BrasilAPI")
        return Endereco(
            cep=cep,
            rua=data.get("street") or "",
            bairro=data.get("neighborhood") or "",
            cidade=data.get("city") or "",
            estado=(data.get("state") or "").upper(),
        )

    def buscar(self, cep: str) -> Endereco:
        cep = somente_digitos(cep)
        if len(cep) != 8:
            raise CepInvalidoError()

        nao_encontrado = False
        for provedor, consultar in (("ViaCEP", self._consultar_viacep), ("BrasilAPI", self._consultar_brasilapi)):
            try:
                return consultar(cep)
            except CepNaoEncontradoError:
                nao_encontrado = True
                logger.warning("%s não encontrou o CEP %s.", provedor, cep)
            except ServicoIndisponivelError as e:
                logger.warning("Falha ao consultar CEP no provedor %s: %s", provedor, e.message)

        if nao_encontrado:
            raise CepNaoEncontradoError()
        raise ServicoIndisponivelError("Não foi possível buscar o CEP agora. Preencha o endereço manualmente.")


# ====================================================================
# REPORTERS DE CONVERSÃO
# ====================================================================

def _para_centavos(valor) -> int:
    return int((Decimal(str(valor)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _formatar_data_utc(data: datetime) -> str:
    if data.tzinfo is None:
        data = data.replace(tzinfo=timezone.utc)
    return data.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class UtmifyReporter(IReporterConversao):
    """
    Envia pedidos pagos para a Utmify (atribuição de campanhas).
    Implementa o Protocolo IReporterConversao.
    """

    def __init__(self, configuracao: ConfiguracaoPix):
        self.configuracao = configuracao

    def montar_payload(self, pedido: PedidoConversao, aprovado_em: Optional[datetime] = None) -> dict:
        aprovado_em = _formatar_data_utc(aprovado_em or datetime.now(timezone.utc))
        total_centavos = _para_centavos(pedido.total)
        taxa_centavos = int((Decimal(total_centavos) * self.configuracao.utmify_taxa_gateway).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        if pedido.itens:
            produtos = [
                {
                    "id": item.id,
                    "name": item.nome,
                    "planId": None,
                    "planName": None,
                    "quantity": item.quantidade,
                    "priceInCents": _para_centavos(item.preco),
                }
                for item in pedido.itens
            ]
        else:
            produtos = [{
                "id": pedido.pedido_id,
                "name": f"Pedido {self.configuracao.utmify_plataforma}",
                "planId": None,
                "planName": None,
                "quantity": 1,
                "priceInCents": total_centavos,
            }]

        cliente = pedido.cliente
        rastreamento = pedido.rastreamento
        return {
            "orderId": pedido.pedido_id,
            "platform": self.configuracao.utmify_plataforma,
            "paymentMethod": "pix",
            "status": "paid",
            "createdAt": _formatar_data_utc(pedido.criado_em) if pedido.criado_em else aprovado_em,
            "approvedDate": aprovado_em,
            "refundedAt": None,
            "customer": {
                "name": (cliente.nome if cliente else "").strip(),
                "email": (cliente.email if cliente else "").strip(),
                "phone": (cliente.telefone if cliente else None) or None,
                "document": (cliente.cpf if cliente else None) or None,
                "country": "BR",
            },
            "products": produtos,
            "trackingParameters": {
                "src": rastreamento.src,
                "sck": rastreamento.sck,
                "utm_source": rastreamento.utm_source,
                "utm_campaign": rastreamento.utm_campaign,
                "utm_medium": rastreamento.utm_medium,
                "utm_content": rastreamento.utm_content,
                "utm_term": rastreamento.utm_term,
            },
            "commission": {
                "totalPriceInCents": total_centavos,
                "gatewayFeeInCents": taxa_centavos,
                "userCommissionInCents": total_centavos - taxa_centavos,
                "currency": "BRL",
            },
            "isTest": self.configuracao.utmify_is_test,
        }

    def reportar(self, pedido: PedidoConversao) -> None:
        if not self.configuracao.utmify_api_token:
            logger.info("UTMIFY_API_TOKEN não configurado; conversão do pedido %s não enviada.", pedido.pedido_id)
            return

        headers = {
            "Content-Type": "application/json",
            "x-api-token": self.configuracao.utmify_api_token,
        }
        try:
            response = requests.post(
                self.configuracao.utmify_api_url,
                json=self.montar_payload(pedido),
                headers=headers,
                timeout=10,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ReporteConversaoError(f"Erro ao enviar o pedido {pedido.pedido_id} para a Utmify: {e}")

        logger.info("Conversão do pedido %s enviada à Utmify (HTTP %s).", pedido.pedido_id, response.status_code)


_executor_reportes = ThreadPoolExecutor(max_workers=2, thread_name_prefix="reporter-conversao")


class ReporterEmSegundoPlano(IReporterConversao):
    """
    Executa outro reporter numa thread separada, sem bloquear a resposta do
    checkout. Falhas só aparecem no log.
    """

    def __init__(self, reporter: IReporterConversao, executor: Optional[ThreadPoolExecutor] = None):
        self.reporter = reporter
        self.executor = executor or _executor_reportes

    def reportar(self, pedido: PedidoConversao) -> None:
        futuro = self.executor.submit(self.reporter.reportar, pedido)
        futuro.add_done_callback(lambda f: self._registrar_resultado(f, pedido.pedido_id))

    @staticmethod
    def _registrar_resultado(futuro, pedido_id: str):
        erro = futuro.exception()
        if erro is not None:
            logger.error("Falha ao reportar a conversão do pedido %s: %s", pedido_id, erro)
