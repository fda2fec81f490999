import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import Mock, patch

import requests
from django.core.cache.backends.locmem import LocMemCache
from django.core.exceptions import ImproperlyConfigured

# Importamos as classes que queremos testar
from quiznatal.infrastructure.catalogo import CatalogoEstatico
from quiznatal.infrastructure.configuracao import ConfiguracaoPix
from quiznatal.infrastructure.gateways import (
    EvolutPayGateway, ConsultaCepGateway, UtmifyReporter, ReporterEmSegundoPlano
)
from quiznatal.infrastructure.travas import TravaCache
from quiznatal.core.entities import (
    DadosCliente, Endereco, ItemCobranca, PedidoConversao, ParametrosRastreamento
)
from quiznatal.core.exceptions import (
    PagamentoFalhouError,
    ServicoIndisponivelError,
    CepNaoEncontradoError,
    ReporteConversaoError,
)


def resposta(status_code=200, json_data=None):
    """Simula um requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data if json_data is not None else {}
    if response.ok:
        response.raise_for_status.return_value = None
    else:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"HTTP {status_code}")
    return response


CONFIGURACAO = ConfiguracaoPix(
    evolutpay_public_key="pk_teste",
    evolutpay_secret_key="sk_teste",
    evolutpay_api_url="https://gateway.teste/api/v1",
    evolutpay_status_api_url="https://status.teste/v1",
    utmify_api_token="token-utmify",
    utmify_api_url="https://utmify.teste/orders",
    origens_permitidas=("http://localhost:5173",),
)

CLIENTE = DadosCliente(nome="Maria Silva", email="maria@example.com", cpf="11144477735", telefone="11987654321")
ITENS = [ItemCobranca(id="1", nome="Chocottone Recheio Pistache", quantidade=2, preco=Decimal("12.90"))]


# ====================================================================
# CATÁLOGO
# ====================================================================

class CatalogoEstaticoTestCase(unittest.TestCase):

    def test_catalogo_tem_os_seis_produtos(self):
        catalogo = CatalogoEstatico()
        self.assertEqual([p.id for p in catalogo.listar()], [1, 2, 3, 4, 5, 6])

    def test_buscar_por_id_aceita_texto_e_ignora_lixo(self):
        catalogo = CatalogoEstatico()
        self.assertEqual(catalogo.buscar_por_id("4").preco_com_desconto, Decimal("8.90"))
        self.assertIsNone(catalogo.buscar_por_id("abc"))
        self.assertIsNone(catalogo.buscar_por_id(99))


# ====================================================================
# GATEWAY EVOLUTPAY
# ====================================================================

class EvolutPayGatewayTestCase(unittest.TestCase):

    def setUp(self):
        self.gateway = EvolutPayGateway(CONFIGURACAO)

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_criar_cobranca_com_sucesso(self, post_mock):
        post_mock.return_value = resposta(200, {
            "transactionId": "tx-123",
            "status": "PENDING",
            "order": {"id": "ord-9"},
            "pix": {"code": "00020126...", "base64": "iVBORw0KGgo=", "image": "https://qr.teste/1.png"},
        })
        endereco = Endereco(cep="01310100", rua="Av. Paulista", numero="1000", cidade="São Paulo", estado="SP")

        cobranca = self.gateway.criar_cobranca(Decimal("25.80"), CLIENTE, endereco, ITENS, "pedido-1")

        self.assertEqual(cobranca.transacao_id, "tx-123")
        self.assertEqual(cobranca.codigo_pix, "00020126...")
        self.assertEqual(cobranca.qr_code_base64, "iVBORw0KGgo=")
        self.assertEqual(cobranca.pedido_gateway_id, "ord-9")

        args, kwargs = post_mock.call_args
        self.assertEqual(args[0], "https://gateway.teste/api/v1/gateway/pix/receive")
        self.assertEqual(kwargs["headers"]["x-public-key"], "pk_teste")
        self.assertEqual(kwargs["headers"]["x-secret-key"], "sk_teste")
        payload = kwargs["json"]
        self.assertEqual(payload["identifier"], "pedido-1")
        self.assertEqual(payload["amount"], 25.80)
        self.assertEqual(payload["client"]["document"], "11144477735")
        self.assertEqual(payload["client"]["address"]["zipCode"], "01310-100")
        self.assertEqual(payload["client"]["address"]["country"], "BR")
        self.assertEqual(payload["metadata"], {"source": "quiz-natal", "orderId": "pedido-1"})
        self.assertEqual(payload["products"][0]["quantity"], 2)
        self.assertTrue(payload["products"][0]["physical"])

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_sem_endereco_o_bloco_e_omitido(self, post_mock):
        post_mock.return_value = resposta(200, {"transactionId": "tx", "pix": {"code": "abc"}})

        self.gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")

        self.assertNotIn("address", post_mock.call_args.kwargs["json"]["client"])

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_erros_do_processador_sao_traduzidos(self, post_mock):
        casos = [
            ({"errorCode": "E1", "message": "Valor mínimo não atingido"}, PagamentoFalhouError.CATEGORIA_VALOR_MINIMO),
            ({"errorCode": "E2", "message": "Documento inválido"}, PagamentoFalhouError.CATEGORIA_DOCUMENTO_INVALIDO),
            ({"errorCode": "E3", "message": "Validation", "details": [{"field": "client.address.state"}]},
             PagamentoFalhouError.CATEGORIA_DADOS_CLIENTE),
            ({"errorCode": "E4", "message": "Validation", "details": [{"field": "client.email"}]},
             PagamentoFalhouError.CATEGORIA_DADOS_CLIENTE),
            ({"errorCode": "E5", "message": "Erro interno"}, PagamentoFalhouError.CATEGORIA_GENERICA),
        ]
        for corpo, categoria in casos:
            with self.subTest(corpo=corpo):
                post_mock.return_value = resposta(400, corpo)
                with self.assertRaises(PagamentoFalhouError) as contexto:
                    self.gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")
                self.assertEqual(contexto.exception.categoria, categoria)
                # O texto do processador nunca chega ao cliente
                self.assertNotIn(corpo["message"], contexto.exception.message)

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_estado_invalido_pede_para_verificar_o_cep(self, post_mock):
        post_mock.return_value = resposta(422, {"errorCode": "VALIDATION", "details": [{"field": "client.address.state"}]})

        with self.assertRaises(PagamentoFalhouError) as contexto:
            self.gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")

        self.assertEqual(contexto.exception.message, "Estado inválido. Verifique o CEP informado.")

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_erro_de_rede_e_servico_indisponivel(self, post_mock):
        post_mock.side_effect = requests.exceptions.ConnectionError("sem rota")

        with self.assertRaises(ServicoIndisponivelError):
            self.gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_erro_5xx_sem_codigo_e_servico_indisponivel(self, post_mock):
        post_mock.return_value = resposta(502, ValueError("html"))

        with self.assertRaises(ServicoIndisponivelError):
            self.gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_resposta_sem_transacao_e_falha(self, post_mock):
        post_mock.return_value = resposta(200, {"pix": {"code": "abc"}})

        with self.assertRaises(PagamentoFalhouError):
            self.gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_sem_credenciais_nao_chama_a_api(self, post_mock):
        gateway = EvolutPayGateway(ConfiguracaoPix())

        with self.assertRaises(ServicoIndisponivelError):
            gateway.criar_cobranca(Decimal("12.90"), CLIENTE, None, ITENS, "pedido-1")

        post_mock.assert_not_called()

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_status_pago(self, get_mock):
        get_mock.return_value = resposta(200, {"status": "PAID", "paid_at": "2025-12-20T10:00:00Z", "amount": 25.8})

        status_cobranca = self.gateway.consultar_status("tx-123")

        self.assertTrue(status_cobranca.pago)
        self.assertEqual(status_cobranca.pago_em, "2025-12-20T10:00:00Z")
        args, kwargs = get_mock.call_args
        self.assertEqual(args[0], "https://status.teste/v1/payment-transaction/tx-123")
        self.assertEqual(kwargs["auth"], ("pk_teste", "sk_teste"))

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_status_desconhecido_nunca_e_pago(self, get_mock):
        for valor in ("waiting_payment", "PENDING", "refused", "", None, "paid_out"):
            with self.subTest(status=valor):
                get_mock.return_value = resposta(200, {"status": valor})
                self.assertFalse(self.gateway.consultar_status("tx-123").pago)

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_falha_na_consulta_de_status(self, get_mock):
        get_mock.return_value = resposta(500, {})

        with self.assertRaises(ServicoIndisponivelError):
            self.gateway.consultar_status("tx-123")

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_consultar_saldo(self, get_mock):
        get_mock.return_value = resposta(200, {"available": 150.5, "pending": 20, "fundLock": 0})

        saldo = self.gateway.consultar_saldo()

        self.assertEqual(saldo.disponivel, Decimal("150.5"))
        self.assertEqual(saldo.pendente, Decimal("20"))
        self.assertEqual(get_mock.call_args.args[0], "https://gateway.teste/api/v1/gateway/producer/balance")


# ====================================================================
# BUSCA DE CEP
# ====================================================================

class ConsultaCepGatewayTestCase(unittest.TestCase):

    def setUp(self):
        self.consulta = ConsultaCepGateway(CONFIGURACAO)

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_provedor_primario_responde(self, get_mock):
        get_mock.return_value = resposta(200, {
            "cep": "01310-100", "logradouro": "Avenida Paulista", "bairro": "Bela Vista",
            "localidade": "São Paulo", "uf": "SP",
        })

        endereco = self.consulta.buscar("01310100")

        self.assertEqual(endereco.rua, "Avenida Paulista")
        self.assertEqual(endereco.estado, "SP")
        get_mock.assert_called_once()

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_nao_encontrado_no_primario_consulta_o_secundario_uma_vez(self, get_mock):
        get_mock.side_effect = [resposta(200, {"erro": True}), resposta(404, {"message": "CEP não encontrado"})]

        with self.assertRaises(CepNaoEncontradoError):
            self.consulta.buscar("99999999")

        self.assertEqual(get_mock.call_count, 2)
        self.assertIn("brasilapi", get_mock.call_args_list[1].args[0])

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_falha_no_primario_usa_o_secundario(self, get_mock):
        get_mock.side_effect = [
            requests.exceptions.Timeout("lento"),
            resposta(200, {"street": "Avenida Paulista", "neighborhood": "Bela Vista", "city": "São Paulo", "state": "SP"}),
        ]

        endereco = self.consulta.buscar("01310100")

        self.assertEqual(endereco.cidade, "São Paulo")

    @patch('quiznatal.infrastructure.gateways.requests.get')
    def test_ambos_indisponiveis(self, get_mock):
        get_mock.side_effect = requests.exceptions.ConnectionError("fora do ar")

        with self.assertRaises(ServicoIndisponivelError):
            self.consulta.buscar("01310100")

        self.assertEqual(get_mock.call_count, 2)


# ====================================================================
# REPORTERS DE CONVERSÃO
# ====================================================================

class UtmifyReporterTestCase(unittest.TestCase):

    def setUp(self):
        self.pedido = PedidoConversao(
            pedido_id="pedido-1",
            criado_em=datetime(2025, 12, 20, 13, 0, 0, tzinfo=timezone.utc),
            cliente=CLIENTE,
            itens=ITENS,
            total=Decimal("25.80"),
            rastreamento=ParametrosRastreamento(utm_source="instagram", src="quiz"),
        )

    def test_comissao(self):
        payload = UtmifyReporter(CONFIGURACAO).montar_payload(
            self.pedido, aprovado_em=datetime(2025, 12, 20, 13, 5, 0, tzinfo=timezone.utc)
        )

        self.assertEqual(payload["commission"], {
            "totalPriceInCents": 2580,
            "gatewayFeeInCents": 77,
            "userCommissionInCents": 2503,
            "currency": "BRL",
        })
        self.assertEqual(payload["createdAt"], "2025-12-20 13:00:00")
        self.assertEqual(payload["approvedDate"], "2025-12-20 13:05:00")
        self.assertEqual(payload["status"], "paid")
        self.assertEqual(payload["paymentMethod"], "pix")
        self.assertEqual(payload["products"][0]["priceInCents"], 1290)
        self.assertEqual(payload["trackingParameters"]["utm_source"], "instagram")
        self.assertIsNone(payload["trackingParameters"]["utm_term"])

    def test_pedido_sem_itens_vira_uma_linha_com_o_total(self):
        self.pedido.itens = []

        payload = UtmifyReporter(CONFIGURACAO).montar_payload(self.pedido)

        self.assertEqual(len(payload["products"]), 1)
        self.assertEqual(payload["products"][0]["priceInCents"], 2580)

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_reportar_envia_o_token(self, post_mock):
        post_mock.return_value = resposta(200, {"OK": True})

        UtmifyReporter(CONFIGURACAO).reportar(self.pedido)

        self.assertEqual(post_mock.call_args.kwargs["headers"]["x-api-token"], "token-utmify")

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_sem_token_nao_envia(self, post_mock):
        UtmifyReporter(ConfiguracaoPix()).reportar(self.pedido)
        post_mock.assert_not_called()

    @patch('quiznatal.infrastructure.gateways.requests.post')
    def test_falha_http_vira_erro_de_reporte(self, post_mock):
        post_mock.return_value = resposta(500, {})

        with self.assertRaises(ReporteConversaoError):
            UtmifyReporter(CONFIGURACAO).reportar(self.pedido)


class ReporterEmSegundoPlanoTestCase(unittest.TestCase):

    def test_executa_o_reporter_em_outra_thread(self):
        reporter_mock = Mock()
        executor = ThreadPoolExecutor(max_workers=1)

        ReporterEmSegundoPlano(reporter_mock, executor).reportar(Mock(pedido_id="pedido-1"))
        executor.shutdown(wait=True)

        reporter_mock.reportar.assert_called_once()

    def test_falha_e_apenas_registrada_no_log(self):
        reporter_mock = Mock()
        reporter_mock.reportar.side_effect = ReporteConversaoError("Utmify fora do ar")
        executor = ThreadPoolExecutor(max_workers=1)

        with self.assertLogs('quiznatal.infrastructure.gateways', level='ERROR') as logs:
            ReporterEmSegundoPlano(reporter_mock, executor).reportar(Mock(pedido_id="pedido-1"))
            executor.shutdown(wait=True)

        self.assertIn("pedido-1", logs.output[0])


# ====================================================================
# CONFIGURAÇÃO E TRAVA
# ====================================================================

class ConfiguracaoPixTestCase(unittest.TestCase):

    def test_le_os_valores_do_settings(self):
        origem = SimpleNamespace(
            EVOLUTPAY_PUBLIC_KEY="pk", EVOLUTPAY_SECRET_KEY="sk",
            PIX_VALOR_MINIMO="10.00", PIX_STATUS_PAGOS=["PAID", " approved "],
            CORS_ORIGENS_PERMITIDAS=["https://quiz.example.com"],
        )

        configuracao = ConfiguracaoPix.de_settings(origem)

        self.assertEqual(configuracao.valor_minimo, Decimal("10.00"))
        self.assertEqual(configuracao.status_pagos, ("paid", "approved"))
        self.assertEqual(configuracao.origens_permitidas, ("https://quiz.example.com",))
        self.assertEqual(configuracao.evolutpay_api_url, "https://app.evolutpay.com/api/v1")
        self.assertTrue(configuracao.credenciais_gateway_configuradas)

    def test_validar_exige_credenciais_quando_configurado(self):
        configuracao = ConfiguracaoPix(exigir_credenciais=True)

        with self.assertRaises(ImproperlyConfigured) as contexto:
            configuracao.validar()

        self.assertIn("EVOLUTPAY_PUBLIC_KEY", str(contexto.exception))

    def test_validar_apenas_avisa_por_padrao(self):
        with self.assertLogs('quiznatal.infrastructure.configuracao', level='WARNING'):
            ConfiguracaoPix().validar()

    def test_front_end_cross_site_com_cookie_lax_gera_aviso(self):
        configuracao = ConfiguracaoPix.de_settings(SimpleNamespace(
            EVOLUTPAY_PUBLIC_KEY="pk", EVOLUTPAY_SECRET_KEY="sk",
            CORS_ORIGENS_PERMITIDAS=["http://localhost:5173", "https://quiz.example.com"],
            SESSION_COOKIE_SAMESITE="Lax", SESSION_COOKIE_SECURE=False,
        ))

        self.assertEqual(configuracao.origens_cross_site(), ["https://quiz.example.com"])
        with self.assertLogs('quiznatal.infrastructure.configuracao', level='WARNING') as logs:
            configuracao.validar()

        self.assertIn("SameSite=None", logs.output[0])

    @patch('quiznatal.infrastructure.configuracao.logger')
    def test_cookie_none_e_secure_aceita_front_end_cross_site(self, logger_mock):
        configuracao = ConfiguracaoPix(
            evolutpay_public_key="pk", evolutpay_secret_key="sk",
            origens_permitidas=("https://quiz.example.com",),
            sessao_samesite="None", sessao_secure=True,
        )

        configuracao.validar()

        self.assertFalse(configuracao.cookie_de_sessao_bloqueado())
        logger_mock.warning.assert_not_called()

    def test_apenas_localhost_nao_exige_cookie_cross_site(self):
        configuracao = ConfiguracaoPix(origens_permitidas=("http://localhost:5173", "http://127.0.0.1:8000"))

        self.assertFalse(configuracao.cookie_de_sessao_bloqueado())


class TravaCacheTestCase(unittest.TestCase):

    def test_segunda_aquisicao_falha_ate_liberar(self):
        backend = LocMemCache("trava-teste", {})
        trava = TravaCache("sessao-1", backend=backend)
        outra = TravaCache("sessao-1", backend=backend)

        self.assertTrue(trava.acquire(blocking=False))
        self.assertFalse(outra.acquire(blocking=False))
        self.assertTrue(TravaCache("sessao-2", backend=backend).acquire(blocking=False))

        trava.release()
        self.assertTrue(outra.acquire(blocking=False))

    def test_liberacao_tardia_nao_solta_a_trava_de_outra_requisicao(self):
        backend = LocMemCache("trava-teste-expirada", {})
        lenta = TravaCache("sessao-1", backend=backend)
        seguinte = TravaCache("sessao-1", backend=backend)

        self.assertTrue(lenta.acquire(blocking=False))
        backend.delete(lenta.chave)  # timeout da trava da requisição lenta
        self.assertTrue(seguinte.acquire(blocking=False))

        lenta.release()

        self.assertFalse(TravaCache("sessao-1", backend=backend).acquire(blocking=False))
        seguinte.release()
        self.assertTrue(TravaCache("sessao-1", backend=backend).acquire(blocking=False))
