from decimal import Decimal
from unittest.mock import Mock, patch

from django.test import SimpleTestCase, override_settings
from rest_framework.test import APIClient

from quiznatal.core.dependency_injection import catalogo
from quiznatal.core.entities import CobrancaPix, Endereco, SaldoGateway, StatusCobranca
from quiznatal.core.exceptions import CepNaoEncontradoError, PagamentoFalhouError

ORIGEM_PERMITIDA = "http://localhost:5173"

DADOS_CHECKOUT = {
    "nome": "Maria Silva",
    "email": "maria@example.com",
    "cpf": "111.444.777-35",
    "telefone": "(11) 98765-4321",
    "cep": "01310-100",
    "rua": "Avenida Paulista",
    "numero": "1000",
    "cidade": "São Paulo",
    "estado": "SP",
    "utm_source": "instagram",
}


@override_settings(CORS_ORIGENS_PERMITIDAS=[ORIGEM_PERMITIDA])
class OrigemPermitidaMiddlewareTestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()

    def test_origem_nao_autorizada_recebe_403(self):
        response = self.client.get('/api/produtos/', HTTP_ORIGIN="https://golpe.example.com")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"error": "Domínio não autorizado", "code": "unauthorized_domain"})

    def test_origem_autorizada_recebe_cabecalhos_cors(self):
        response = self.client.get('/api/produtos/', HTTP_ORIGIN=ORIGEM_PERMITIDA)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], ORIGEM_PERMITIDA)
        self.assertEqual(response["Access-Control-Allow-Credentials"], "true")

    def test_preflight_de_origem_autorizada(self):
        response = self.client.options(
            '/api/checkout/pix/', HTTP_ORIGIN=ORIGEM_PERMITIDA, HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST"
        )

        self.assertEqual(response.status_code, 200)
        self.assertIn("Content-Type", response["Access-Control-Allow-Headers"])

    def test_sem_origin_passa(self):
        response = self.client.get('/api/produtos/')

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.has_header("Access-Control-Allow-Origin"))


class CarrinhoAPITestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()

    def test_lista_de_produtos(self):
        response = self.client.get('/api/produtos/')

        self.assertEqual(len(response.json()), 6)
        self.assertEqual(response.json()[0]["preco_com_desconto"], "12.90")

    def test_adicionar_atualizar_e_remover(self):
        self.client.post('/api/carrinho/', {"produto_id": 1}, format='json')
        self.client.post('/api/carrinho/', {"produto_id": 1}, format='json')
        response = self.client.post('/api/carrinho/', {"produto_id": 6}, format='json')

        self.assertEqual(response.status_code, 201)
        dados = response.json()
        self.assertEqual([item["produto"]["id"] for item in dados["itens"]], [1, 6])
        self.assertEqual(dados["quantidade_total"], 3)
        self.assertEqual(dados["total"], "30.70")

        response = self.client.patch('/api/carrinho/', {"produto_id": 1, "quantidade": 0}, format='json')
        self.assertEqual([item["produto"]["id"] for item in response.json()["itens"]], [6])

        response = self.client.delete('/api/carrinho/6/')
        self.assertEqual(response.json()["itens"], [])

        # O carrinho persiste na sessão entre requisições
        self.assertEqual(self.client.get('/api/carrinho/').json()["total"], "0.00")

    def test_produto_inexistente(self):
        response = self.client.post('/api/carrinho/', {"produto_id": 99}, format='json')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "product_not_found")


class CepAPITestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()

    def test_cep_invalido(self):
        response = self.client.post('/api/cep/', {"cep": "123"}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_cep")

    @patch('quiznatal.presentation.views.get_buscar_endereco_use_case')
    def test_cep_encontrado(self, get_use_case_mock):
        get_use_case_mock.return_value.executar.return_value = Endereco(
            cep="01310100", rua="Avenida Paulista", bairro="Bela Vista", cidade="São Paulo", estado="SP"
        )

        response = self.client.post('/api/cep/', {"cep": "01310-100"}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["estado"], "SP")

    @patch('quiznatal.presentation.views.get_buscar_endereco_use_case')
    def test_cep_nao_encontrado(self, get_use_case_mock):
        get_use_case_mock.return_value.executar.side_effect = CepNaoEncontradoError()

        response = self.client.post('/api/cep/', {"cep": "99999-999"}, format='json')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "cep_not_found")


class CheckoutPixAPITestCase(SimpleTestCase):
    """Fluxo completo do checkout com o gateway e o reporter simulados."""

    def setUp(self):
        self.client = APIClient()
        self.gateway_mock = Mock()
        self.gateway_mock.criar_cobranca.return_value = CobrancaPix(
            transacao_id="tx-1", codigo_pix="00020126...6304ABCD", qr_code_base64="iVBORw0KGgo="
        )
        self.reporter_mock = Mock()

        patcher_gateway = patch(
            'quiznatal.core.dependency_injection.get_pagamento_gateway', return_value=self.gateway_mock
        )
        patcher_reporter = patch(
            'quiznatal.core.dependency_injection.get_reporter_conversao', return_value=self.reporter_mock
        )
        patcher_gateway.start()
        patcher_reporter.start()
        self.addCleanup(patcher_gateway.stop)
        self.addCleanup(patcher_reporter.stop)

    def _adicionar_ao_carrinho(self):
        self.client.post('/api/carrinho/', {"produto_id": 1}, format='json')

    def test_fluxo_ate_a_confirmacao(self):
        self._adicionar_ao_carrinho()

        response = self.client.post('/api/checkout/pix/', DADOS_CHECKOUT, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["fase"], "awaiting_payment")
        self.assertEqual(response.json()["cobranca"]["codigo_pix"], "00020126...6304ABCD")

        kwargs = self.gateway_mock.criar_cobranca.call_args.kwargs
        self.assertEqual(kwargs["valor"], Decimal("12.90"))
        self.assertEqual(kwargs["endereco"].cep, "01310100")

        response = self.client.get('/api/checkout/pix/codigo/')
        self.assertEqual(response.json(), {"codigo_pix": "00020126...6304ABCD"})

        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="waiting_payment", pago=False)
        response = self.client.post('/api/checkout/verificar/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["codigo_mensagem"], "payment_pending")
        self.reporter_mock.reportar.assert_not_called()

        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)
        response = self.client.post('/api/checkout/verificar/')
        self.assertEqual(response.json()["fase"], "confirmed")
        self.assertTrue(response.json()["pagamento_confirmado"])

        self.client.post('/api/checkout/verificar/')
        self.reporter_mock.reportar.assert_called_once()
        self.assertEqual(self.reporter_mock.reportar.call_args.args[0].rastreamento.utm_source, "instagram")

        self.assertEqual(self.client.get('/api/checkout/').json()["fase"], "confirmed")

    def test_carrinho_vazio(self):
        response = self.client.post('/api/checkout/pix/', DADOS_CHECKOUT, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["codigo_erro"], "empty_cart")
        self.assertEqual(response.json()["fase"], "idle")
        self.gateway_mock.criar_cobranca.assert_not_called()

    def test_cpf_invalido(self):
        self._adicionar_ao_carrinho()

        response = self.client.post('/api/checkout/pix/', dict(DADOS_CHECKOUT, cpf="111.111.111-11"), format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["codigo_erro"], "invalid_cpf")

    def test_recusa_do_gateway(self):
        self._adicionar_ao_carrinho()
        self.gateway_mock.criar_cobranca.side_effect = PagamentoFalhouError()

        response = self.client.post('/api/checkout/pix/', DADOS_CHECKOUT, format='json')

        self.assertEqual(response.status_code, 402)
        self.assertEqual(response.json()["codigo_erro"], "gateway_error")
        self.assertEqual(response.json()["fase"], "idle")

    def test_verificar_sem_pix_gerado(self):
        response = self.client.post('/api/checkout/verificar/')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["codigo_erro"], "invalid_transition")

    def test_codigo_sem_pix_gerado(self):
        response = self.client.get('/api/checkout/pix/codigo/')

        self.assertEqual(response.status_code, 409)

    def test_reiniciar_checkout(self):
        self._adicionar_ao_carrinho()
        pedido_id = self.client.post('/api/checkout/pix/', DADOS_CHECKOUT, format='json').json()["pedido_id"]

        response = self.client.delete('/api/checkout/')

        self.assertEqual(response.json()["fase"], "idle")
        self.assertNotEqual(response.json()["pedido_id"], pedido_id)
        # Pedido não pago: o carrinho continua para uma nova tentativa
        self.assertEqual(self.client.get('/api/carrinho/').json()["quantidade_total"], 1)

    def test_novo_pedido_apos_confirmacao_esvazia_o_carrinho(self):
        self._adicionar_ao_carrinho()
        self.client.post('/api/checkout/pix/', DADOS_CHECKOUT, format='json')
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)
        self.assertEqual(self.client.post('/api/checkout/verificar/').json()["fase"], "confirmed")

        response = self.client.delete('/api/checkout/')

        self.assertEqual(response.json()["fase"], "idle")
        carrinho = self.client.get('/api/carrinho/').json()
        self.assertEqual(carrinho["quantidade_total"], 0)
        self.assertEqual(carrinho["total"], "0.00")

    @patch('quiznatal.presentation.views.get_gerenciar_carrinho_use_case')
    def test_requisicao_de_carrinho_concorrente_nao_desfaz_a_confirmacao(self, get_use_case_mock):
        self._adicionar_ao_carrinho()
        self.client.post('/api/checkout/pix/', DADOS_CHECKOUT, format='json')
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)

        def adicionar_durante_verificacao(carrinho, produto_id):
            # "Já paguei" termina enquanto esta requisição de carrinho ainda está aberta
            self.assertEqual(self.client.post('/api/checkout/verificar/').json()["fase"], "confirmed")
            carrinho.adicionar_item(catalogo.buscar_por_id(produto_id))
            return carrinho

        get_use_case_mock.return_value.adicionar_item.side_effect = adicionar_durante_verificacao

        response = self.client.post('/api/carrinho/', {"produto_id": 6}, format='json')
        self.assertEqual(response.status_code, 201)

        self.assertEqual(self.client.get('/api/checkout/').json()["fase"], "confirmed")
        self.assertEqual(self.client.post('/api/checkout/verificar/').json()["fase"], "confirmed")
        self.reporter_mock.reportar.assert_called_once()


class SaldoAPITestCase(SimpleTestCase):

    def setUp(self):
        self.client = APIClient()

    @override_settings(SALDO_TOKEN_ADMIN="")
    def test_sem_token_configurado_o_endpoint_nao_existe(self):
        self.assertEqual(self.client.get('/api/saldo/').status_code, 404)

    @override_settings(SALDO_TOKEN_ADMIN="segredo")
    def test_token_errado(self):
        response = self.client.get('/api/saldo/', HTTP_X_SALDO_TOKEN="chute")
        self.assertEqual(response.status_code, 403)

    @override_settings(SALDO_TOKEN_ADMIN="segredo")
    @patch('quiznatal.core.dependency_injection.get_pagamento_gateway')
    def test_saldo(self, get_gateway_mock):
        get_gateway_mock.return_value.consultar_saldo.return_value = SaldoGateway(
            disponivel=Decimal("150.50"), pendente=Decimal("20"), bloqueado=Decimal("0")
        )

        response = self.client.get('/api/saldo/', HTTP_X_SALDO_TOKEN="segredo")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["disponivel"], "150.50")
