# quiznatal/core/testes.py

import unittest
from unittest.mock import Mock
from decimal import Decimal

from quiznatal.core.use_cases import (
    GerenciarCarrinhoUseCase,
    BuscarEnderecoPorCepUseCase,
    CheckoutPixUseCase,
    endereco_para_cobranca,
)
from quiznatal.core.entities import (
    Produto, Carrinho, DadosCliente, Endereco, ParametrosRastreamento, CobrancaPix,
    StatusCobranca, EstadoCheckout, FaseCheckout, PedidoConversao
)
from quiznatal.core.exceptions import (
    ProdutoNaoEncontradoError,
    CepInvalidoError,
    PagamentoFalhouError,
    ServicoIndisponivelError,
    TransicaoInvalidaError,
    DadosInvalidosError,
)
from quiznatal.core.validators import cpf_valido, atende_valor_minimo, uf_valida, cep_valido


def criar_produto(id=1, preco="12.90", nome="Chocottone Recheio Pistache"):
    return Produto(
        id=id,
        nome=nome,
        descricao="Recheio cremoso",
        preco_original=Decimal("120.00"),
        preco_com_desconto=Decimal(preco),
        avaliacao=5,
        numero_avaliacoes=10,
        imagem="produto.jpg",
    )


def criar_cobranca(transacao_id="tx-1", codigo="00020126...6304ABCD"):
    return CobrancaPix(transacao_id=transacao_id, codigo_pix=codigo, qr_code_base64="iVBORw0KGgo=")


# ====================================================================
# VALIDADORES
# ====================================================================

class TestValidadorCPF(unittest.TestCase):

    def test_cpfs_validos(self):
        self.assertTrue(cpf_valido("11144477735"))
        self.assertTrue(cpf_valido("111.444.777-35"))
        self.assertTrue(cpf_valido("12345678909"))

    def test_digitos_repetidos_sao_invalidos(self):
        for digito in "0123456789":
            self.assertFalse(cpf_valido(digito * 11))

    def test_tamanho_errado_e_invalido(self):
        self.assertFalse(cpf_valido(""))
        self.assertFalse(cpf_valido(None))
        self.assertFalse(cpf_valido("1114447773"))
        self.assertFalse(cpf_valido("111444777350"))

    def test_alterar_um_digito_verificador_invalida(self):
        valido = "11144477735"
        for posicao in (9, 10):
            for digito in "0123456789":
                if digito == valido[posicao]:
                    continue
                mutado = valido[:posicao] + digito + valido[posicao + 1:]
                self.assertFalse(cpf_valido(mutado), mutado)

    def test_cpf_com_digito_verificador_errado(self):
        self.assertFalse(cpf_valido("12345678900"))


class TestValidadoresEndereco(unittest.TestCase):

    def test_cep(self):
        self.assertTrue(cep_valido("01310-100"))
        self.assertFalse(cep_valido("0131010"))

    def test_uf(self):
        self.assertTrue(uf_valida("sp"))
        self.assertTrue(uf_valida(" RJ "))
        self.assertFalse(uf_valida("S"))
        self.assertFalse(uf_valida("S1"))
        self.assertFalse(uf_valida(""))


class TestValorMinimo(unittest.TestCase):

    def test_limite_do_valor_minimo(self):
        minimo = Decimal("7.50")
        self.assertTrue(atende_valor_minimo(Decimal("7.50"), minimo))
        self.assertTrue(atende_valor_minimo(Decimal("7.499999999"), minimo))
        self.assertTrue(atende_valor_minimo(7.499999999, minimo))
        self.assertFalse(atende_valor_minimo(Decimal("7.49"), minimo))


# ====================================================================
# CARRINHO
# ====================================================================

class TestCarrinho(unittest.TestCase):

    def setUp(self):
        self.pistache = criar_produto(1, "12.90")
        self.mini = criar_produto(6, "4.90", "Mini Panetone Gotas")

    def test_adicionar_o_mesmo_produto_duas_vezes_gera_uma_linha(self):
        carrinho = Carrinho()
        carrinho.adicionar_item(self.pistache)
        carrinho.adicionar_item(self.pistache)

        self.assertEqual(len(carrinho.itens), 1)
        self.assertEqual(carrinho.itens[0].quantidade, 2)
        self.assertEqual(carrinho.totais(), (2, Decimal("25.80")))

    def test_ordem_de_inclusao_e_preservada(self):
        carrinho = Carrinho()
        carrinho.adicionar_item(self.mini)
        carrinho.adicionar_item(self.pistache)
        carrinho.adicionar_item(self.mini)

        self.assertEqual([item.produto_id for item in carrinho.itens], [6, 1])

    def test_quantidade_zero_remove_a_linha(self):
        carrinho = Carrinho()
        carrinho.adicionar_item(self.pistache)
        carrinho.adicionar_item(self.mini)

        carrinho.atualizar_quantidade(1, 0)

        self.assertIsNone(carrinho.get_item(1))
        self.assertEqual(carrinho.totais(), (1, Decimal("4.90")))

    def test_atualizar_produto_ausente_nao_faz_nada(self):
        carrinho = Carrinho()
        carrinho.atualizar_quantidade(99, 3)
        self.assertTrue(carrinho.esta_vazio())

    def test_produto_com_desconto_maior_que_original_e_rejeitado(self):
        with self.assertRaises(DadosInvalidosError):
            Produto(
                id=7, nome="X", descricao="", preco_original=Decimal("5"),
                preco_com_desconto=Decimal("6"), avaliacao=5, numero_avaliacoes=0, imagem="",
            )


class TestGerenciarCarrinhoUseCase(unittest.TestCase):

    def setUp(self):
        self.catalogo_mock = Mock()
        self.use_case = GerenciarCarrinhoUseCase(self.catalogo_mock)
        self.produto = criar_produto()

    def test_adicionar_produto_existente(self):
        self.catalogo_mock.buscar_por_id.return_value = self.produto

        carrinho = self.use_case.adicionar_item(Carrinho(), 1)

        self.catalogo_mock.buscar_por_id.assert_called_once_with(1)
        self.assertEqual(carrinho.totais(), (1, Decimal("12.90")))

    def test_adicionar_produto_inexistente_falha(self):
        self.catalogo_mock.buscar_por_id.return_value = None

        with self.assertRaises(ProdutoNaoEncontradoError):
            self.use_case.adicionar_item(Carrinho(), 42)

    def test_atualizar_quantidade_de_produto_fora_do_carrinho_falha(self):
        with self.assertRaises(ProdutoNaoEncontradoError):
            self.use_case.atualizar_quantidade(Carrinho(), 1, 3)

    def test_atualizar_quantidade(self):
        carrinho = Carrinho()
        carrinho.adicionar_item(self.produto)

        self.use_case.atualizar_quantidade(carrinho, 1, 4)

        self.assertEqual(carrinho.get_item(1).quantidade, 4)


# ====================================================================
# ENDEREÇO
# ====================================================================

class TestBuscarEnderecoPorCep(unittest.TestCase):

    def test_cep_invalido_nao_consulta_servico(self):
        consulta_mock = Mock()
        use_case = BuscarEnderecoPorCepUseCase(consulta_mock)

        with self.assertRaises(CepInvalidoError):
            use_case.executar("1234")

        consulta_mock.buscar.assert_not_called()

    def test_cep_formatado_e_normalizado(self):
        consulta_mock = Mock()
        consulta_mock.buscar.return_value = Endereco(cep="01310100", estado="SP")

        BuscarEnderecoPorCepUseCase(consulta_mock).executar("01310-100")

        consulta_mock.buscar.assert_called_once_with("01310100")


class TestEnderecoParaCobranca(unittest.TestCase):

    def test_endereco_sem_cep_valido_e_omitido(self):
        self.assertIsNone(endereco_para_cobranca(Endereco(cep="123", estado="SP")))

    def test_endereco_sem_uf_valida_e_omitido(self):
        self.assertIsNone(endereco_para_cobranca(Endereco(cep="01310-100", estado="")))

    def test_endereco_valido_e_normalizado(self):
        endereco = endereco_para_cobranca(Endereco(cep="01310-100", rua="Av. Paulista", estado="sp"))
        self.assertEqual(endereco.cep, "01310100")
        self.assertEqual(endereco.estado, "SP")
        self.assertEqual(endereco.rua, "Av. Paulista")


# ====================================================================
# CHECKOUT PIX
# ====================================================================

class TestCheckoutPixUseCase(unittest.TestCase):

    def setUp(self):
        """
        Gateway e reporter são Mocks: cada teste define o que o
        "processador de pagamentos" responde.
        """
        self.gateway_mock = Mock()
        self.reporter_mock = Mock()
        self.use_case = CheckoutPixUseCase(
            pagamento_gateway=self.gateway_mock,
            reporter=self.reporter_mock,
            valor_minimo=Decimal("7.50"),
        )

        self.carrinho = Carrinho()
        self.carrinho.adicionar_item(criar_produto(1, "12.90"))
        self.cliente = DadosCliente(
            nome=" Maria Silva ",
            email="maria@example.com",
            cpf="111.444.777-35",
            telefone="(11) 98765-4321",
        )

    def _gerar_com_sucesso(self):
        self.gateway_mock.criar_cobranca.return_value = criar_cobranca()
        return self.use_case.gerar_pix(self.carrinho, self.cliente)

    # --- Geração ---

    def test_carrinho_vazio_nao_chama_gateway(self):
        estado = self.use_case.gerar_pix(Carrinho(), self.cliente)

        self.gateway_mock.criar_cobranca.assert_not_called()
        self.assertEqual(estado.fase, FaseCheckout.OCIOSO)
        self.assertEqual(estado.codigo_erro, "empty_cart")

    def test_campos_obrigatorios_ausentes(self):
        cliente = DadosCliente(nome="Maria", email="", cpf="11144477735")

        estado = self.use_case.gerar_pix(self.carrinho, cliente)

        self.gateway_mock.criar_cobranca.assert_not_called()
        self.assertEqual(estado.codigo_erro, "missing_fields")

    def test_cpf_invalido_nao_chama_gateway(self):
        cliente = DadosCliente(nome="Maria", email="maria@example.com", cpf="11111111111")

        estado = self.use_case.gerar_pix(self.carrinho, cliente)

        self.gateway_mock.criar_cobranca.assert_not_called()
        self.assertEqual(estado.codigo_erro, "invalid_cpf")

    def test_total_abaixo_do_minimo(self):
        carrinho = Carrinho()
        carrinho.adicionar_item(criar_produto(6, "7.49"))

        estado = self.use_case.gerar_pix(carrinho, self.cliente)

        self.gateway_mock.criar_cobranca.assert_not_called()
        self.assertEqual(estado.codigo_erro, "minimum_amount")
        self.assertIn("R$ 7,50", estado.ultimo_erro)

    def test_total_com_ruido_de_arredondamento_e_aceito(self):
        carrinho = Carrinho()
        carrinho.adicionar_item(criar_produto(6, "7.499999999"))
        self.gateway_mock.criar_cobranca.return_value = criar_cobranca()

        estado = self.use_case.gerar_pix(carrinho, self.cliente)

        self.assertEqual(estado.fase, FaseCheckout.AGUARDANDO_PAGAMENTO)
        self.assertEqual(self.gateway_mock.criar_cobranca.call_args.kwargs["valor"], Decimal("7.50"))

    def test_gerar_pix_com_sucesso(self):
        rastreamento = ParametrosRastreamento(utm_source="instagram")
        self.gateway_mock.criar_cobranca.return_value = criar_cobranca()

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente, rastreamento)

        self.assertEqual(estado.fase, FaseCheckout.AGUARDANDO_PAGAMENTO)
        self.assertEqual(estado.cobranca.transacao_id, "tx-1")
        self.assertEqual(estado.codigo_mensagem, "pix_generated")
        self.assertIsNone(estado.ultimo_erro)
        self.assertEqual(estado.rastreamento.utm_source, "instagram")

        kwargs = self.gateway_mock.criar_cobranca.call_args.kwargs
        self.assertEqual(kwargs["valor"], Decimal("12.90"))
        self.assertEqual(kwargs["cliente"].cpf, "11144477735")
        self.assertEqual(kwargs["cliente"].telefone, "11987654321")
        self.assertEqual(kwargs["cliente"].nome, "Maria Silva")
        self.assertIsNone(kwargs["endereco"])
        self.assertEqual(kwargs["pedido_id"], estado.pedido_id)
        self.assertEqual([(i.id, i.quantidade) for i in kwargs["itens"]], [("1", 1)])

    def test_endereco_valido_e_enviado_ao_gateway(self):
        self.cliente.endereco = Endereco(cep="01310-100", rua="Av. Paulista", numero="1000", estado="sp")

        self._gerar_com_sucesso()

        endereco = self.gateway_mock.criar_cobranca.call_args.kwargs["endereco"]
        self.assertEqual(endereco.cep, "01310100")
        self.assertEqual(endereco.estado, "SP")

    def test_endereco_incompleto_e_omitido(self):
        self.cliente.endereco = Endereco(cep="01310-100", rua="Av. Paulista", estado="")

        self._gerar_com_sucesso()

        self.assertIsNone(self.gateway_mock.criar_cobranca.call_args.kwargs["endereco"])

    def test_falha_do_gateway_volta_para_a_fase_anterior(self):
        self.gateway_mock.criar_cobranca.side_effect = PagamentoFalhouError(
            "CPF inválido. Verifique os dados informados.", PagamentoFalhouError.CATEGORIA_DOCUMENTO_INVALIDO
        )

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente)

        self.assertEqual(estado.fase, FaseCheckout.OCIOSO)
        self.assertIsNone(estado.cobranca)
        self.assertEqual(estado.codigo_erro, "gateway_error")
        self.assertEqual(estado.ultimo_erro, "CPF inválido. Verifique os dados informados.")

    def test_erro_inesperado_do_gateway_vira_falha_de_pagamento(self):
        self.gateway_mock.criar_cobranca.side_effect = RuntimeError("boom")

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente)

        self.assertEqual(estado.fase, FaseCheckout.OCIOSO)
        self.assertEqual(estado.codigo_erro, "gateway_error")

    def test_cobranca_sem_dados_de_pagamento_e_falha(self):
        self.gateway_mock.criar_cobranca.return_value = CobrancaPix(transacao_id="tx", codigo_pix="", qr_code_base64="")

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente)

        self.assertEqual(estado.fase, FaseCheckout.OCIOSO)
        self.assertEqual(estado.codigo_erro, "gateway_error")

    def test_erro_anterior_e_limpo_na_nova_tentativa(self):
        self.use_case.gerar_pix(Carrinho(), self.cliente)

        estado = self._gerar_com_sucesso()

        self.assertIsNone(estado.codigo_erro)
        self.assertEqual(estado.fase, FaseCheckout.AGUARDANDO_PAGAMENTO)

    def test_regerar_aguardando_pagamento_substitui_a_cobranca(self):
        self._gerar_com_sucesso()
        self.gateway_mock.criar_cobranca.return_value = criar_cobranca("tx-2")

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente)

        self.assertEqual(estado.cobranca.transacao_id, "tx-2")

    def test_falha_ao_regerar_mantem_a_cobranca_ativa(self):
        self._gerar_com_sucesso()
        self.gateway_mock.criar_cobranca.side_effect = ServicoIndisponivelError()

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente)

        self.assertEqual(estado.fase, FaseCheckout.AGUARDANDO_PAGAMENTO)
        self.assertEqual(estado.cobranca.transacao_id, "tx-1")
        self.assertEqual(estado.codigo_erro, "service_unavailable")

    # --- Verificação ---

    def test_verificar_antes_de_gerar_e_transicao_invalida(self):
        estado = self.use_case.verificar_pagamento()

        self.gateway_mock.consultar_status.assert_not_called()
        self.assertEqual(estado.codigo_erro, "invalid_transition")

    def test_pagamento_pendente_nao_reporta(self):
        self._gerar_com_sucesso()
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="waiting_payment", pago=False)

        estado = self.use_case.verificar_pagamento()

        self.assertEqual(estado.fase, FaseCheckout.AGUARDANDO_PAGAMENTO)
        self.assertEqual(estado.codigo_mensagem, "payment_pending")
        self.reporter_mock.reportar.assert_not_called()

    def test_pagamento_confirmado_reporta_uma_unica_vez(self):
        rastreamento = ParametrosRastreamento(utm_campaign="natal")
        self.gateway_mock.criar_cobranca.return_value = criar_cobranca()
        self.use_case.gerar_pix(self.carrinho, self.cliente, rastreamento)
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)

        estado = self.use_case.verificar_pagamento()
        estado = self.use_case.verificar_pagamento()

        self.assertEqual(estado.fase, FaseCheckout.CONFIRMADO)
        self.assertTrue(estado.pagamento_confirmado)
        self.assertEqual(estado.codigo_mensagem, "payment_confirmed")
        self.gateway_mock.consultar_status.assert_called_once_with("tx-1")
        self.reporter_mock.reportar.assert_called_once()

        pedido = self.reporter_mock.reportar.call_args.args[0]
        self.assertIsInstance(pedido, PedidoConversao)
        self.assertEqual(pedido.pedido_id, estado.pedido_id)
        self.assertEqual(pedido.total, Decimal("12.90"))
        self.assertEqual(pedido.rastreamento.utm_campaign, "natal")

    def test_falha_no_reporte_nao_desfaz_a_confirmacao(self):
        self._gerar_com_sucesso()
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)
        self.reporter_mock.reportar.side_effect = Exception("Utmify fora do ar")

        estado = self.use_case.verificar_pagamento()

        self.assertEqual(estado.fase, FaseCheckout.CONFIRMADO)
        self.assertIsNone(estado.ultimo_erro)

    def test_falha_na_consulta_de_status_mantem_aguardando(self):
        self._gerar_com_sucesso()
        self.gateway_mock.consultar_status.side_effect = ServicoIndisponivelError()

        estado = self.use_case.verificar_pagamento()

        self.assertEqual(estado.fase, FaseCheckout.AGUARDANDO_PAGAMENTO)
        self.assertEqual(estado.codigo_erro, "status_check_failed")

    def test_verificacao_simultanea_nao_chama_o_gateway_de_novo(self):
        self._gerar_com_sucesso()
        resultados_internos = []

        def consulta_lenta(transacao_id):
            # Segundo clique em "Já paguei" enquanto o primeiro ainda espera o gateway
            resultados_internos.append(self.use_case.verificar_pagamento().codigo_erro)
            return StatusCobranca(status="waiting_payment", pago=False)

        self.gateway_mock.consultar_status.side_effect = consulta_lenta

        self.use_case.verificar_pagamento()

        self.gateway_mock.consultar_status.assert_called_once()
        self.assertEqual(resultados_internos, ["operation_in_progress"])

    def test_gerar_depois_de_confirmado_e_transicao_invalida(self):
        self._gerar_com_sucesso()
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)
        self.use_case.verificar_pagamento()

        estado = self.use_case.gerar_pix(self.carrinho, self.cliente)

        self.assertEqual(estado.codigo_erro, "invalid_transition")
        self.assertEqual(self.gateway_mock.criar_cobranca.call_count, 1)

    # --- Código copia e cola e reinício ---

    def test_codigo_para_copiar(self):
        with self.assertRaises(TransicaoInvalidaError):
            self.use_case.codigo_para_copiar()

        self._gerar_com_sucesso()

        self.assertEqual(self.use_case.codigo_para_copiar(), "00020126...6304ABCD")

    def test_reiniciar_comeca_um_novo_pedido(self):
        estado_anterior = self._gerar_com_sucesso()
        pedido_anterior = estado_anterior.pedido_id

        estado = self.use_case.reiniciar()

        self.assertEqual(estado.fase, FaseCheckout.OCIOSO)
        self.assertIsNone(estado.cobranca)
        self.assertNotEqual(estado.pedido_id, pedido_anterior)
        self.assertFalse(self.use_case.pedido_anterior_confirmado)

    def test_reiniciar_apos_confirmacao_sinaliza_pedido_pago(self):
        self._gerar_com_sucesso()
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)
        self.use_case.verificar_pagamento()

        self.use_case.reiniciar()

        self.assertTrue(self.use_case.pedido_anterior_confirmado)


class TestCheckoutComRepositorio(unittest.TestCase):
    """O estado é lido e gravado pelo repositório dentro da trava."""

    def setUp(self):
        self.gateway_mock = Mock()
        self.repositorio_mock = Mock()
        self.estado_salvo = EstadoCheckout(fase=FaseCheckout.AGUARDANDO_PAGAMENTO, cobranca=criar_cobranca())
        self.repositorio_mock.carregar.return_value = self.estado_salvo
        self.use_case = CheckoutPixUseCase(
            pagamento_gateway=self.gateway_mock,
            reporter=None,
            valor_minimo=Decimal("7.50"),
            repositorio=self.repositorio_mock,
        )

    def test_verificar_usa_o_estado_do_repositorio_e_salva(self):
        self.gateway_mock.consultar_status.return_value = StatusCobranca(status="paid", pago=True)

        estado = self.use_case.verificar_pagamento()

        self.assertIs(estado, self.estado_salvo)
        self.assertEqual(estado.fase, FaseCheckout.CONFIRMADO)
        self.repositorio_mock.salvar.assert_called_once_with(self.estado_salvo)

    def test_trava_ocupada_nao_salva_nada(self):
        trava_mock = Mock()
        trava_mock.acquire.return_value = False
        self.use_case.trava = trava_mock

        estado = self.use_case.verificar_pagamento()

        self.assertEqual(estado.codigo_erro, "operation_in_progress")
        self.repositorio_mock.carregar.assert_not_called()
        self.repositorio_mock.salvar.assert_not_called()
        trava_mock.release.assert_not_called()


class TestEstadoCheckoutSerializacao(unittest.TestCase):

    def test_estado_sobrevive_a_ida_e_volta_pela_sessao(self):
        estado = EstadoCheckout(
            fase=FaseCheckout.AGUARDANDO_PAGAMENTO,
            cobranca=criar_cobranca(),
            cliente=DadosCliente(nome="Maria", email="m@example.com", cpf="11144477735",
                                 endereco=Endereco(cep="01310100", estado="SP")),
            total=Decimal("12.90"),
            rastreamento=ParametrosRastreamento(src="quiz"),
        )

        restaurado = EstadoCheckout.de_dict(estado.para_dict())

        self.assertEqual(restaurado, estado)


if __name__ == '__main__':
    unittest.main()
