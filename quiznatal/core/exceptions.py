class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    codigo = "erro"
    mensagem_padrao = "Ocorreu um erro inesperado."

    def __init__(self, message=None):
        self.message = message or self.mensagem_padrao
        super().__init__(self.message)

# ===============================================
# ERROS DE VALIDAÇÃO (nenhuma chamada externa é feita)
# ===============================================

class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos."""
    codigo = "invalid_data"
    mensagem_padrao = "Os dados fornecidos são inválidos."

class CarrinhoVazioError(DadosInvalidosError):
    """Erro levantado ao tentar gerar o PIX com carrinho vazio."""
    codigo = "empty_cart"
    mensagem_padrao = "Seu carrinho está vazio."

class CamposObrigatoriosError(DadosInvalidosError):
    """Nome, e-mail e CPF são obrigatórios."""
    codigo = "missing_fields"
    mensagem_padrao = "Preencha nome, e-mail e CPF."

class CPFInvalidoError(DadosInvalidosError):
    codigo = "invalid_cpf"
    mensagem_padrao = "CPF inválido. Verifique os dados informados."

class ValorMinimoError(DadosInvalidosError):
    """Erro levantado quando o total do pedido fica abaixo do mínimo aceito pelo PIX."""
    codigo = "minimum_amount"
    mensagem_padrao = "O valor mínimo para pagamento via PIX não foi atingido."

    def __init__(self, valor_minimo=None, message=None):
        self.valor_minimo = valor_minimo
        if message is None and valor_minimo is not None:
            valor_formatado = f"{valor_minimo:.2f}".replace(".", ",")
            message = f"O valor mínimo para pagamento via PIX é de R$ {valor_formatado}"
        super().__init__(message)

class CepInvalidoError(DadosInvalidosError):
    codigo = "invalid_cep"
    mensagem_padrao = "CEP inválido. Deve conter 8 dígitos."

# ===============================================
# ERROS DE BUSCA
# ===============================================

class ItemNaoEncontradoError(BaseErroCore):
    """Erro levantado quando um item (genérico) não é encontrado."""
    codigo = "not_found"
    mensagem_padrao = "O item solicitado não foi encontrado."

class ProdutoNaoEncontradoError(ItemNaoEncontradoError):
    """Erro levantado quando um produto específico não existe no catálogo."""
    codigo = "product_not_found"
    mensagem_padrao = "O produto solicitado não foi encontrado."

class CepNaoEncontradoError(ItemNaoEncontradoError):
    """O CEP não existe na base dos provedores; o cliente preenche o endereço manualmente."""
    codigo = "cep_not_found"
    mensagem_padrao = "CEP não encontrado."

# ===============================================
# ERROS DE PAGAMENTO E SERVIÇOS EXTERNOS
# ===============================================

class PagamentoFalhouError(BaseErroCore):
    """Erro levantado quando o Gateway de Pagamento rejeita a transação."""
    codigo = "gateway_error"
    mensagem_padrao = "Erro ao gerar QR Code PIX. Tente novamente."

    CATEGORIA_VALOR_MINIMO = "minimum_amount"
    CATEGORIA_DOCUMENTO_INVALIDO = "invalid_document"
    CATEGORIA_DADOS_CLIENTE = "invalid_customer_data"
    CATEGORIA_GENERICA = "generic_failure"

    def __init__(self, message=None, categoria=CATEGORIA_GENERICA):
        self.categoria = categoria
        super().__init__(message)

class ServicoIndisponivelError(BaseErroCore):
    """Credenciais ausentes ou falha de rede ao falar com um provedor externo."""
    codigo = "service_unavailable"
    mensagem_padrao = "Serviço de pagamento indisponível. Tente novamente em instantes."

class VerificacaoFalhouError(ServicoIndisponivelError):
    """A consulta de status falhou; não significa que o pagamento foi recusado."""
    codigo = "status_check_failed"
    mensagem_padrao = "Não foi possível verificar o pagamento agora. Tente novamente em instantes."

class ReporteConversaoError(BaseErroCore):
    """Falha ao enviar a conversão. Apenas registrada em log."""
    codigo = "reporting_error"
    mensagem_padrao = "Falha ao reportar a conversão."

# ===============================================
# ERROS DE FLUXO DO CHECKOUT
# ===============================================

class TransicaoInvalidaError(BaseErroCore):
    """Ação solicitada não é permitida na fase atual do checkout."""
    codigo = "invalid_transition"
    mensagem_padrao = "Esta ação não está disponível no momento."

class OperacaoEmAndamentoError(BaseErroCore):
    """Já existe uma geração ou verificação em andamento para esta sessão."""
    codigo = "operation_in_progress"
    mensagem_padrao = "Aguarde, já estamos processando sua solicitação."

class OrigemNaoAutorizadaError(BaseErroCore):
    codigo = "unauthorized_domain"
    mensagem_padrao = "Domínio não autorizado"
