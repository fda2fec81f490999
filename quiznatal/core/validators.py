# quiznatal/core/validators.py
"""
Regras puras de validação usadas pelo checkout.

Nenhuma função deste módulo faz I/O ou levanta exceção: todas respondem
apenas True/False para que o Caso de Uso decida qual erro apresentar.
"""
import re
from decimal import Decimal, ROUND_HALF_UP

_NAO_DIGITO = re.compile(r"\D")
_UF = re.compile(r"^[A-Z]{2}$")

CENTAVOS = Decimal("0.01")
EPSILON_VALOR = Decimal("1e-9")


def somente_digitos(valor) -> str:
    """Remove tudo o que não for dígito (pontos, traços, espaços...)."""
    return _NAO_DIGITO.sub("", str(valor or ""))


def _digito_verificador(digitos, peso_inicial: int) -> int:
    soma = sum(int(d) * peso for d, peso in zip(digitos, range(peso_inicial, 1, -1)))
    resto = (soma * 10) % 11
    return 0 if resto == 10 else resto


def cpf_valido(raw: str) -> bool:
    """Valida um CPF pelos seus dois dígitos verificadores."""
    digitos = somente_digitos(raw)

    if len(digitos) != 11:
        return False

    # Sequências como 00000000000 passam no cálculo mas não são CPFs reais
    if digitos == digitos[0] * 11:
        return False

    if _digito_verificador(digitos[:9], 10) != int(digitos[9]):
        return False

    return _digito_verificador(digitos[:10], 11) == int(digitos[10])


def cep_valido(raw: str) -> bool:
    return len(somente_digitos(raw)) == 8


def uf_valida(raw: str) -> bool:
    return bool(_UF.match((raw or "").strip().upper()))


def arredondar_valor(valor) -> Decimal:
    """Arredonda um valor monetário para centavos (meio para cima)."""
    return Decimal(str(valor)).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def atende_valor_minimo(total, valor_minimo, epsilon=EPSILON_VALOR) -> bool:
    """
    Verifica se o total, arredondado para centavos, atinge o mínimo do PIX.

    A tolerância evita recusar totais que ficaram um pouco abaixo do limite
    apenas por ruído de ponto flutuante (ex.: 7.499999999).
    """
    return arredondar_valor(total) + Decimal(str(epsilon)) >= Decimal(str(valor_minimo))
