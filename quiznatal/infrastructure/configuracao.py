# quiznatal/infrastructure/configuracao.py
"""
Configuração explícita dos serviços externos (gateway PIX, CEP, Utmify e CORS).

Os valores vêm do settings.py (que lê o ambiente com python-decouple) e são
carregados uma única vez; a validação acontece na inicialização do app
`infrastructure` (ver apps.py).
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from typing import List, Tuple
from urllib.parse import urlparse

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfiguracaoPix:
    # Gateway de pagamento (EvolutPay)
    evolutpay_public_key: str = ""
    evolutpay_secret_key: str = ""
    evolutpay_api_url: str = "https://app.evolutpay.com/api/v1"
    evolutpay_status_api_url: str = "https://api.evolutpay.com.br/v1"
    gateway_timeout: int = 15
    valor_minimo: Decimal = Decimal("7.50")
    status_pagos: Tuple[str, ...] = ("paid", "completed", "approved")
    origem_metadata: str = "quiz-natal"
    exigir_credenciais: bool = False

    # Busca de CEP
    cep_provedor_primario_url: str = "https://viacep.com.br/ws/{cep}/json/"
    cep_provedor_secundario_url: str = "https://brasilapi.com.br/api/cep/v1/{cep}"
    cep_timeout: int = 5

    # Utmify
    utmify_api_token: str = ""
    utmify_api_url: str = "https://api.utmify.com.br/api-credentials/orders"
    utmify_plataforma: str = "QuizNatal"
    utmify_taxa_gateway: Decimal = Decimal("0.03")
    utmify_is_test: bool = False

    # Borda HTTP
    origens_permitidas: Tuple[str, ...] = field(default_factory=tuple)
    saldo_token_admin: str = ""
    sessao_samesite: str = "Lax"
    sessao_secure: bool = False

    @property
    def credenciais_gateway_configuradas(self) -> bool:
        return bool(self.evolutpay_public_key and self.evolutpay_secret_key)

    def campos_ausentes(self) -> List[str]:
        """Lista as variáveis obrigatórias para gerar PIX que não foram definidas."""
        ausentes = []
        if not self.evolutpay_public_key:
            ausentes.append("EVOLUTPAY_PUBLIC_KEY")
        if not self.evolutpay_secret_key:
            ausentes.append("EVOLUTPAY_SECRET_KEY")
        if not self.origens_permitidas:
            ausentes.append("CORS_ORIGENS_PERMITIDAS")
        return ausentes

    def origens_cross_site(self) -> List[str]:
        """Origens permitidas que não são localhost (front-end em outro site)."""
        return [
            origem for origem in self.origens_permitidas
            if urlparse(origem).hostname not in ("localhost", "127.0.0.1")
        ]

    def cookie_de_sessao_bloqueado(self) -> bool:
        """O navegador não envia o cookie de sessão em requisições cross-site sem SameSite=None e Secure."""
        return bool(self.origens_cross_site()) and not (self.sessao_samesite == "None" and self.sessao_secure)

    def validar(self):
        """
        Falha na inicialização se PIX_EXIGIR_CREDENCIAIS estiver ligado e faltar
        configuração; caso contrário apenas avisa, e o gateway responde
        "serviço indisponível" quando usado. Também avisa quando o cookie de
        sessão não chegaria de um front-end em outro site.
        """
        if self.cookie_de_sessao_bloqueado():
            logger.warning(
                "Origens cross-site (%s) com SESSION_COOKIE_SAMESITE=%s e SESSION_COOKIE_SECURE=%s: "
                "o carrinho e o checkout não persistirão. Use SameSite=None com Secure.",
                ", ".join(self.origens_cross_site()), self.sessao_samesite, self.sessao_secure,
            )

        ausentes = self.campos_ausentes()
        if not ausentes:
            return
        if self.exigir_credenciais:
            raise ImproperlyConfigured(f"Configuração de pagamento incompleta: {', '.join(ausentes)}")
        logger.warning("Configuração de pagamento incompleta (%s). Geração de PIX ficará indisponível.", ", ".join(ausentes))

    @classmethod
    def de_settings(cls, origem=None) -> "ConfiguracaoPix":
        origem = origem or settings
        return cls(
            evolutpay_public_key=getattr(origem, "EVOLUTPAY_PUBLIC_KEY", ""),
            evolutpay_secret_key=getattr(origem, "EVOLUTPAY_SECRET_KEY", ""),
            evolutpay_api_url=getattr(origem, "EVOLUTPAY_API_URL", cls.evolutpay_api_url),
            evolutpay_status_api_url=getattr(origem, "EVOLUTPAY_STATUS_API_URL", cls.evolutpay_status_api_url),
            gateway_timeout=int(getattr(origem, "GATEWAY_TIMEOUT", cls.gateway_timeout)),
            valor_minimo=Decimal(str(getattr(origem, "PIX_VALOR_MINIMO", cls.valor_minimo))),
            status_pagos=tuple(s.strip().lower() for s in getattr(origem, "PIX_STATUS_PAGOS", cls.status_pagos) if s.strip()),
            origem_metadata=getattr(origem, "PIX_ORIGEM_METADATA", cls.origem_metadata),
            exigir_credenciais=bool(getattr(origem, "PIX_EXIGIR_CREDENCIAIS", False)),
            cep_provedor_primario_url=getattr(origem, "CEP_PROVEDOR_PRIMARIO_URL", cls.cep_provedor_primario_url),
            cep_provedor_secundario_url=getattr(origem, "CEP_PROVEDOR_SECUNDARIO_URL", cls.cep_provedor_secundario_url),
            cep_timeout=int(getattr(origem, "CEP_TIMEOUT", cls.cep_timeout)),
            utmify_api_token=getattr(origem, "UTMIFY_API_TOKEN", ""),
            utmify_api_url=getattr(origem, "UTMIFY_API_URL", cls.utmify_api_url),
            utmify_plataforma=getattr(origem, "UTMIFY_PLATAFORMA", cls.utmify_plataforma),
            utmify_taxa_gateway=Decimal(str(getattr(origem, "UTMIFY_TAXA_GATEWAY", cls.utmify_taxa_gateway))),
            utmify_is_test=bool(getattr(origem, "UTMIFY_IS_TEST", False)),
            origens_permitidas=tuple(getattr(origem, "CORS_ORIGENS_PERMITIDAS", ())),
            saldo_token_admin=getattr(origem, "SALDO_TOKEN_ADMIN", ""),
            sessao_samesite=str(getattr(origem, "SESSION_COOKIE_SAMESITE", cls.sessao_samesite)),
            sessao_secure=bool(getattr(origem, "SESSION_COOKIE_SECURE", False)),
        )


@lru_cache(maxsize=1)
def get_configuracao() -> ConfiguracaoPix:
    return ConfiguracaoPix.de_settings()


@receiver(setting_changed)
def _recarregar_configuracao(**kwargs):
    # override_settings nos testes
    get_configuracao.cache_clear()
