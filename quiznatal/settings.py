"""
Configurações para o projeto Quiz de Natal (checkout PIX).
"""

import os
from decouple import config, Csv
from pathlib import Path
from urllib.parse import urlparse

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ====================================================================
# CONFIGURAÇÕES BÁSICAS
# ====================================================================

# A SECRET_KEY deve ser lida de uma variável de ambiente por segurança.
SECRET_KEY = config('SECRET_KEY', default='django-insecure-default-key-for-development')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())


# ====================================================================
# APLICAÇÕES INSTALADAS
# ====================================================================

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.staticfiles',

    # Aplicações de Terceiros (Primeiro)
    'rest_framework',
    'drf_spectacular',

    # Nossas Aplicações
    'quiznatal.core.apps.CoreConfig', # Entidades e Lógica Pura
    'quiznatal.infrastructure.apps.InfrastructureConfig', # Gateways e Configuração
    'quiznatal.presentation.apps.PresentationConfig', # Views e Serializers
]


# ====================================================================
# MIDDLEWARE
# ====================================================================

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    # Antes de tudo que possa responder: bloqueia origens fora da lista
    'quiznatal.presentation.middleware.OrigemPermitidaMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'quiznatal.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'quiznatal.wsgi.application'


# ====================================================================
# CORS
# ====================================================================

CORS_ORIGENS_PERMITIDAS = config(
    'CORS_ORIGENS_PERMITIDAS',
    default='http://localhost:5173,http://localhost:3000',
    cast=Csv(),
)

# Front-end em outro domínio só recebe o cookie de sessão com SameSite=None e Secure
ORIGENS_CROSS_SITE = [
    origem for origem in CORS_ORIGENS_PERMITIDAS
    if urlparse(origem).hostname not in ('localhost', '127.0.0.1')
]


# ====================================================================
# BANCO DE DADOS, CACHE E SESSÃO
# ====================================================================

# Nenhum model é usado; o banco só existe para os apps contrib.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'quiznatal',
    }
}

# O carrinho vive na sessão e o estado do checkout no cache (ver presentation/cart_manager.py)
SESSION_ENGINE = 'django.contrib.sessions.backends.cache'
SESSION_COOKIE_AGE = config('SESSION_COOKIE_AGE', default=60 * 60 * 24, cast=int)
SESSION_COOKIE_SAMESITE = config('SESSION_COOKIE_SAMESITE', default='None' if ORIGENS_CROSS_SITE else 'Lax')
SESSION_COOKIE_SECURE = config('SESSION_COOKIE_SECURE', default=bool(ORIGENS_CROSS_SITE), cast=bool)


# ====================================================================
# INTERNACIONALIZAÇÃO
# ====================================================================

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'America/Sao_Paulo'

USE_I18N = True

USE_TZ = True


# ====================================================================
# ARQUIVOS ESTÁTICOS
# ====================================================================

STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ====================================================================
# CONFIGURAÇÕES DO DJANGO REST FRAMEWORK (DRF) E DOCS (SPECTACULAR)
# ====================================================================

SPECTACULAR_SETTINGS = {
    'TITLE': 'API do Quiz de Natal',
    'DESCRIPTION': 'Catálogo, carrinho e checkout PIX da loja de Natal.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

REST_FRAMEWORK = {
    # API pública: o cliente é identificado apenas pela sessão.
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}


# ====================================================================
# CONFIGURAÇÕES DE SERVIÇOS EXTERNOS (Gateway PIX, CEP, Utmify)
# ====================================================================

# EvolutPay (Gateway PIX)
EVOLUTPAY_PUBLIC_KEY = config('EVOLUTPAY_PUBLIC_KEY', default='')
EVOLUTPAY_SECRET_KEY = config('EVOLUTPAY_SECRET_KEY', default='')
EVOLUTPAY_API_URL = config('EVOLUTPAY_API_URL', default='https://app.evolutpay.com/api/v1')
EVOLUTPAY_STATUS_API_URL = config('EVOLUTPAY_STATUS_API_URL', default='https://api.evolutpay.com.br/v1')
GATEWAY_TIMEOUT = config('GATEWAY_TIMEOUT', default=15, cast=int)

PIX_VALOR_MINIMO = config('PIX_VALOR_MINIMO', default='7.50')
PIX_STATUS_PAGOS = config('PIX_STATUS_PAGOS', default='paid,completed,approved', cast=Csv())
PIX_ORIGEM_METADATA = config('PIX_ORIGEM_METADATA', default='quiz-natal')
PIX_EXIGIR_CREDENCIAIS = config('PIX_EXIGIR_CREDENCIAIS', default=False, cast=bool)

# Busca de CEP (ViaCEP com fallback para BrasilAPI)
CEP_PROVEDOR_PRIMARIO_URL = config('CEP_PROVEDOR_PRIMARIO_URL', default='https://viacep.com.br/ws/{cep}/json/')
CEP_PROVEDOR_SECUNDARIO_URL = config('CEP_PROVEDOR_SECUNDARIO_URL', default='https://brasilapi.com.br/api/cep/v1/{cep}')
CEP_TIMEOUT = config('CEP_TIMEOUT', default=5, cast=int)

# Utmify (atribuição de conversões)
UTMIFY_API_TOKEN = config('UTMIFY_API_TOKEN', default='')
UTMIFY_API_URL = config('UTMIFY_API_URL', default='https://api.utmify.com.br/api-credentials/orders')
UTMIFY_PLATAFORMA = config('UTMIFY_PLATAFORMA', default='QuizNatal')
UTMIFY_TAXA_GATEWAY = config('UTMIFY_TAXA_GATEWAY', default='0.03')
UTMIFY_IS_TEST = config('UTMIFY_IS_TEST', default=False, cast=bool)

# Token do endpoint administrativo de saldo (vazio desativa o endpoint)
SALDO_TOKEN_ADMIN = config('SALDO_TOKEN_ADMIN', default='')


# ====================================================================
# CONFIGURAÇÕES DE LOGGING
# ====================================================================

LOG_LEVEL = config('LOG_LEVEL', default='INFO')
LOG_FILE = config('LOG_FILE', default='')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': True,
        },
        'quiznatal': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

if LOG_FILE:
    LOGGING['handlers']['file'] = {
        'level': LOG_LEVEL,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': LOG_FILE,
        'maxBytes': 1024 * 1024 * 5,  # 5 MB
        'backupCount': 5,
        'formatter': 'verbose',
    }
    for logger_config in LOGGING['loggers'].values():
        logger_config['handlers'].append('file')
