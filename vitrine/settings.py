"""
Configurações para o projeto Vitrine.
"""

import os
from decimal import Decimal
from pathlib import Path

from decouple import config, Csv

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ====================================================================
# CONFIGURAÇÕES BÁSICAS
# ====================================================================

# A SECRET_KEY deve ser lida de uma variável de ambiente por segurança.
SECRET_KEY = config('SECRET_KEY', default='django-insecure-default-key-for-development')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,testserver', cast=Csv())


# ====================================================================
# APLICAÇÕES INSTALADAS
# ====================================================================

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',

    # Aplicações de Terceiros (Primeiro)
    'rest_framework',
    'drf_spectacular',

    # Nossas Aplicações
    'vitrine.core.apps.CoreConfig', # Stores do cliente e regras da loja
    'vitrine.infrastructure.apps.InfrastructureConfig', # Colaboradores do BaaS e gateways
    'vitrine.presentation.apps.PresentationConfig', # API JSON
]


# ====================================================================
# MIDDLEWARE
# ====================================================================

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    # Depende da sessão: cria request.loja (carrinho + identidade do cliente)
    'vitrine.presentation.middleware.ContextoLojaMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'vitrine.urls'

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

WSGI_APPLICATION = 'vitrine.wsgi.application'


# ====================================================================
# SESSÃO E CACHE
# ====================================================================

# Os dados da loja vivem no BaaS; o Django não tem banco próprio.
DATABASES = {}

# A sessão guarda o estado do cliente (carrinho, identidade, sessão do BaaS).
SESSION_ENGINE = config('SESSION_ENGINE', default='django.contrib.sessions.backends.cache')
SESSION_COOKIE_AGE = config('SESSION_COOKIE_AGE', default=60 * 60 * 24 * 30, cast=int)

CACHES = {
    'default': {
        'BACKEND': config('CACHE_BACKEND', default='django.core.cache.backends.locmem.LocMemCache'),
        'LOCATION': config('CACHE_LOCATION', default='vitrine'),
    }
}


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


# ====================================================================
# CONFIGURAÇÕES DO DJANGO REST FRAMEWORK (DRF) E DOCS (SPECTACULAR)
# ====================================================================

SPECTACULAR_SETTINGS = {
    'TITLE': 'API da Vitrine',
    'DESCRIPTION': 'Carrinho, autenticação, perfil, checkout e painel da loja.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

REST_FRAMEWORK = {
    # O cliente é identificado pela sessão do BaaS guardada na sessão do Django.
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'vitrine.presentation.middleware.SessaoLojaAuthentication',
    ),
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}


# ====================================================================
# CONFIGURAÇÕES DA LOJA E DE SERVIÇOS EXTERNOS (BaaS, ViaCEP)
# ====================================================================

# 'http' fala com o BaaS real; 'memoria' usa colaboradores em memória.
BAAS_BACKEND = config('BAAS_BACKEND', default='http')
BAAS_URL = config('BAAS_URL', default='http://localhost:54321')
BAAS_ANON_KEY = config('BAAS_ANON_KEY', default='')
BAAS_TIMEOUT = config('BAAS_TIMEOUT', default=15, cast=int)
BAAS_EXIGIR_CONFIRMACAO = config('BAAS_EXIGIR_CONFIRMACAO', default=True, cast=bool)

TAXA_IMPOSTO = config('TAXA_IMPOSTO', default='0.08', cast=Decimal)
REENVIO_CONFIRMACAO_INTERVALO = config('REENVIO_CONFIRMACAO_INTERVALO', default=60, cast=int)

VIACEP_URL = config('VIACEP_URL', default='https://viacep.com.br/ws')


# Configurações de Logging
LOG_FILE = config('LOG_FILE', default=str(BASE_DIR / 'logs' / 'vitrine.log'))
os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'file': {
            'level': config('LOG_LEVEL', default='WARNING'),
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_FILE,
            'maxBytes': 1024 * 1024 * 5,  # 5 MB
            'backupCount': 5,
            'formatter': 'verbose',
        },
        'console': {
            'level': config('LOG_LEVEL', default='WARNING'),
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
            'handlers': ['file'],
            'level': 'WARNING',
            'propagate': True,
        },
        'vitrine.core': {
            'handlers': ['file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'vitrine.infrastructure': {
            'handlers': ['file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'vitrine.presentation': {
            'handlers': ['file'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
