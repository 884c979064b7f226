# vitrine/core/apps.py

from django.apps import AppConfig

class CoreConfig(AppConfig):
    # O nome completo do path da aplicação
    name = 'vitrine.core'
    label = 'core'
    verbose_name = 'Stores do Cliente e Regras da Loja (Core)'
