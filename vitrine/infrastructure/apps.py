from django.apps import AppConfig


class InfrastructureConfig(AppConfig):
    name = 'vitrine.infrastructure'
    label = 'infrastructure'
    verbose_name = 'Colaboradores do BaaS e Gateways'
