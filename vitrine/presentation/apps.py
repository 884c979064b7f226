from django.apps import AppConfig


class PresentationConfig(AppConfig):
    name = 'vitrine.presentation'
    label = 'presentation'
