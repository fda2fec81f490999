from django.apps import AppConfig


class CoreConfig(AppConfig):
    name = 'quiznatal.core'
    label = 'core'
