from django.apps import AppConfig


class PresentationConfig(AppConfig):
    name = 'quiznatal.presentation'
    label = 'presentation' # Define um label para evitar conflitos de nomes
