from django.apps import AppConfig


class InfrastructureConfig(AppConfig):
    name = 'quiznatal.infrastructure'
    label = 'infrastructure' # Define um label para evitar conflitos de nomes

    def ready(self):
        from quiznatal.infrastructure.configuracao import get_configuracao
        get_configuracao().validar()
