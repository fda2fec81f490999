# Configura o Django para rodar os testes com pytest (além do `manage.py test`).
import os

import django
from django.test.utils import setup_test_environment

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'quiznatal.settings')
django.setup()
setup_test_environment()
