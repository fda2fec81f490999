"""
Middleware de CORS com lista de origens permitidas (CORS_ORIGENS_PERMITIDAS).

Requisições sem o cabeçalho Origin passam direto; origens fora da lista
recebem 403 antes de chegar às views.
"""
import logging

from django.http import HttpResponse, JsonResponse
from django.utils.cache import patch_vary_headers

from quiznatal.core.exceptions import OrigemNaoAutorizadaError
from quiznatal.infrastructure.configuracao import get_configuracao

logger = logging.getLogger(__name__)


class OrigemPermitidaMiddleware:
    METODOS_PERMITIDOS = "GET, POST, PATCH, DELETE, OPTIONS"
    CABECALHOS_PERMITIDOS = "Content-Type, Authorization, X-Requested-With, X-CSRFToken, X-Saldo-Token"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        origem = request.headers.get("Origin")
        if not origem:
            return self.get_response(request)

        if origem not in get_configuracao().origens_permitidas:
            logger.warning("Requisição bloqueada da origem %s para %s.", origem, request.path)
            erro = OrigemNaoAutorizadaError()
            return JsonResponse({"error": erro.message, "code": erro.codigo}, status=403)

        if request.method == "OPTIONS":
            response = HttpResponse(status=200)
        else:
            response = self.get_response(request)

        response["Access-Control-Allow-Origin"] = origem
        response["Access-Control-Allow-Credentials"] = "true"
        response["Access-Control-Allow-Methods"] = self.METODOS_PERMITIDOS
        response["Access-Control-Allow-Headers"] = self.CABECALHOS_PERMITIDOS
        patch_vary_headers(response, ("Origin",))
        return response
