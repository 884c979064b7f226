"""
Liga cada requisição a um contexto de cliente da loja (`request.loja`).

O contexto é criado sob demanda a partir da sessão do Django e encerrado
ao fim da resposta.
"""
import logging

from django.utils.functional import SimpleLazyObject
from rest_framework.authentication import SessionAuthentication

from vitrine.core.dependency_injection import criar_contexto_loja
from vitrine.infrastructure.estado import EstadoSessaoDjango

logger = logging.getLogger(__name__)


class ContextoLojaMiddleware:
    """Precisa vir depois do SessionMiddleware."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        criados = []

        def criar():
            contexto = criar_contexto_loja(EstadoSessaoDjango(request.session))
            criados.append(contexto)
            return contexto.iniciar()

        request.loja = SimpleLazyObject(criar)
        try:
            return self.get_response(request)
        finally:
            for contexto in criados:
                contexto.encerrar()


class UsuarioLoja:
    """Usuário autenticado visto pelo DRF: a identidade do contexto da loja."""

    is_authenticated = True
    is_anonymous = False

    def __init__(self, identidade):
        self.identidade = identidade

    @property
    def pk(self):
        return self.identidade.id

    def __str__(self):
        return self.identidade.email


class SessaoLojaAuthentication(SessionAuthentication):
    """
    Autentica pela sessão do BaaS guardada no contexto da loja, com a mesma
    verificação de CSRF da SessionAuthentication.
    """

    def authenticate(self, request):
        loja = getattr(request._request, 'loja', None)
        if loja is None:
            return None

        identidade = loja.identidade
        if not identidade.is_authenticated or identidade.identidade is None:
            return None

        self.enforce_csrf(request)
        return (UsuarioLoja(identidade.identidade), None)
