# vitrine/core/permissoes.py
"""
Predicados de autorização do painel administrativo.

O mapa de permissões é plano: recurso -> {create, read, update, delete}.
Um admin sem mapa de permissões é super-admin (acesso irrestrito).
"""
from typing import Optional, Dict, Tuple

from vitrine.core.entities import Identidade

ROLE_ADMIN = 'admin'
ROLE_CLIENTE = 'customer'

ACOES = ('create', 'read', 'update', 'delete')

PERMISSOES_ROTAS: Dict[str, Tuple[str, str]] = {
    '/admin/products': ('products', 'read'),
    '/admin/products/new': ('products', 'create'),
    '/admin/products/edit': ('products', 'update'),
    '/admin/orders': ('orders', 'read'),
    '/admin/orders/edit': ('orders', 'update'),
    '/admin/categories': ('categories', 'read'),
    '/admin/categories/new': ('categories', 'create'),
    '/admin/analytics': ('analytics', 'read'),
    '/admin/settings': ('settings', 'read'),
}


def is_admin(identidade: Optional[Identidade]) -> bool:
    return identidade is not None and identidade.role == ROLE_ADMIN


def tem_permissao(identidade: Optional[Identidade], recurso: str, acao: str) -> bool:
    if not is_admin(identidade):
        return False

    if identidade.permissoes is None:
        return True

    permissoes_recurso = identidade.permissoes.get(recurso)
    if not permissoes_recurso:
        return False
    return permissoes_recurso.get(acao) is True


def pode_acessar(identidade: Optional[Identidade], rota: str) -> bool:
    """Rotas fora do mapa ficam liberadas para qualquer admin."""
    if not is_admin(identidade):
        return False

    permissao = PERMISSOES_ROTAS.get(rota)
    if permissao is None:
        return True

    recurso, acao = permissao
    return tem_permissao(identidade, recurso, acao)
