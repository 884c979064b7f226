"""
Armazenamento dos blobs de estado do cliente (`cart-storage`,
`auth-storage` e a sessão do BaaS).

No servidor, o equivalente ao armazenamento local do navegador é a sessão
do Django: um blob por chave, sempre serializável em JSON.
"""
import json
from typing import Any, Dict, Optional

from django.core.serializers.json import DjangoJSONEncoder

from vitrine.core.ports import IArmazenamentoEstado


class EstadoSessaoDjango(IArmazenamentoEstado):
    """Blobs guardados em `request.session`, sob o prefixo `vitrine:`."""

    PREFIXO = 'vitrine:'

    def __init__(self, session):
        self.session = session

    def carregar(self, chave: str) -> Optional[Dict[str, Any]]:
        bruto = self.session.get(self.PREFIXO + chave)
        if bruto is None:
            return None
        dados = json.loads(bruto)
        if not isinstance(dados, dict):
            raise ValueError(f"Estado '{chave}' não é um objeto JSON.")
        return dados

    def salvar(self, chave: str, dados: Dict[str, Any]) -> None:
        # Decimal e datas viram texto; o blob guardado é sempre JSON puro.
        self.session[self.PREFIXO + chave] = json.dumps(dados, cls=DjangoJSONEncoder)

    def remover(self, chave: str) -> None:
        self.session.pop(self.PREFIXO + chave, None)


class EstadoMemoria(IArmazenamentoEstado):
    """Blobs num dicionário. Usado nos testes e fora de requisições HTTP."""

    def __init__(self, inicial: Optional[Dict[str, Dict[str, Any]]] = None):
        self.blobs: Dict[str, str] = {}
        for chave, dados in (inicial or {}).items():
            self.salvar(chave, dados)

    def carregar(self, chave: str) -> Optional[Dict[str, Any]]:
        bruto = self.blobs.get(chave)
        return json.loads(bruto) if bruto is not None else None

    def salvar(self, chave: str, dados: Dict[str, Any]) -> None:
        self.blobs[chave] = json.dumps(dados, cls=DjangoJSONEncoder)

    def remover(self, chave: str) -> None:
        self.blobs.pop(chave, None)
