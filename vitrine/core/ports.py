# vitrine/core/ports.py
"""
Definição das Portas (Interfaces/Protocolos) da Arquitetura Limpa.

Estes protocolos definem o contrato que a camada de Infraestrutura (clientes do
BaaS, armazenamento de estado, gateways) DEVE seguir para se conectar à camada
Core (stores e casos de uso).
"""

from typing import Protocol, List, Optional, Dict, Any, Callable, Iterable
from abc import abstractmethod

from vitrine.core.entities import Sessao, UsuarioAuth, EnderecoCep, DadosPagamento


Linha = Dict[str, Any]
Cancelar = Callable[[], None]


# ====================================================================
# 1. COLABORADORES DO BaaS
# ====================================================================

class IAuthColaborador(Protocol):
    """Serviço de autenticação externo. Erros sobem como ErroAutenticacao."""

    @abstractmethod
    def obter_sessao(self) -> Optional[Sessao]: ...

    @abstractmethod
    def ao_mudar_sessao(self, callback: Callable[[str, Optional[Sessao]], None]) -> Cancelar:
        """Registra um callback (evento, sessão) e devolve a função que o remove."""
        ...

    @abstractmethod
    def entrar_com_senha(self, email: str, senha: str) -> Sessao: ...

    @abstractmethod
    def cadastrar(self, email: str, senha: str, metadados: Dict[str, Any]) -> UsuarioAuth: ...

    @abstractmethod
    def sair(self) -> None: ...

    @abstractmethod
    def reenviar_confirmacao(self, email: str) -> None: ...

    @abstractmethod
    def verificar_token_confirmacao(self, token: str) -> Sessao: ...

    @abstractmethod
    def atualizar_usuario(self, metadados: Dict[str, Any]) -> UsuarioAuth: ...


class IDadosColaborador(Protocol):
    """
    CRUD por linhas sobre coleções nomeadas (users, products, categories,
    orders, order_items, addresses, refund_requests).

    Filtros usam lookups no estilo Django: `campo`, `campo__gte`, `campo__lte`,
    `campo__gt`, `campo__lt`, `campo__ne`, `campo__ilike`, `campo__in`,
    `campo__isnull`. A ordem é uma lista de campos, com '-' para decrescente.
    """

    @abstractmethod
    def selecionar(
        self,
        colecao: str,
        filtros: Optional[Dict[str, Any]] = None,
        ordem: Optional[List[str]] = None,
        limite: Optional[int] = None,
        deslocamento: Optional[int] = None,
    ) -> List[Linha]: ...

    @abstractmethod
    def buscar_um(self, colecao: str, filtros: Dict[str, Any]) -> Optional[Linha]: ...

    @abstractmethod
    def inserir(self, colecao: str, dados: Any) -> List[Linha]:
        """Insere uma linha (dict) ou várias (lista) e devolve as linhas criadas."""
        ...

    @abstractmethod
    def atualizar(self, colecao: str, filtros: Dict[str, Any], dados: Dict[str, Any]) -> List[Linha]: ...

    @abstractmethod
    def remover(self, colecao: str, filtros: Dict[str, Any]) -> List[Linha]: ...

    @abstractmethod
    def contar(self, colecao: str, filtros: Optional[Dict[str, Any]] = None) -> int: ...

    @abstractmethod
    def inscrever(self, colecao: str, callback: Callable[[str, Linha], None]) -> Cancelar:
        """Recebe (evento, linha) a cada INSERT/UPDATE/DELETE na coleção."""
        ...


class IArmazenamentoObjetos(Protocol):
    """Armazenamento de arquivos (imagens de produto, avatares)."""

    @abstractmethod
    def enviar(self, bucket: str, caminho: str, conteudo: bytes, content_type: str = 'application/octet-stream') -> str: ...

    @abstractmethod
    def url_publica(self, bucket: str, caminho: str) -> str: ...

    @abstractmethod
    def remover(self, bucket: str, caminhos: Iterable[str]) -> None: ...


# ====================================================================
# 2. ESTADO LOCAL PERSISTIDO
# ====================================================================

class IArmazenamentoEstado(Protocol):
    """Blobs serializáveis em JSON guardados sob chaves fixas."""

    @abstractmethod
    def carregar(self, chave: str) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    def salvar(self, chave: str, dados: Dict[str, Any]) -> None: ...

    @abstractmethod
    def remover(self, chave: str) -> None: ...


# ====================================================================
# 3. GATEWAYS (Serviços Externos)
# ====================================================================

class ICepGateway(Protocol):
    """Consulta de endereço por CEP."""

    @abstractmethod
    def buscar(self, cep: str) -> EnderecoCep: ...


class IGatewayPagamento(Protocol):
    """Pagamento simulado (PIX, boleto, cartão). Não há processamento real."""

    @abstractmethod
    def gerar_pagamento(self, metodo: str, valor, dados: Dict[str, Any]) -> DadosPagamento: ...
