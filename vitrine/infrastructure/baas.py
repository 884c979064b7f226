"""
Clientes HTTP do BaaS (API compatível com Supabase): autenticação
(`/auth/v1`), dados por linhas (`/rest/v1`) e armazenamento de arquivos
(`/storage/v1`).

Toda falha de rede ou resposta fora da faixa 2xx vira ColaboradorExternoError
(ErroAutenticacao no serviço de autenticação), com a mensagem devolvida pelo
servidor quando houver.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests
from decouple import config

from vitrine.core.entities import Sessao, UsuarioAuth
from vitrine.core.exceptions import ColaboradorExternoError, ErroAutenticacao
from vitrine.core.mappers import SessaoMapper, UsuarioAuthMapper
from vitrine.core.ports import (
    IAuthColaborador, IDadosColaborador, IArmazenamentoObjetos, IArmazenamentoEstado, Linha, Cancelar,
)

logger = logging.getLogger(__name__)

CHAVE_SESSAO_BAAS = 'baas-auth-token'

# Renova o token um pouco antes de expirar
MARGEM_RENOVACAO = 60


class ClienteBaaS:
    """Base dos clientes: URL, chave anônima, timeout e tradução de erros."""

    erro_classe = ColaboradorExternoError

    def __init__(self, url: Optional[str] = None, chave_anonima: Optional[str] = None, timeout: Optional[int] = None):
        self.url = (url or config('BAAS_URL', default='http://localhost:54321')).rstrip('/')
        self.chave_anonima = chave_anonima or config('BAAS_ANON_KEY', default='')
        self.timeout = timeout or config('BAAS_TIMEOUT', default=15, cast=int)
        if not self.chave_anonima:
            logger.warning("BAAS_ANON_KEY não configurada. As chamadas ao BaaS serão recusadas.")

    def _token(self) -> Optional[str]:
        return None

    def _headers(self, extras: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            'apikey': self.chave_anonima,
            'Authorization': f"Bearer {self._token() or self.chave_anonima}",
            'Content-Type': 'application/json',
        }
        if extras:
            headers.update(extras)
        return headers

    @staticmethod
    def _mensagem_erro(response: requests.Response) -> str:
        try:
            corpo = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(corpo, dict):
            for chave in ('error_description', 'msg', 'message', 'error'):
                if corpo.get(chave):
                    return str(corpo[chave])
        return f"HTTP {response.status_code}"

    def _requisitar(self, metodo: str, caminho: str, headers: Optional[Dict[str, str]] = None, **kwargs) -> requests.Response:
        try:
            response = requests.request(
                metodo, f"{self.url}{caminho}", headers=self._headers(headers), timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.error("Falha de rede em %s %s: %s", metodo, caminho, e)
            raise self.erro_classe('Network request failed')

        if not response.ok:
            mensagem = self._mensagem_erro(response)
            logger.warning("BaaS respondeu %s em %s %s: %s", response.status_code, metodo, caminho, mensagem)
            raise self.erro_classe(mensagem, codigo=response.status_code)
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if not response.content:
            return None
        return response.json()


# ====================================================================
# 1. AUTENTICAÇÃO
# ====================================================================

class SupabaseAuthGateway(ClienteBaaS, IAuthColaborador):
    """
    Autenticação por e-mail e senha. A sessão do cliente fica no
    armazenamento de estado, sob `baas-auth-token`, e é renovada com o
    refresh token quando expira.
    """

    erro_classe = ErroAutenticacao

    def __init__(self, estado: IArmazenamentoEstado, relogio: Callable[[], float] = time.time, **kwargs):
        super().__init__(**kwargs)
        self.estado = estado
        self.relogio = relogio
        self._callbacks: List[Callable[[str, Optional[Sessao]], None]] = []

    # --- Sessão local ---

    def _sessao_salva(self) -> Optional[Sessao]:
        try:
            return SessaoMapper.to_entity(self.estado.carregar(CHAVE_SESSAO_BAAS))
        except (KeyError, TypeError, ValueError):
            logger.warning("Sessão do BaaS corrompida, descartada.")
            self.estado.remover(CHAVE_SESSAO_BAAS)
            return None

    def _token(self) -> Optional[str]:
        sessao = self._sessao_salva()
        return sessao.access_token if sessao else None

    def _guardar(self, evento: str, sessao: Optional[Sessao]):
        if sessao:
            self.estado.salvar(CHAVE_SESSAO_BAAS, SessaoMapper.to_dict(sessao))
        else:
            self.estado.remover(CHAVE_SESSAO_BAAS)
        for callback in list(self._callbacks):
            callback(evento, sessao)

    def _sessao_da_resposta(self, dados: Dict[str, Any]) -> Sessao:
        expira_em = dados.get('expires_at')
        if expira_em is None and dados.get('expires_in'):
            expira_em = int(self.relogio()) + int(dados['expires_in'])
        return Sessao(
            access_token=dados['access_token'],
            refresh_token=dados.get('refresh_token'),
            expira_em=expira_em,
            usuario=UsuarioAuthMapper.to_entity(dados['user']),
        )

    def _renovar(self, sessao: Sessao) -> Optional[Sessao]:
        try:
            response = self._requisitar(
                'POST', '/auth/v1/token', params={'grant_type': 'refresh_token'},
                json={'refresh_token': sessao.refresh_token},
            )
        except ErroAutenticacao as e:
            logger.info("Não foi possível renovar a sessão de %s: %s", sessao.usuario.id, e.message)
            self._guardar('SIGNED_OUT', None)
            return None
        nova = self._sessao_da_resposta(self._json(response))
        self._guardar('TOKEN_REFRESHED', nova)
        return nova

    # --- IAuthColaborador ---

    def obter_sessao(self) -> Optional[Sessao]:
        sessao = self._sessao_salva()
        if sessao is None:
            return None
        if sessao.expira_em and sessao.refresh_token and sessao.expira_em - MARGEM_RENOVACAO <= self.relogio():
            return self._renovar(sessao)
        return sessao

    def ao_mudar_sessao(self, callback: Callable[[str, Optional[Sessao]], None]) -> Cancelar:
        self._callbacks.append(callback)

        def cancelar():
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return cancelar

    def entrar_com_senha(self, email: str, senha: str) -> Sessao:
        response = self._requisitar(
            'POST', '/auth/v1/token', params={'grant_type': 'password'},
            json={'email': email, 'password': senha},
        )
        sessao = self._sessao_da_resposta(self._json(response))
        self._guardar('SIGNED_IN', sessao)
        return sessao

    def cadastrar(self, email: str, senha: str, metadados: Dict[str, Any]) -> UsuarioAuth:
        response = self._requisitar(
            'POST', '/auth/v1/signup', json={'email': email, 'password': senha, 'data': metadados},
        )
        dados = self._json(response)
        # Com confirmação de e-mail desligada o servidor já devolve uma sessão.
        if dados.get('access_token'):
            sessao = self._sessao_da_resposta(dados)
            self._guardar('SIGNED_IN', sessao)
            return sessao.usuario
        return UsuarioAuthMapper.to_entity(dados.get('user') or dados)

    def sair(self) -> None:
        if self._token():
            self._requisitar('POST', '/auth/v1/logout')
        self._guardar('SIGNED_OUT', None)

    def reenviar_confirmacao(self, email: str) -> None:
        self._requisitar('POST', '/auth/v1/resend', json={'type': 'signup', 'email': email})

    def verificar_token_confirmacao(self, token: str) -> Sessao:
        response = self._requisitar('POST', '/auth/v1/verify', json={'type': 'signup', 'token_hash': token})
        sessao = self._sessao_da_resposta(self._json(response))
        self._guardar('SIGNED_IN', sessao)
        return sessao

    def atualizar_usuario(self, metadados: Dict[str, Any]) -> UsuarioAuth:
        response = self._requisitar('PUT', '/auth/v1/user', json={'data': metadados})
        usuario = UsuarioAuthMapper.to_entity(self._json(response))
        sessao = self._sessao_salva()
        if sessao:
            sessao.usuario = usuario
            self._guardar('USER_UPDATED', sessao)
        return usuario


# ====================================================================
# 2. DADOS (PostgREST)
# ====================================================================

_OPERADORES = {
    'gte': 'gte',
    'lte': 'lte',
    'gt': 'gt',
    'lt': 'lt',
    'ne': 'neq',
    'ilike': 'ilike',
}


def _valor_postgrest(valor: Any) -> str:
    if isinstance(valor, bool):
        return 'true' if valor else 'false'
    if valor is None:
        return 'null'
    return str(valor)


def filtros_para_params(filtros: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Converte lookups `campo__op` para a sintaxe de query do PostgREST (`campo=op.valor`)."""
    params: Dict[str, str] = {}
    for chave, valor in (filtros or {}).items():
        campo, _, lookup = chave.partition('__')
        if not lookup:
            params[campo] = 'is.null' if valor is None else f"eq.{_valor_postgrest(valor)}"
        elif lookup == 'in':
            params[campo] = f"in.({','.join(_valor_postgrest(v) for v in valor)})"
        elif lookup == 'isnull':
            params[campo] = 'is.null' if valor else 'not.is.null'
        elif lookup in _OPERADORES:
            params[campo] = f"{_OPERADORES[lookup]}.{_valor_postgrest(valor)}"
        else:
            raise ValueError(f"Lookup '{lookup}' não suportado.")
    return params


def ordem_para_param(ordem: Optional[List[str]]) -> Optional[str]:
    if not ordem:
        return None
    return ','.join(f"{campo[1:]}.desc" if campo.startswith('-') else f"{campo}.asc" for campo in ordem)


class SupabaseDadosGateway(ClienteBaaS, IDadosColaborador):
    """
    CRUD sobre as tabelas expostas pelo PostgREST, com o token do usuário
    logado quando houver (as políticas de acesso ficam no servidor).

    `inscrever` entrega as mudanças feitas por este mesmo cliente.
    """

    def __init__(self, auth: Optional[SupabaseAuthGateway] = None, **kwargs):
        super().__init__(**kwargs)
        self.auth = auth
        self._inscricoes: Dict[str, List[Callable[[str, Linha], None]]] = {}

    def _token(self) -> Optional[str]:
        return self.auth._token() if self.auth else None

    def _publicar(self, colecao: str, evento: str, linhas: List[Linha]):
        for callback in list(self._inscricoes.get(colecao, [])):
            for linha in linhas:
                callback(evento, linha)

    def selecionar(self, colecao, filtros=None, ordem=None, limite=None, deslocamento=None) -> List[Linha]:
        params = {'select': '*', **filtros_para_params(filtros)}
        if ordem:
            params['order'] = ordem_para_param(ordem)
        if limite is not None:
            params['limit'] = str(limite)
        if deslocamento:
            params['offset'] = str(deslocamento)
        return self._json(self._requisitar('GET', f"/rest/v1/{colecao}", params=params)) or []

    def buscar_um(self, colecao, filtros) -> Optional[Linha]:
        linhas = self.selecionar(colecao, filtros, limite=1)
        return linhas[0] if linhas else None

    def inserir(self, colecao, dados) -> List[Linha]:
        response = self._requisitar(
            'POST', f"/rest/v1/{colecao}", json=dados, headers={'Prefer': 'return=representation'},
        )
        linhas = self._json(response) or []
        self._publicar(colecao, 'INSERT', linhas)
        return linhas

    def atualizar(self, colecao, filtros, dados) -> List[Linha]:
        response = self._requisitar(
            'PATCH', f"/rest/v1/{colecao}", params=filtros_para_params(filtros), json=dados,
            headers={'Prefer': 'return=representation'},
        )
        linhas = self._json(response) or []
        self._publicar(colecao, 'UPDATE', linhas)
        return linhas

    def remover(self, colecao, filtros) -> List[Linha]:
        if not filtros:
            raise ValueError("Remoção sem filtros não é permitida.")
        response = self._requisitar(
            'DELETE', f"/rest/v1/{colecao}", params=filtros_para_params(filtros),
            headers={'Prefer': 'return=representation'},
        )
        linhas = self._json(response) or []
        self._publicar(colecao, 'DELETE', linhas)
        return linhas

    def contar(self, colecao, filtros=None) -> int:
        response = self._requisitar(
            'HEAD', f"/rest/v1/{colecao}", params={'select': '*', **filtros_para_params(filtros)},
            headers={'Prefer': 'count=exact'},
        )
        # Content-Range: 0-9/42 ou */0
        intervalo = response.headers.get('Content-Range', '*/0')
        return int(intervalo.rsplit('/', 1)[-1])

    def inscrever(self, colecao, callback) -> Cancelar:
        self._inscricoes.setdefault(colecao, []).append(callback)

        def cancelar():
            inscritos = self._inscricoes.get(colecao, [])
            if callback in inscritos:
                inscritos.remove(callback)

        return cancelar


# ====================================================================
# 3. ARMAZENAMENTO DE ARQUIVOS
# ====================================================================

class SupabaseStorageGateway(ClienteBaaS, IArmazenamentoObjetos):
    """Imagens de produto e avatares em buckets públicos."""

    def __init__(self, auth: Optional[SupabaseAuthGateway] = None, **kwargs):
        super().__init__(**kwargs)
        self.auth = auth

    def _token(self) -> Optional[str]:
        return self.auth._token() if self.auth else None

    def enviar(self, bucket: str, caminho: str, conteudo: bytes, content_type: str = 'application/octet-stream') -> str:
        self._requisitar(
            'POST', f"/storage/v1/object/{bucket}/{caminho}", data=conteudo,
            headers={'Content-Type': content_type, 'x-upsert': 'true'},
        )
        return self.url_publica(bucket, caminho)

    def url_publica(self, bucket: str, caminho: str) -> str:
        return f"{self.url}/storage/v1/object/public/{bucket}/{caminho}"

    def remover(self, bucket: str, caminhos: Iterable[str]) -> None:
        self._requisitar('DELETE', f"/storage/v1/object/{bucket}", json={'prefixes': list(caminhos)})
