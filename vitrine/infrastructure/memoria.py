"""
Implementações em memória dos colaboradores do BaaS.

Usadas nos testes e no desenvolvimento local (BAAS_BACKEND=memoria).
O BancoMemoria é compartilhado entre os clientes do processo; cada cliente
tem o seu AuthMemoria, com a sessão guardada no próprio armazenamento de
estado, como acontece no cliente HTTP.
"""
import copy
import logging
import re
import secrets
import threading
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from django.contrib.auth.hashers import check_password, make_password

from vitrine.core.entities import Sessao, UsuarioAuth
from vitrine.core.exceptions import ColaboradorExternoError, ErroAutenticacao
from vitrine.core.mappers import SessaoMapper
from vitrine.core.ports import (
    IAuthColaborador, IDadosColaborador, IArmazenamentoObjetos, IArmazenamentoEstado, Linha, Cancelar,
)
from vitrine.infrastructure.baas import CHAVE_SESSAO_BAAS

logger = logging.getLogger(__name__)

DURACAO_SESSAO = 3600
TAMANHO_MINIMO_SENHA = 6


def _agora_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BancoMemoria:
    """Coleções, contas e tokens de um BaaS fictício."""

    def __init__(self):
        self.trava = threading.RLock()
        self.colecoes: Dict[str, List[Linha]] = {}
        self.contas: Dict[str, Dict[str, Any]] = {}
        self.tokens_acesso: Dict[str, str] = {}
        self.tokens_confirmacao: Dict[str, str] = {}
        self.inscricoes: Dict[str, List[Callable[[str, Linha], None]]] = {}
        self.arquivos: Dict[Tuple[str, str], Tuple[bytes, str]] = {}

    def popular(self, colecao: str, linhas: Iterable[Linha]):
        with self.trava:
            self.colecoes.setdefault(colecao, []).extend(copy.deepcopy(list(linhas)))

    def limpar(self):
        with self.trava:
            for tabela in (self.colecoes, self.contas, self.tokens_acesso,
                           self.tokens_confirmacao, self.inscricoes, self.arquivos):
                tabela.clear()


# ====================================================================
# 1. AVALIAÇÃO DE FILTROS
# ====================================================================

def _comparavel(valor: Any) -> Any:
    if isinstance(valor, bool) or valor is None:
        return valor
    if isinstance(valor, (int, float, Decimal)):
        return Decimal(str(valor))
    if isinstance(valor, str):
        try:
            return Decimal(valor)
        except InvalidOperation:
            return valor
    return valor


def _igual(atual: Any, esperado: Any) -> bool:
    if atual == esperado:
        return True
    if atual is None or esperado is None or isinstance(atual, bool) or isinstance(esperado, bool):
        return False
    return str(atual) == str(esperado) or _comparavel(atual) == _comparavel(esperado)


def _comparar(atual: Any, esperado: Any, operador: str) -> bool:
    if atual is None:
        return False
    a, b = _comparavel(atual), _comparavel(esperado)
    if type(a) is not type(b):
        a, b = str(atual), str(esperado)
    if operador == 'gte':
        return a >= b
    if operador == 'lte':
        return a <= b
    if operador == 'gt':
        return a > b
    return a < b


def _ilike(atual: Any, padrao: str) -> bool:
    if atual is None:
        return False
    regex = '^' + '.*'.join(re.escape(parte) for parte in padrao.split('%')) + '$'
    return re.match(regex, str(atual), re.IGNORECASE | re.DOTALL) is not None


def atende(linha: Linha, filtros: Optional[Dict[str, Any]]) -> bool:
    """Avalia os lookups no estilo Django (`campo__gte` etc.) sobre uma linha."""
    for chave, esperado in (filtros or {}).items():
        campo, _, lookup = chave.partition('__')
        atual = linha.get(campo)
        if not lookup:
            ok = atual is None if esperado is None else _igual(atual, esperado)
        elif lookup == 'ne':
            ok = not _igual(atual, esperado)
        elif lookup in ('gte', 'lte', 'gt', 'lt'):
            ok = _comparar(atual, esperado, lookup)
        elif lookup == 'ilike':
            ok = _ilike(atual, esperado)
        elif lookup == 'in':
            ok = any(_igual(atual, valor) for valor in esperado)
        elif lookup == 'isnull':
            ok = (atual is None) == bool(esperado)
        else:
            raise ValueError(f"Lookup '{lookup}' não suportado.")
        if not ok:
            return False
    return True


def ordenar(linhas: List[Linha], ordem: Optional[List[str]]) -> List[Linha]:
    """Ordenação estável por vários campos; valores nulos ficam por último."""
    resultado = list(linhas)
    for campo in reversed(ordem or []):
        decrescente = campo.startswith('-')
        nome = campo.lstrip('-')
        presentes = [l for l in resultado if l.get(nome) is not None]
        nulos = [l for l in resultado if l.get(nome) is None]
        presentes.sort(key=lambda l: _comparavel(l[nome]), reverse=decrescente)
        resultado = presentes + nulos
    return resultado


# ====================================================================
# 2. DADOS
# ====================================================================

class DadosMemoria(IDadosColaborador):
    """Coleções em memória. Cópias entram e saem, nunca referências."""

    def __init__(self, banco: BancoMemoria):
        self.banco = banco

    def _linhas(self, colecao: str) -> List[Linha]:
        return self.banco.colecoes.setdefault(colecao, [])

    def _publicar(self, colecao: str, evento: str, linhas: List[Linha]):
        for callback in list(self.banco.inscricoes.get(colecao, [])):
            for linha in linhas:
                callback(evento, copy.deepcopy(linha))

    def selecionar(self, colecao, filtros=None, ordem=None, limite=None, deslocamento=None) -> List[Linha]:
        with self.banco.trava:
            linhas = ordenar([l for l in self._linhas(colecao) if atende(l, filtros)], ordem)
            inicio = deslocamento or 0
            fim = inicio + limite if limite is not None else None
            return copy.deepcopy(linhas[inicio:fim])

    def buscar_um(self, colecao, filtros) -> Optional[Linha]:
        linhas = self.selecionar(colecao, filtros, limite=1)
        return linhas[0] if linhas else None

    def inserir(self, colecao, dados) -> List[Linha]:
        novas = copy.deepcopy(dados if isinstance(dados, list) else [dados])
        with self.banco.trava:
            existentes = self._linhas(colecao)
            ids = {str(l.get('id')) for l in existentes}
            for linha in novas:
                linha.setdefault('id', str(uuid.uuid4()))
                linha.setdefault('created_at', _agora_iso())
                if str(linha['id']) in ids:
                    raise ColaboradorExternoError(
                        f'duplicate key value violates unique constraint "{colecao}_pkey"', codigo=409
                    )
                ids.add(str(linha['id']))
            existentes.extend(novas)
            criadas = copy.deepcopy(novas)
        self._publicar(colecao, 'INSERT', criadas)
        return criadas

    def atualizar(self, colecao, filtros, dados) -> List[Linha]:
        with self.banco.trava:
            alteradas = []
            for linha in self._linhas(colecao):
                if atende(linha, filtros):
                    linha.update(copy.deepcopy(dados))
                    alteradas.append(copy.deepcopy(linha))
        self._publicar(colecao, 'UPDATE', alteradas)
        return alteradas

    def remover(self, colecao, filtros) -> List[Linha]:
        if not filtros:
            raise ValueError("Remoção sem filtros não é permitida.")
        with self.banco.trava:
            linhas = self._linhas(colecao)
            removidas = [l for l in linhas if atende(l, filtros)]
            self.banco.colecoes[colecao] = [l for l in linhas if not atende(l, filtros)]
        self._publicar(colecao, 'DELETE', removidas)
        return removidas

    def contar(self, colecao, filtros=None) -> int:
        with self.banco.trava:
            return sum(1 for l in self._linhas(colecao) if atende(l, filtros))

    def inscrever(self, colecao, callback) -> Cancelar:
        with self.banco.trava:
            self.banco.inscricoes.setdefault(colecao, []).append(callback)

        def cancelar():
            with self.banco.trava:
                inscritos = self.banco.inscricoes.get(colecao, [])
                if callback in inscritos:
                    inscritos.remove(callback)

        return cancelar


# ====================================================================
# 3. AUTENTICAÇÃO
# ====================================================================

class AuthMemoria(IAuthColaborador):
    """
    Contas por e-mail e senha com as mesmas mensagens de erro do serviço
    real. Com `exigir_confirmacao`, o cadastro gera um token em
    `banco.tokens_confirmacao` e o login fica bloqueado até a verificação.
    """

    def __init__(self, banco: BancoMemoria, estado: IArmazenamentoEstado, exigir_confirmacao: bool = False):
        self.banco = banco
        self.estado = estado
        self.exigir_confirmacao = exigir_confirmacao
        self._callbacks: List[Callable[[str, Optional[Sessao]], None]] = []

    def _guardar(self, evento: str, sessao: Optional[Sessao]):
        if sessao:
            self.estado.salvar(CHAVE_SESSAO_BAAS, SessaoMapper.to_dict(sessao))
        else:
            self.estado.remover(CHAVE_SESSAO_BAAS)
        for callback in list(self._callbacks):
            callback(evento, sessao)

    def _nova_sessao(self, conta: Dict[str, Any]) -> Sessao:
        token = secrets.token_urlsafe(24)
        with self.banco.trava:
            self.banco.tokens_acesso[token] = conta['usuario'].id
        return Sessao(
            access_token=token,
            refresh_token=secrets.token_urlsafe(24),
            expira_em=int(time.time()) + DURACAO_SESSAO,
            usuario=copy.deepcopy(conta['usuario']),
        )

    def _conta(self, email: str) -> Optional[Dict[str, Any]]:
        return self.banco.contas.get((email or '').strip().lower())

    def obter_sessao(self) -> Optional[Sessao]:
        sessao = SessaoMapper.to_entity(self.estado.carregar(CHAVE_SESSAO_BAAS))
        if sessao is None:
            return None
        if sessao.access_token not in self.banco.tokens_acesso:
            self.estado.remover(CHAVE_SESSAO_BAAS)
            return None
        return sessao

    def ao_mudar_sessao(self, callback) -> Cancelar:
        self._callbacks.append(callback)

        def cancelar():
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return cancelar

    def entrar_com_senha(self, email: str, senha: str) -> Sessao:
        conta = self._conta(email)
        if conta is None or not check_password(senha, conta['senha']):
            raise ErroAutenticacao('Invalid login credentials', codigo=400)
        if not conta['usuario'].email_confirmado_em:
            raise ErroAutenticacao('Email not confirmed', codigo=400)
        sessao = self._nova_sessao(conta)
        self._guardar('SIGNED_IN', sessao)
        return sessao

    def cadastrar(self, email: str, senha: str, metadados: Dict[str, Any]) -> UsuarioAuth:
        if not email or '@' not in email:
            raise ErroAutenticacao('Unable to validate email address: invalid format', codigo=400)
        if not senha:
            raise ErroAutenticacao('Signup requires a valid password', codigo=400)
        if len(senha) < TAMANHO_MINIMO_SENHA:
            raise ErroAutenticacao('Password should be at least 6 characters', codigo=422)

        chave = email.strip().lower()
        with self.banco.trava:
            if chave in self.banco.contas:
                raise ErroAutenticacao('User already registered', codigo=422)
            agora = _agora_iso()
            usuario = UsuarioAuth(
                id=str(uuid.uuid4()),
                email=chave,
                telefone=metadados.get('phone'),
                metadados=dict(metadados),
                criado_em=agora,
                atualizado_em=agora,
                email_confirmado_em=None if self.exigir_confirmacao else agora,
            )
            conta = {'usuario': usuario, 'senha': make_password(senha)}
            self.banco.contas[chave] = conta
            if self.exigir_confirmacao:
                self.banco.tokens_confirmacao[secrets.token_urlsafe(16)] = chave

        if not self.exigir_confirmacao:
            self._guardar('SIGNED_IN', self._nova_sessao(conta))
        return copy.deepcopy(usuario)

    def sair(self) -> None:
        sessao = SessaoMapper.to_entity(self.estado.carregar(CHAVE_SESSAO_BAAS))
        if sessao:
            with self.banco.trava:
                self.banco.tokens_acesso.pop(sessao.access_token, None)
        self._guardar('SIGNED_OUT', None)

    def reenviar_confirmacao(self, email: str) -> None:
        conta = self._conta(email)
        if conta is None:
            raise ErroAutenticacao('User not found', codigo=404)
        with self.banco.trava:
            self.banco.tokens_confirmacao[secrets.token_urlsafe(16)] = conta['usuario'].email

    def verificar_token_confirmacao(self, token: str) -> Sessao:
        with self.banco.trava:
            email = self.banco.tokens_confirmacao.pop(token, None)
        if email is None:
            raise ErroAutenticacao('Token has expired or is invalid', codigo=403)
        conta = self._conta(email)
        conta['usuario'].email_confirmado_em = _agora_iso()
        sessao = self._nova_sessao(conta)
        self._guardar('SIGNED_IN', sessao)
        return sessao

    def atualizar_usuario(self, metadados: Dict[str, Any]) -> UsuarioAuth:
        sessao = self.obter_sessao()
        if sessao is None:
            raise ErroAutenticacao('Auth session missing!', codigo=401)
        conta = self._conta(sessao.usuario.email)
        conta['usuario'].metadados.update(metadados)
        conta['usuario'].atualizado_em = _agora_iso()
        sessao.usuario = copy.deepcopy(conta['usuario'])
        self._guardar('USER_UPDATED', sessao)
        return copy.deepcopy(conta['usuario'])


# ====================================================================
# 4. ARQUIVOS
# ====================================================================

class StorageMemoria(IArmazenamentoObjetos):

    def __init__(self, banco: BancoMemoria):
        self.banco = banco

    def enviar(self, bucket, caminho, conteudo, content_type='application/octet-stream') -> str:
        with self.banco.trava:
            self.banco.arquivos[(bucket, caminho)] = (conteudo, content_type)
        return self.url_publica(bucket, caminho)

    def url_publica(self, bucket, caminho) -> str:
        return f"memoria://{bucket}/{caminho}"

    def remover(self, bucket, caminhos) -> None:
        with self.banco.trava:
            for caminho in caminhos:
                self.banco.arquivos.pop((bucket, caminho), None)
