# vitrine/core/identidade.py
"""
Store de identidade: sessão de autenticação, perfil do usuário e os dados
de conta (endereços, pedidos, reembolsos).

A identidade é montada em duas fases:
1. Assim que surge uma sessão, com os campos que a própria sessão traz
   (nome, avatar, telefone). O cliente já aparece logado.
2. Em seguida, com o registro da coleção `users` (role e permissões).
   Se o registro não existir, ele é criado a partir da sessão.
"""
import logging
import math
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Any

from vitrine.core.entities import (
    Identidade, Sessao, UsuarioAuth, MensagemErro, Endereco, MetodoPagamento,
    Pedido, SolicitacaoReembolso,
)
from vitrine.core.erros_auth import TradutorErrosAuth
from vitrine.core.exceptions import (
    BaseErroCore, ColaboradorExternoError, ErroAutenticacao, PedidoNaoEncontradoError,
)
from vitrine.core.mappers import IdentidadeMapper, SessaoMapper
from vitrine.core.observavel import StoreObservavel
from vitrine.core.permissoes import ROLE_CLIENTE, is_admin, tem_permissao, pode_acessar
from vitrine.core.ports import IAuthColaborador, IDadosColaborador, IArmazenamentoEstado, IArmazenamentoObjetos
from vitrine.core.use_cases import GerenciarEnderecosUseCase, PedidosClienteUseCase, agora_iso

logger = logging.getLogger(__name__)

SITUACAO_NAO_INICIALIZADO = 'nao_inicializado'
SITUACAO_SINCRONIZANDO = 'sincronizando'
SITUACAO_PRONTO = 'pronto'

INTERVALO_REENVIO_CONFIRMACAO = 60
CHAVE_REENVIO = 'confirmation-resend'

# Campos do perfil que o próprio usuário pode alterar -> colunas de `users`
CAMPOS_PERFIL = {
    'nome_completo': 'full_name',
    'telefone': 'phone',
    'data_nascimento': 'date_of_birth',
}

# Campos que o registro de `users` sobrescreve quando preenchidos
CAMPOS_DO_REGISTRO = (
    ('nome_completo', 'full_name'),
    ('telefone', 'phone'),
    ('data_nascimento', 'date_of_birth'),
    ('avatar_url', 'avatar_url'),
    ('atualizado_em', 'updated_at'),
)


# ====================================================================
# MONTAGEM DA IDENTIDADE
# ====================================================================

def identidade_da_sessao(usuario: UsuarioAuth) -> Identidade:
    """Fase 1: identidade provisória só com o que a sessão traz (sem role)."""
    metadados = usuario.metadados or {}
    return Identidade(
        id=usuario.id,
        email=usuario.email,
        nome_completo=metadados.get('full_name') or metadados.get('name') or '',
        telefone=usuario.telefone or metadados.get('phone'),
        data_nascimento=metadados.get('date_of_birth'),
        avatar_url=metadados.get('avatar_url') or metadados.get('picture'),
        criado_em=usuario.criado_em,
        atualizado_em=usuario.atualizado_em or usuario.criado_em,
    )


def mesclar_identidade(usuario: UsuarioAuth, registro: Dict[str, Any]) -> Identidade:
    """
    Fase 2: o registro vence a sessão em todo campo que ele preencher.
    `id`, `email` e `criado_em` vêm sempre da sessão; `role` e `permissoes`
    só existem no registro.
    """
    identidade = identidade_da_sessao(usuario)
    for campo, coluna in CAMPOS_DO_REGISTRO:
        if registro.get(coluna) is not None:
            setattr(identidade, campo, registro[coluna])
    identidade.role = registro.get('role')
    identidade.permissoes = registro.get('permissions')
    return identidade


def registro_inicial(usuario: UsuarioAuth) -> Dict[str, Any]:
    """Linha de `users` criada na primeira sincronização do usuário."""
    provisoria = identidade_da_sessao(usuario)
    agora = agora_iso()
    return {
        'id': usuario.id,
        'email': usuario.email,
        'full_name': provisoria.nome_completo,
        'phone': provisoria.telefone,
        'date_of_birth': provisoria.data_nascimento,
        'avatar_url': provisoria.avatar_url,
        'role': ROLE_CLIENTE,
        'created_at': usuario.criado_em or agora,
        'updated_at': agora,
    }


class RegistroSincronizacoes:
    """
    Sincronizações em andamento por id de usuário.

    Duas sincronizações do mesmo usuário nunca rodam juntas: a segunda
    espera a primeira terminar e então encontra o registro já criado.
    """

    def __init__(self):
        self._guarda = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._usos: Dict[str, int] = {}

    @contextmanager
    def em_andamento(self, usuario_id: str):
        with self._guarda:
            lock = self._locks.setdefault(usuario_id, threading.Lock())
            self._usos[usuario_id] = self._usos.get(usuario_id, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guarda:
                self._usos[usuario_id] -= 1
                if not self._usos[usuario_id]:
                    del self._usos[usuario_id]
                    del self._locks[usuario_id]

    def ativos(self) -> int:
        with self._guarda:
            return len(self._locks)


_sincronizacoes = RegistroSincronizacoes()


# ====================================================================
# STORE
# ====================================================================

class IdentidadeStore(StoreObservavel):
    """
    Store de autenticação do cliente.

    Persistência: blob `{identidade, is_authenticated, sessao}` sob
    `auth-storage`. Os dados de conta (endereços, pedidos) não são salvos.
    """

    CHAVE_ESTADO = 'auth-storage'

    def __init__(
        self,
        auth: IAuthColaborador,
        dados: IDadosColaborador,
        estado: Optional[IArmazenamentoEstado] = None,
        arquivos: Optional[IArmazenamentoObjetos] = None,
        sincronizacoes: Optional[RegistroSincronizacoes] = None,
        intervalo_reenvio: int = INTERVALO_REENVIO_CONFIRMACAO,
        relogio: Callable[[], float] = time.time,
    ):
        super().__init__(estado)
        self.auth = auth
        self.dados = dados
        self.arquivos = arquivos
        self.sincronizacoes = sincronizacoes or _sincronizacoes
        self.intervalo_reenvio = intervalo_reenvio
        self.relogio = relogio

        self._enderecos_uc = GerenciarEnderecosUseCase(dados)
        self._pedidos_uc = PedidosClienteUseCase(dados)

        self.identidade: Optional[Identidade] = None
        self.sessao: Optional[Sessao] = None
        self.carregando = False
        self.erro: Optional[MensagemErro] = None
        self.email_pendente_confirmacao: Optional[str] = None
        self.enderecos: List[Endereco] = []
        self.metodos_pagamento: List[MetodoPagamento] = []
        self.pedidos: List[Pedido] = []
        self.solicitacoes_reembolso: List[SolicitacaoReembolso] = []
        self.situacao = SITUACAO_NAO_INICIALIZADO

        self._inicializado = False
        self._sincronizacao_concluida = False
        self._ultimo_reenvio: Optional[float] = None
        self._cancelar_inscricao_auth: Optional[Callable[[], None]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.sessao is not None

    # --- Ciclo de vida ---

    def inicializar(self):
        """Lê a sessão atual e passa a acompanhar as mudanças. Só roda uma vez."""
        if self._inicializado:
            logger.debug("Autenticação já inicializada, ignorando.")
            return

        self._inicializado = True
        self._sincronizacao_concluida = False
        self.carregando = True
        self.erro = None
        try:
            sessao = self.auth.obter_sessao()
            if sessao:
                self._aplicar_sessao(sessao)
            else:
                self._limpar_estado()
            self._cancelar_inscricao_auth = self.auth.ao_mudar_sessao(self._ao_mudar_sessao)
        except ColaboradorExternoError as e:
            logger.error("Erro ao inicializar autenticação: %s", e.message)
            self.erro = MensagemErro('Erro', e.message or 'Falha ao inicializar a autenticação')
        finally:
            self.carregando = False
            self.situacao = SITUACAO_PRONTO
            self._notificar()

    def encerrar(self):
        if self._cancelar_inscricao_auth:
            self._cancelar_inscricao_auth()
            self._cancelar_inscricao_auth = None

    def _ao_mudar_sessao(self, evento: str, sessao: Optional[Sessao]):
        logger.debug("Evento de autenticação: %s", evento)
        if sessao:
            self._aplicar_sessao(sessao)
        else:
            self._limpar_estado()
        self._notificar()

    def _aplicar_sessao(self, sessao: Sessao):
        """Guarda a sessão, publica a identidade provisória e sincroniza com `users`."""
        usuario = sessao.usuario
        if self.identidade is None or self.identidade.id != usuario.id:
            self._sincronizacao_concluida = False

        self.sessao = sessao
        mesma_conta = (
            self.identidade is not None
            and self.identidade.id == usuario.id
            and self.identidade.email == usuario.email
            and self.identidade.role
        )
        if not mesma_conta:
            self.identidade = identidade_da_sessao(usuario)
        self._notificar()

        self.sincronizar_dados_usuario(usuario)

    def _limpar_estado(self):
        self.identidade = None
        self.sessao = None
        self.enderecos = []
        self.metodos_pagamento = []
        self.pedidos = []
        self.solicitacoes_reembolso = []
        self._sincronizacao_concluida = False

    # --- Sincronização com `users` ---

    def _ja_sincronizado(self, usuario_id: str) -> bool:
        return (
            self._sincronizacao_concluida
            and self.identidade is not None
            and self.identidade.id == usuario_id
        )

    def sincronizar_dados_usuario(self, usuario: UsuarioAuth):
        """
        Busca (ou cria) o registro do usuário em `users` e aplica a fase 2.

        Falhas do colaborador são registradas no log e a sincronização é dada
        como concluída mesmo assim: o cliente segue com a identidade provisória.
        """
        if self._ja_sincronizado(usuario.id):
            return

        self.situacao = SITUACAO_SINCRONIZANDO
        with self.sincronizacoes.em_andamento(usuario.id):
            if self._ja_sincronizado(usuario.id):
                return
            try:
                registro = self.dados.buscar_um('users', {'id': usuario.id})
                if registro is None:
                    logger.info("Criando registro de usuário para %s.", usuario.id)
                    criados = self.dados.inserir('users', registro_inicial(usuario))
                    registro = criados[0] if criados else None
                if registro is not None:
                    self._aplicar_registro(registro)
            except ColaboradorExternoError as e:
                logger.error("Erro ao sincronizar dados do usuário %s: %s", usuario.id, e.message)
            finally:
                self._sincronizacao_concluida = True
                self.situacao = SITUACAO_PRONTO

        self._notificar()

    def _aplicar_registro(self, registro: Dict[str, Any]):
        # Sem sessão não há de onde tirar id e e-mail confiáveis.
        if self.sessao is None:
            return
        self.identidade = mesclar_identidade(self.sessao.usuario, registro)

    def recarregar_dados_usuario(self):
        """Força uma nova leitura do registro em `users`."""
        if self.sessao is None:
            return
        self._sincronizacao_concluida = False
        self.sincronizar_dados_usuario(self.sessao.usuario)

    # --- Autenticação ---

    def _falhar(self, erro: MensagemErro) -> bool:
        self.erro = erro
        self.carregando = False
        self._notificar()
        return False

    def entrar(self, email: str, senha: str) -> bool:
        self.carregando = True
        self.erro = None
        try:
            sessao = self.auth.entrar_com_senha(email, senha)
        except ErroAutenticacao as e:
            logger.info("Login recusado para %s: %s", email, e.message)
            return self._falhar(TradutorErrosAuth.traduzir(e, email))

        # O aviso de mudança de sessão normalmente já aplicou a sessão.
        if self.sessao is None or self.sessao.access_token != sessao.access_token:
            self._aplicar_sessao(sessao)
        self.carregando = False
        self._notificar()
        return True

    def cadastrar(
        self,
        email: str,
        senha: str,
        nome_completo: Optional[str] = None,
        telefone: Optional[str] = None,
        cpf: Optional[str] = None,
    ) -> bool:
        """Cria a conta. Se o e-mail ainda precisar de confirmação, devolve False com o aviso em `erro`."""
        self.carregando = True
        self.erro = None
        metadados = {'full_name': nome_completo, 'phone': telefone, 'cpf': cpf}
        try:
            usuario = self.auth.cadastrar(email, senha, {k: v for k, v in metadados.items() if v})
        except ErroAutenticacao as e:
            return self._falhar(TradutorErrosAuth.traduzir(e, email))

        if not usuario.email_confirmado_em:
            self.email_pendente_confirmacao = email
            return self._falhar(TradutorErrosAuth.mensagem_confirmacao(email))

        self.carregando = False
        self._notificar()
        return True

    def _carregar_ultimo_reenvio(self) -> Optional[float]:
        if self._ultimo_reenvio is None and self.estado is not None:
            try:
                self._ultimo_reenvio = (self.estado.carregar(CHAVE_REENVIO) or {}).get('ultimo_envio')
            except (ValueError, TypeError):
                self._ultimo_reenvio = None
        return self._ultimo_reenvio

    def segundos_para_reenvio(self) -> int:
        if self._carregar_ultimo_reenvio() is None:
            return 0
        restante = self.intervalo_reenvio - (self.relogio() - self._ultimo_reenvio)
        return max(0, math.ceil(restante))

    def reenviar_confirmacao(self, email: Optional[str] = None) -> bool:
        email = email or self.email_pendente_confirmacao
        if not email:
            return self._falhar(MensagemErro('E-mail obrigatório', 'Informe o e-mail para reenviar a confirmação.'))

        restante = self.segundos_para_reenvio()
        if restante:
            return self._falhar(MensagemErro('Aguarde', f'Aguarde {restante} segundos para reenviar o e-mail.'))

        try:
            self.auth.reenviar_confirmacao(email)
        except ErroAutenticacao as e:
            return self._falhar(TradutorErrosAuth.traduzir(e, email))

        self._ultimo_reenvio = self.relogio()
        if self.estado is not None:
            self.estado.salvar(CHAVE_REENVIO, {'ultimo_envio': self._ultimo_reenvio})
        self.erro = TradutorErrosAuth.mensagem_confirmacao(email)
        self._notificar()
        return True

    def confirmar_email(self, token: str) -> bool:
        try:
            sessao = self.auth.verificar_token_confirmacao(token)
        except ErroAutenticacao as e:
            return self._falhar(TradutorErrosAuth.traduzir(e))

        self.email_pendente_confirmacao = None
        self._aplicar_sessao(sessao)
        return True

    def sair(self) -> bool:
        """
        Encerra a sessão. Só depois do aceite do serviço de autenticação o
        estado local é limpo, tudo de uma vez; se ele falhar, nada muda.
        """
        self.carregando = True
        try:
            self.auth.sair()
        except ColaboradorExternoError as e:
            logger.error("Erro ao sair: %s", e.message)
            return self._falhar(MensagemErro('Erro', 'Erro ao fazer logout'))

        self._limpar_estado()
        self.carregando = False
        self.erro = None
        self._notificar()
        return True

    def limpar_erro(self):
        self.erro = None
        self._notificar()

    # --- Perfil ---

    def atualizar_perfil(self, alteracoes: Dict[str, Any]) -> bool:
        """Grava os campos editáveis do perfil em `users` e nos metadados da sessão."""
        if self.identidade is None:
            return False

        campos = {nome: valor for nome, valor in alteracoes.items() if nome in CAMPOS_PERFIL}
        if not campos:
            return False

        self.carregando = True
        self.erro = None
        colunas = {CAMPOS_PERFIL[nome]: valor for nome, valor in campos.items()}
        colunas['updated_at'] = agora_iso()
        try:
            self.auth.atualizar_usuario({k: v for k, v in colunas.items() if k != 'updated_at'})
            linhas = self.dados.atualizar('users', {'id': self.identidade.id}, colunas)
        except ColaboradorExternoError as e:
            logger.error("Erro ao atualizar perfil de %s: %s", self.identidade.id, e.message)
            return self._falhar(MensagemErro('Erro', 'Erro ao atualizar perfil'))

        for nome, valor in campos.items():
            setattr(self.identidade, nome, valor)
        self.identidade.atualizado_em = colunas['updated_at']
        # A linha devolvida pelo colaborador é a versão definitiva
        if linhas:
            for campo, coluna in CAMPOS_DO_REGISTRO:
                if linhas[0].get(coluna) is not None:
                    setattr(self.identidade, campo, linhas[0][coluna])
        self.carregando = False
        self._notificar()
        return True

    def atualizar_avatar(self, conteudo: bytes, content_type: str) -> Optional[str]:
        """Envia a imagem para o bucket `avatars` e grava a URL pública no perfil."""
        if self.identidade is None or self.arquivos is None:
            return None

        extensao = content_type.rsplit('/', 1)[-1]
        caminho = f"{self.identidade.id}/avatar.{extensao}"
        try:
            url = self.arquivos.enviar('avatars', caminho, conteudo, content_type)
            self.dados.atualizar('users', {'id': self.identidade.id}, {'avatar_url': url, 'updated_at': agora_iso()})
        except ColaboradorExternoError as e:
            logger.error("Erro ao enviar avatar de %s: %s", self.identidade.id, e.message)
            self._falhar(MensagemErro('Erro', 'Erro ao enviar a foto de perfil'))
            return None

        self.identidade.avatar_url = url
        self._notificar()
        return url

    # --- Endereços, pedidos e reembolsos ---

    def _executar(self, operacao: Callable[[str], Any], mensagem_falha: str) -> bool:
        if self.identidade is None:
            return False
        self.carregando = True
        self.erro = None
        try:
            operacao(self.identidade.id)
        except ColaboradorExternoError as e:
            logger.error("%s: %s", mensagem_falha, e.message)
            return self._falhar(MensagemErro('Erro', mensagem_falha))
        except BaseErroCore as e:
            return self._falhar(MensagemErro('Erro', e.message))
        self.carregando = False
        self._notificar()
        return True

    def carregar_enderecos(self) -> List[Endereco]:
        def carregar(usuario_id):
            self.enderecos = self._enderecos_uc.listar(usuario_id)
        self._executar(carregar, 'Erro ao carregar endereços')
        return self.enderecos

    def adicionar_endereco(self, campos: Dict[str, Any]) -> bool:
        def adicionar(usuario_id):
            self._enderecos_uc.criar(usuario_id, campos)
            self.enderecos = self._enderecos_uc.listar(usuario_id)
        return self._executar(adicionar, 'Erro ao adicionar endereço')

    def atualizar_endereco(self, endereco_id: str, campos: Dict[str, Any]) -> bool:
        def atualizar(usuario_id):
            self._enderecos_uc.atualizar(usuario_id, endereco_id, campos)
            self.enderecos = self._enderecos_uc.listar(usuario_id)
        return self._executar(atualizar, 'Erro ao atualizar endereço')

    def remover_endereco(self, endereco_id: str) -> bool:
        def remover(usuario_id):
            self._enderecos_uc.remover(usuario_id, endereco_id)
            self.enderecos = [e for e in self.enderecos if e.id != endereco_id]
        return self._executar(remover, 'Erro ao remover endereço')

    def definir_endereco_padrao(self, endereco_id: str) -> bool:
        def definir(usuario_id):
            self._enderecos_uc.definir_padrao(usuario_id, endereco_id)
            self.enderecos = self._enderecos_uc.listar(usuario_id)
        return self._executar(definir, 'Erro ao definir endereço padrão')

    def carregar_pedidos(self) -> List[Pedido]:
        def carregar(usuario_id):
            self.pedidos = self._pedidos_uc.listar(usuario_id)
        self._executar(carregar, 'Erro ao carregar pedidos')
        return self.pedidos

    def cancelar_pedido(self, pedido_id: str, motivo: str) -> bool:
        def cancelar(usuario_id):
            cancelado = self._pedidos_uc.cancelar(usuario_id, pedido_id, motivo)
            for pedido in self.pedidos:
                if pedido.id == pedido_id:
                    pedido.status = cancelado.status
                    pedido.atualizado_em = cancelado.atualizado_em
        return self._executar(cancelar, 'Erro ao cancelar pedido')

    def carregar_solicitacoes_reembolso(self) -> List[SolicitacaoReembolso]:
        def carregar(usuario_id):
            self.solicitacoes_reembolso = self._pedidos_uc.listar_reembolsos(usuario_id)
        self._executar(carregar, 'Erro ao carregar solicitações de reembolso')
        return self.solicitacoes_reembolso

    def solicitar_reembolso(self, pedido_id: str, motivo: str, descricao: str) -> bool:
        def solicitar(usuario_id):
            if self.pedidos and not any(p.id == pedido_id for p in self.pedidos):
                raise PedidoNaoEncontradoError("Pedido não encontrado")
            solicitacao = self._pedidos_uc.solicitar_reembolso(usuario_id, pedido_id, motivo, descricao)
            self.solicitacoes_reembolso.insert(0, solicitacao)
        return self._executar(solicitar, 'Erro ao solicitar reembolso')

    # --- Autorização ---

    def is_admin(self) -> bool:
        return is_admin(self.identidade)

    def tem_permissao(self, recurso: str, acao: str) -> bool:
        return tem_permissao(self.identidade, recurso, acao)

    def pode_acessar(self, rota: str) -> bool:
        return pode_acessar(self.identidade, rota)

    # --- Persistência ---

    def para_dict(self) -> Dict[str, Any]:
        return {
            'identidade': IdentidadeMapper.to_dict(self.identidade) if self.identidade else None,
            'is_authenticated': self.is_authenticated,
            'sessao': SessaoMapper.to_dict(self.sessao) if self.sessao else None,
            'email_pendente_confirmacao': self.email_pendente_confirmacao,
        }

    def reidratar(self):
        """Recupera identidade e sessão salvas; com sessão, reinicializa a store."""
        blob = self._carregar_blob()
        if not blob:
            return

        try:
            self.identidade = IdentidadeMapper.to_entity(blob.get('identidade'))
            self.sessao = SessaoMapper.to_entity(blob.get('sessao'))
            self.email_pendente_confirmacao = blob.get('email_pendente_confirmacao')
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Sessão salva inválida, descartada: %s", e)
            self.identidade = None
            self.sessao = None
            return

        if self.sessao is not None:
            self.inicializar()
