# vitrine/core/contexto.py
"""
Contexto de um cliente da loja: um carrinho e uma store de identidade que
compartilham o mesmo armazenamento de estado.
"""
import logging
from decimal import Decimal
from typing import Optional

from vitrine.core.carrinho import CarrinhoStore, TAXA_IMPOSTO
from vitrine.core.identidade import IdentidadeStore, INTERVALO_REENVIO_CONFIRMACAO
from vitrine.core.ports import IAuthColaborador, IDadosColaborador, IArmazenamentoEstado, IArmazenamentoObjetos

logger = logging.getLogger(__name__)


class ContextoLoja:
    """
    Dono das duas stores de um cliente.

    `iniciar()` recupera o estado salvo (e, havendo sessão, reinicializa a
    autenticação); `encerrar()` solta as inscrições feitas no colaborador
    de autenticação. Também funciona como gerenciador de contexto.
    """

    def __init__(
        self,
        auth: IAuthColaborador,
        dados: IDadosColaborador,
        estado: Optional[IArmazenamentoEstado] = None,
        arquivos: Optional[IArmazenamentoObjetos] = None,
        taxa_imposto: Decimal = TAXA_IMPOSTO,
        intervalo_reenvio: int = INTERVALO_REENVIO_CONFIRMACAO,
    ):
        self.auth = auth
        self.dados = dados
        self.estado = estado
        self.arquivos = arquivos
        self.carrinho = CarrinhoStore(estado, taxa_imposto=taxa_imposto)
        self.identidade = IdentidadeStore(
            auth, dados, estado, arquivos=arquivos, intervalo_reenvio=intervalo_reenvio,
        )
        self.iniciado = False

    def iniciar(self) -> 'ContextoLoja':
        if self.iniciado:
            return self
        self.iniciado = True
        self.carrinho.reidratar()
        self.identidade.reidratar()
        self.identidade.inicializar()
        return self

    def encerrar(self):
        self.identidade.encerrar()
        self.iniciado = False

    def __enter__(self) -> 'ContextoLoja':
        return self.iniciar()

    def __exit__(self, *exc_info):
        self.encerrar()
