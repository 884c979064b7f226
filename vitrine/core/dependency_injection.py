# vitrine/core/dependency_injection.py
"""
Módulo de Injeção de Dependência (DI).
Monta os colaboradores concretos da camada de Infraestrutura conforme a
configuração (BAAS_BACKEND) e entrega contextos de cliente e Use Cases prontos.
"""
from typing import Tuple

from django.conf import settings

from vitrine.infrastructure.baas import SupabaseAuthGateway, SupabaseDadosGateway, SupabaseStorageGateway
from vitrine.infrastructure.gateways import ViaCepGateway, PagamentoGatewayMock
from vitrine.infrastructure.memoria import BancoMemoria, AuthMemoria, DadosMemoria, StorageMemoria
from .contexto import ContextoLoja
from .ports import IArmazenamentoEstado, IAuthColaborador, IDadosColaborador, IArmazenamentoObjetos
from .use_cases import (
    CatalogoUseCase,
    CriarPedidoUseCase,
    GerenciarPedidosAdminUseCase,
    BuscarCepUseCase,
)

BACKEND_HTTP = 'http'
BACKEND_MEMORIA = 'memoria'

# Colaboradores sem estado por cliente
banco_memoria = BancoMemoria()
pagamento_gateway = PagamentoGatewayMock()
cep_gateway = ViaCepGateway()


# ====================================================================
# Colaboradores do BaaS (um conjunto por cliente)
# ====================================================================

def criar_colaboradores(
    estado: IArmazenamentoEstado,
) -> Tuple[IAuthColaborador, IDadosColaborador, IArmazenamentoObjetos]:
    if settings.BAAS_BACKEND == BACKEND_MEMORIA:
        auth = AuthMemoria(banco_memoria, estado, exigir_confirmacao=settings.BAAS_EXIGIR_CONFIRMACAO)
        return auth, DadosMemoria(banco_memoria), StorageMemoria(banco_memoria)

    conexao = {
        'url': settings.BAAS_URL,
        'chave_anonima': settings.BAAS_ANON_KEY,
        'timeout': settings.BAAS_TIMEOUT,
    }
    auth = SupabaseAuthGateway(estado, **conexao)
    return auth, SupabaseDadosGateway(auth, **conexao), SupabaseStorageGateway(auth, **conexao)


def criar_contexto_loja(estado: IArmazenamentoEstado) -> ContextoLoja:
    auth, dados, arquivos = criar_colaboradores(estado)
    return ContextoLoja(
        auth,
        dados,
        estado,
        arquivos=arquivos,
        taxa_imposto=settings.TAXA_IMPOSTO,
        intervalo_reenvio=settings.REENVIO_CONFIRMACAO_INTERVALO,
    )


# ====================================================================
# Use Cases
# ====================================================================

def get_catalogo_use_case(contexto: ContextoLoja) -> CatalogoUseCase:
    return CatalogoUseCase(contexto.dados)

def get_criar_pedido_use_case(contexto: ContextoLoja) -> CriarPedidoUseCase:
    return CriarPedidoUseCase(contexto.dados, pagamento_gateway)

def get_pedidos_admin_use_case(contexto: ContextoLoja) -> GerenciarPedidosAdminUseCase:
    return GerenciarPedidosAdminUseCase(contexto.dados, contexto.identidade.identidade)

def get_buscar_cep_use_case() -> BuscarCepUseCase:
    return BuscarCepUseCase(cep_gateway)
