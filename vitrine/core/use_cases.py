# vitrine/core/use_cases.py
"""
Implementação dos Casos de Uso (Lógica de Negócio) da loja.
Esta camada depende apenas das Entidades e Portas (Interfaces) do Core,
garantindo o isolamento da lógica de negócio.
"""
import logging
import random
import re
import string
import time
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Dict, Any, Tuple

from vitrine.core.entities import (
    Produto, Categoria, Endereco, Pedido, ItemPedido, Identidade,
    SolicitacaoReembolso, ResultadoPedido, MetricasPedidos, EnderecoCep,
)
from vitrine.core.exceptions import (
    ProdutoNaoEncontradoError,
    ItemNaoEncontradoError,
    PedidoNaoEncontradoError,
    CarrinhoVazioError,
    DadosInvalidosError,
    ColaboradorExternoError,
    PermissaoNegadaError,
    StatusInvalidoError,
    PedidoNaoCancelavelError,
    ReembolsoNaoPermitidoError,
    CepInvalidoError,
)
from vitrine.core.mappers import (
    ProdutoMapper, CategoriaMapper, EnderecoMapper, PedidoMapper,
    ItemPedidoMapper, SolicitacaoReembolsoMapper,
)
from vitrine.core.permissoes import tem_permissao
from vitrine.core.ports import IDadosColaborador, IGatewayPagamento, ICepGateway

logger = logging.getLogger(__name__)


def agora_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ====================================================================
# 1. CASOS DE USO DO CATÁLOGO
# ====================================================================

class CatalogoUseCase:
    """Consulta pública de produtos e categorias."""
    def __init__(self, dados: IDadosColaborador):
        self.dados = dados

    def listar_produtos(
        self,
        categoria_id: Optional[str] = None,
        busca: Optional[str] = None,
        destaque: Optional[bool] = None,
        preco_min: Optional[Decimal] = None,
        preco_max: Optional[Decimal] = None,
        status: str = 'published',
        limite: Optional[int] = None,
        deslocamento: Optional[int] = None,
    ) -> List[Produto]:
        """Lista produtos (só publicados por padrão), mais recentes primeiro."""
        filtros: Dict[str, Any] = {'status': status}
        if categoria_id:
            filtros['category_id'] = categoria_id
        if destaque is not None:
            filtros['featured'] = destaque
        if busca:
            filtros['name__ilike'] = f'%{busca}%'
        if preco_min:
            filtros['price__gte'] = str(preco_min)
        if preco_max:
            filtros['price__lte'] = str(preco_max)

        linhas = self.dados.selecionar(
            'products', filtros, ordem=['-created_at'], limite=limite, deslocamento=deslocamento
        )
        return [ProdutoMapper.to_entity(linha) for linha in linhas]

    def buscar_produto(self, produto_id: str, incluir_nao_publicados: bool = False) -> Produto:
        filtros: Dict[str, Any] = {'id': produto_id}
        if not incluir_nao_publicados:
            filtros['status'] = 'published'

        linha = self.dados.buscar_um('products', filtros)
        if not linha:
            raise ProdutoNaoEncontradoError(f"Produto ID {produto_id} não encontrado.")
        return ProdutoMapper.to_entity(linha)

    def listar_categorias(self, incluir_subcategorias: bool = True) -> List[Categoria]:
        """Categorias ativas; com `incluir_subcategorias`, devolve só as raízes com os filhos aninhados."""
        linhas = self.dados.selecionar('categories', {'is_active': True}, ordem=['sort_order', 'name'])
        categorias = [CategoriaMapper.to_entity(linha) for linha in linhas]
        if not incluir_subcategorias:
            return categorias

        por_id = {categoria.id: categoria for categoria in categorias}
        raizes = []
        for categoria in categorias:
            pai = por_id.get(categoria.categoria_pai_id) if categoria.categoria_pai_id else None
            if pai is not None:
                pai.subcategorias.append(categoria)
            else:
                raizes.append(categoria)
        return raizes


# ====================================================================
# 2. CASOS DE USO DE ENDEREÇOS
# ====================================================================

class GerenciarEnderecosUseCase:
    """Endereços do cliente. No máximo um endereço padrão por usuário."""
    def __init__(self, dados: IDadosColaborador):
        self.dados = dados

    def listar(self, usuario_id: str) -> List[Endereco]:
        linhas = self.dados.selecionar('addresses', {'user_id': usuario_id}, ordem=['-created_at'])
        return [EnderecoMapper.to_entity(linha) for linha in linhas]

    def buscar_padrao(self, usuario_id: str, tipo: Optional[str] = None) -> Optional[Endereco]:
        filtros: Dict[str, Any] = {'user_id': usuario_id, 'is_default': True}
        if tipo:
            filtros['type__in'] = [tipo, 'both']
        return EnderecoMapper.to_entity(self.dados.buscar_um('addresses', filtros))

    def _desmarcar_padrao(self, usuario_id: str):
        self.dados.atualizar('addresses', {'user_id': usuario_id}, {'is_default': False})

    def criar(self, usuario_id: str, campos: Dict[str, Any]) -> Endereco:
        try:
            endereco = Endereco(usuario_id=usuario_id, **campos)
        except TypeError as e:
            raise DadosInvalidosError(f"Endereço incompleto: {e}")

        if endereco.padrao:
            self._desmarcar_padrao(usuario_id)

        linha = EnderecoMapper.to_linha(endereco)
        linha['created_at'] = linha['updated_at'] = agora_iso()
        criados = self.dados.inserir('addresses', linha)
        return EnderecoMapper.to_entity(criados[0])

    def atualizar(self, usuario_id: str, endereco_id: str, campos: Dict[str, Any]) -> Endereco:
        desconhecidos = set(campos) - set(EnderecoMapper.CAMPOS)
        if desconhecidos:
            raise DadosInvalidosError(f"Campos de endereço desconhecidos: {', '.join(sorted(desconhecidos))}")

        if campos.get('padrao'):
            self._desmarcar_padrao(usuario_id)

        alteracoes = {EnderecoMapper.CAMPOS[nome]: valor for nome, valor in campos.items()}
        alteracoes['updated_at'] = agora_iso()
        linhas = self.dados.atualizar('addresses', {'id': endereco_id, 'user_id': usuario_id}, alteracoes)
        if not linhas:
            raise ItemNaoEncontradoError("Endereço não encontrado.")
        return EnderecoMapper.to_entity(linhas[0])

    def remover(self, usuario_id: str, endereco_id: str):
        removidos = self.dados.remover('addresses', {'id': endereco_id, 'user_id': usuario_id})
        if not removidos:
            raise ItemNaoEncontradoError("Endereço não encontrado.")

    def definir_padrao(self, usuario_id: str, endereco_id: str) -> Endereco:
        if not self.dados.buscar_um('addresses', {'id': endereco_id, 'user_id': usuario_id}):
            raise ItemNaoEncontradoError("Endereço não encontrado.")
        self._desmarcar_padrao(usuario_id)
        return self.atualizar(usuario_id, endereco_id, {'padrao': True})


# ====================================================================
# 3. CASOS DE USO DE PEDIDO E CHECKOUT
# ====================================================================

METODOS_PAGAMENTO = ('pix', 'credit', 'boleto', 'delivery')

# Cartão só é registrado aprovado; os demais aguardam a confirmação.
STATUS_PAGAMENTO_INICIAL = {
    'credit': 'completed',
    'pix': 'pending',
    'boleto': 'pending',
    'delivery': 'pending',
}

STATUS_PEDIDO = ('pending', 'confirmed', 'processing', 'shipped', 'delivered', 'cancelled', 'refunded')
STATUS_CANCELAVEIS = ('pending', 'confirmed', 'processing')


def centavos(valor: Decimal) -> str:
    """Valor monetário gravado no pedido: duas casas, meio centavo para cima."""
    return str(valor.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def gerar_numero_pedido() -> str:
    sufixo = ''.join(random.choices(string.ascii_uppercase + string.digits, k=9))
    return f"ORD-{int(time.time() * 1000)}-{sufixo}"


class CriarPedidoUseCase:
    """
    Registra o pedido a partir do carrinho: pedido em `orders`, itens em
    `order_items`. Se os itens falharem, o pedido criado é removido.
    """
    def __init__(self, dados: IDadosColaborador, pagamento_gateway: IGatewayPagamento):
        self.dados = dados
        self.pagamento_gateway = pagamento_gateway

    def executar(
        self,
        carrinho,
        identidade: Identidade,
        metodo_pagamento: str,
        endereco_entrega: Dict[str, Any],
        endereco_cobranca: Optional[Dict[str, Any]] = None,
        dados_pagamento: Optional[Dict[str, Any]] = None,
        observacoes: Optional[str] = None,
    ) -> ResultadoPedido:
        if not carrinho.itens:
            raise CarrinhoVazioError("Não é possível finalizar o checkout com o carrinho vazio.")
        if metodo_pagamento not in METODOS_PAGAMENTO:
            raise DadosInvalidosError(f"Forma de pagamento '{metodo_pagamento}' inválida.")

        resumo = carrinho.calcular_resumo()
        pagamento = self.pagamento_gateway.gerar_pagamento(metodo_pagamento, resumo.total, dados_pagamento or {})

        itens = [
            ItemPedido(
                produto_id=item.produto.id,
                nome_produto=item.produto.nome,
                sku=item.produto.sku,
                imagem_url=item.produto.imagem_url,
                preco_unitario=item.produto.preco,
                quantidade=item.quantidade,
            )
            for item in carrinho.itens
        ]

        numero_pedido = gerar_numero_pedido()
        linha_pedido = {
            'user_id': identidade.id,
            'user_name': identidade.nome_completo,
            'user_email': identidade.email,
            'user_phone': identidade.telefone,
            'order_number': numero_pedido,
            'subtotal': centavos(resumo.subtotal),
            'tax_amount': centavos(resumo.imposto),
            'shipping_amount': centavos(resumo.frete.custo),
            'discount_amount': '0.00',
            'total_amount': centavos(resumo.total),
            'payment_method': metodo_pagamento,
            'payment_status': STATUS_PAGAMENTO_INICIAL[metodo_pagamento],
            'payment_data': pagamento.dados,
            'billing_address': endereco_cobranca or endereco_entrega,
            'shipping_address': endereco_entrega,
            'shipping_method': resumo.frete.metodo,
            'notes': observacoes,
            'status': 'pending',
            'currency': 'BRL',
            'created_at': agora_iso(),
        }

        try:
            pedido = self.dados.inserir('orders', linha_pedido)[0]
        except ColaboradorExternoError as e:
            logger.error("Erro ao criar pedido %s: %s", numero_pedido, e.message)
            return ResultadoPedido(sucesso=False, erro=f"Erro ao criar pedido: {e.message}")

        try:
            self.dados.inserir('order_items', [ItemPedidoMapper.to_linha(item, pedido['id']) for item in itens])
        except ColaboradorExternoError as e:
            logger.error("Erro ao criar itens do pedido %s, desfazendo: %s", numero_pedido, e.message)
            try:
                self.dados.remover('orders', {'id': pedido['id']})
            except ColaboradorExternoError as erro_remocao:
                logger.error("Pedido %s ficou sem itens: %s", pedido['id'], erro_remocao.message)
            return ResultadoPedido(sucesso=False, erro=f"Erro ao criar itens do pedido: {e.message}")

        logger.info("Pedido %s registrado (%s, %s).", numero_pedido, metodo_pagamento, resumo.total)
        carrinho.limpar_carrinho()
        return ResultadoPedido(sucesso=True, pedido_id=str(pedido['id']), numero_pedido=numero_pedido)


class PedidosClienteUseCase:
    """Pedidos e reembolsos do próprio cliente."""
    def __init__(self, dados: IDadosColaborador):
        self.dados = dados

    def _com_itens(self, linhas: List[Dict[str, Any]]) -> List[Pedido]:
        if not linhas:
            return []
        ids = [linha['id'] for linha in linhas]
        itens_por_pedido: Dict[Any, List[Dict[str, Any]]] = {}
        for item in self.dados.selecionar('order_items', {'order_id__in': ids}):
            itens_por_pedido.setdefault(item['order_id'], []).append(item)
        return [PedidoMapper.to_entity(linha, itens_por_pedido.get(linha['id'], [])) for linha in linhas]

    def listar(self, usuario_id: str) -> List[Pedido]:
        linhas = self.dados.selecionar('orders', {'user_id': usuario_id}, ordem=['-created_at'])
        return self._com_itens(linhas)

    def buscar(self, usuario_id: str, pedido_id: str) -> Pedido:
        linha = self.dados.buscar_um('orders', {'id': pedido_id, 'user_id': usuario_id})
        if not linha:
            raise PedidoNaoEncontradoError("Pedido não encontrado")
        return self._com_itens([linha])[0]

    def cancelar(self, usuario_id: str, pedido_id: str, motivo: str) -> Pedido:
        pedido = self.buscar(usuario_id, pedido_id)
        if pedido.status not in STATUS_CANCELAVEIS:
            raise PedidoNaoCancelavelError(pedido.status)

        agora = agora_iso()
        linhas = self.dados.atualizar(
            'orders',
            {'id': pedido_id, 'user_id': usuario_id},
            {'status': 'cancelled', 'cancellation_reason': motivo, 'cancelled_at': agora, 'updated_at': agora},
        )
        return PedidoMapper.to_entity(linhas[0], []) if linhas else pedido

    def solicitar_reembolso(self, usuario_id: str, pedido_id: str, motivo: str, descricao: str) -> SolicitacaoReembolso:
        pedido = self.buscar(usuario_id, pedido_id)
        if pedido.status != 'delivered':
            raise ReembolsoNaoPermitidoError(pedido.status)

        solicitacao = SolicitacaoReembolso(
            pedido_id=pedido.id,
            usuario_id=usuario_id,
            motivo=motivo,
            descricao=descricao,
            valor=pedido.total,
            solicitado_em=agora_iso(),
        )
        criadas = self.dados.inserir('refund_requests', SolicitacaoReembolsoMapper.to_linha(solicitacao))
        return SolicitacaoReembolsoMapper.to_entity(criadas[0])

    def listar_reembolsos(self, usuario_id: str) -> List[SolicitacaoReembolso]:
        linhas = self.dados.selecionar('refund_requests', {'user_id': usuario_id}, ordem=['-requested_at'])
        return [SolicitacaoReembolsoMapper.to_entity(linha) for linha in linhas]


# ====================================================================
# 4. CASOS DE USO ADMINISTRATIVOS
# ====================================================================

class GerenciarPedidosAdminUseCase:
    """Listagem, status e métricas de pedidos. Exige permissão em `orders`."""

    def __init__(self, dados: IDadosColaborador, identidade: Optional[Identidade]):
        self.dados = dados
        self.identidade = identidade

    def _exigir(self, acao: str):
        if not tem_permissao(self.identidade, 'orders', acao):
            raise PermissaoNegadaError('orders', acao)

    def listar(
        self,
        status: Optional[str] = None,
        status_pagamento: Optional[str] = None,
        limite: int = 20,
        deslocamento: int = 0,
    ) -> Tuple[List[Pedido], int]:
        """Devolve a página de pedidos e o total de pedidos que atendem aos filtros."""
        self._exigir('read')
        filtros: Dict[str, Any] = {}
        if status and status != 'all':
            filtros['status'] = status
        if status_pagamento:
            filtros['payment_status'] = status_pagamento

        linhas = self.dados.selecionar(
            'orders', filtros, ordem=['-created_at'], limite=limite, deslocamento=deslocamento
        )
        total = self.dados.contar('orders', filtros)
        return [PedidoMapper.to_entity(linha, []) for linha in linhas], total

    def detalhar(self, pedido_id: str) -> Pedido:
        self._exigir('read')
        linha = self.dados.buscar_um('orders', {'id': pedido_id})
        if not linha:
            raise PedidoNaoEncontradoError(f"Pedido ID {pedido_id} não encontrado.")
        itens = self.dados.selecionar('order_items', {'order_id': pedido_id})
        return PedidoMapper.to_entity(linha, itens)

    def atualizar_status(self, pedido_id: str, novo_status: str) -> Pedido:
        self._exigir('update')
        if novo_status not in STATUS_PEDIDO:
            raise StatusInvalidoError(f"O status '{novo_status}' não é um status de pedido válido.")

        alteracoes = {'status': novo_status, 'updated_at': agora_iso()}
        if novo_status == 'shipped':
            alteracoes['shipped_at'] = alteracoes['updated_at']
        elif novo_status == 'delivered':
            alteracoes['delivered_at'] = alteracoes['updated_at']

        linhas = self.dados.atualizar('orders', {'id': pedido_id}, alteracoes)
        if not linhas:
            raise PedidoNaoEncontradoError(f"Pedido ID {pedido_id} não encontrado.")
        logger.info("Pedido %s alterado para %s por %s.", pedido_id, novo_status, self.identidade.email)
        return PedidoMapper.to_entity(linhas[0], [])

    def adicionar_observacao(self, pedido_id: str, nota: str) -> Pedido:
        self._exigir('update')
        linhas = self.dados.atualizar('orders', {'id': pedido_id}, {'notes': nota, 'updated_at': agora_iso()})
        if not linhas:
            raise PedidoNaoEncontradoError(f"Pedido ID {pedido_id} não encontrado.")
        return PedidoMapper.to_entity(linhas[0], [])

    def metricas(self, inicio: Optional[str] = None, fim: Optional[str] = None) -> MetricasPedidos:
        self._exigir('read')
        filtros: Dict[str, Any] = {}
        if inicio:
            filtros['created_at__gte'] = inicio
        if fim:
            filtros['created_at__lte'] = fim

        pedidos = [PedidoMapper.to_entity(linha, []) for linha in self.dados.selecionar('orders', filtros)]
        receita = sum((pedido.total for pedido in pedidos), Decimal('0'))
        return MetricasPedidos(
            total_pedidos=len(pedidos),
            receita_total=receita,
            ticket_medio=receita / len(pedidos) if pedidos else Decimal('0'),
            pedidos_por_status=dict(Counter(pedido.status for pedido in pedidos)),
        )


# ====================================================================
# 5. CEP
# ====================================================================

class BuscarCepUseCase:
    """Valida o CEP e consulta o endereço no gateway."""
    def __init__(self, cep_gateway: ICepGateway):
        self.cep_gateway = cep_gateway

    @staticmethod
    def limpar_cep(cep: str) -> str:
        return re.sub(r'\D', '', cep or '')

    @classmethod
    def validar_cep(cls, cep: str) -> bool:
        return re.fullmatch(r'\d{8}', cls.limpar_cep(cep)) is not None

    @classmethod
    def formatar_cep(cls, cep: str) -> str:
        limpo = cls.limpar_cep(cep)
        if len(limpo) <= 5:
            return limpo
        return f"{limpo[:5]}-{limpo[5:8]}"

    def executar(self, cep: str) -> EnderecoCep:
        if not self.validar_cep(cep):
            raise CepInvalidoError()
        return self.cep_gateway.buscar(self.limpar_cep(cep))
