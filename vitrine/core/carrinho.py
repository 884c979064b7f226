# vitrine/core/carrinho.py
"""
Carrinho de compras e cálculo do resumo do pedido.

O carrinho é dono exclusivo das suas linhas: cada mutação recalcula o resumo,
avisa os observadores e salva o blob `cart-storage`.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Dict, Any, Iterable

from vitrine.core.entities import Produto, ItemCarrinho, OpcaoFrete, ResumoPedido
from vitrine.core.exceptions import DadosInvalidosError
from vitrine.core.mappers import ItemCarrinhoMapper, OpcaoFreteMapper
from vitrine.core.observavel import StoreObservavel
from vitrine.core.ports import IArmazenamentoEstado

logger = logging.getLogger(__name__)

# Alíquota única, sem regra por estado. Pode ser trocada via configuração (TAXA_IMPOSTO).
TAXA_IMPOSTO = Decimal('0.08')

FRETE_PADRAO = 'standard'
FRETE_EXPRESSO = 'express'
FRETE_MESMO_DIA = 'same-day'

OPCOES_FRETE = (
    OpcaoFrete(
        metodo=FRETE_PADRAO,
        custo=Decimal('9.99'),
        dias_estimados=5,
        descricao='Entrega padrão (5-7 dias úteis)',
    ),
    OpcaoFrete(
        metodo=FRETE_EXPRESSO,
        custo=Decimal('19.99'),
        dias_estimados=2,
        descricao='Entrega expressa (2-3 dias úteis)',
    ),
    OpcaoFrete(
        metodo=FRETE_MESMO_DIA,
        custo=Decimal('29.99'),
        dias_estimados=0,
        descricao='Entrega no mesmo dia',
    ),
)


def obter_opcao_frete(metodo: str) -> OpcaoFrete:
    """Busca a opção de frete do catálogo pelo método."""
    for opcao in OPCOES_FRETE:
        if opcao.metodo == metodo:
            return opcao
    raise DadosInvalidosError(f"Método de frete '{metodo}' não existe.")


def calcular_resumo_pedido(
    itens: Iterable[ItemCarrinho],
    frete: OpcaoFrete,
    taxa_imposto: Decimal = TAXA_IMPOSTO,
) -> ResumoPedido:
    """
    Calcula subtotal, imposto, total e quantidade de itens.

    Função pura: não valida quantidades (as mutações do carrinho já garantem
    >= 1) e aceita lista vazia. Nenhum arredondamento é feito aqui; o valor
    com duas casas é responsabilidade de quem exibe.
    """
    itens = list(itens)
    subtotal = sum((item.produto.preco * item.quantidade for item in itens), Decimal('0'))
    imposto = subtotal * taxa_imposto
    return ResumoPedido(
        subtotal=subtotal,
        frete=frete,
        imposto=imposto,
        total=subtotal + imposto + frete.custo,
        quantidade_itens=sum(item.quantidade for item in itens),
    )


class CarrinhoStore(StoreObservavel):
    """
    Store do carrinho de um cliente.

    Persistência: blob `{itens, total, quantidade_itens, frete}` sob
    `cart-storage`, salvo a cada mudança e lido em `reidratar()`.
    """

    CHAVE_ESTADO = 'cart-storage'

    def __init__(self, estado: Optional[IArmazenamentoEstado] = None, taxa_imposto: Decimal = TAXA_IMPOSTO):
        super().__init__(estado)
        self.taxa_imposto = taxa_imposto
        self.itens: List[ItemCarrinho] = []
        self.frete: OpcaoFrete = OPCOES_FRETE[0]
        self.resumo: ResumoPedido = calcular_resumo_pedido([], self.frete, taxa_imposto)

    # --- Valores derivados ---

    @property
    def total(self) -> Decimal:
        """Soma preço x quantidade (sem frete e imposto), como no contador do cabeçalho."""
        return self.resumo.subtotal

    @property
    def quantidade_itens(self) -> int:
        return self.resumo.quantidade_itens

    def calcular_resumo(self) -> ResumoPedido:
        return calcular_resumo_pedido(self.itens, self.frete, self.taxa_imposto)

    def _alterado(self):
        self.resumo = self.calcular_resumo()
        self._notificar()

    def _buscar_item(self, produto_id: str) -> Optional[ItemCarrinho]:
        return next((item for item in self.itens if item.produto.id == produto_id), None)

    # --- Mutações ---

    def adicionar_item(self, produto: Produto):
        """Adiciona uma unidade do produto: incrementa a linha existente ou cria uma nova."""
        item_existente = self._buscar_item(produto.id)
        if item_existente:
            item_existente.quantidade += 1
        else:
            self.itens.append(ItemCarrinho(produto=produto, quantidade=1))
        self._alterado()

    def atualizar_quantidade(self, produto_id: str, quantidade: int):
        """Define a quantidade exata da linha. Zero ou negativo remove o item."""
        if quantidade <= 0:
            self.remover_item(produto_id)
            return

        item = self._buscar_item(produto_id)
        if item is None:
            return
        item.quantidade = quantidade
        self._alterado()

    def remover_item(self, produto_id: str):
        """Remove a linha do produto. Não faz nada se ele não estiver no carrinho."""
        restantes = [item for item in self.itens if item.produto.id != produto_id]
        if len(restantes) == len(self.itens):
            return
        self.itens = restantes
        self._alterado()

    def limpar_carrinho(self):
        self.itens = []
        self._alterado()

    def obter_quantidade_item(self, produto_id: str) -> int:
        item = self._buscar_item(produto_id)
        return item.quantidade if item else 0

    def definir_frete(self, metodo: str) -> OpcaoFrete:
        """Seleciona uma opção do catálogo de frete pelo método."""
        self.frete = obter_opcao_frete(metodo)
        self._alterado()
        return self.frete

    # --- Persistência ---

    def para_dict(self) -> Dict[str, Any]:
        return {
            'itens': [ItemCarrinhoMapper.to_dict(item) for item in self.itens],
            'total': str(self.total),
            'quantidade_itens': self.quantidade_itens,
            'frete': OpcaoFreteMapper.to_dict(self.frete),
        }

    def reidratar(self):
        """Carrega o blob salvo. Total e quantidade são sempre recalculados."""
        blob = self._carregar_blob()
        if not blob:
            return

        try:
            itens = [ItemCarrinhoMapper.to_entity(dados) for dados in blob.get('itens', [])]
            frete = self.frete
            if blob.get('frete'):
                frete = obter_opcao_frete(blob['frete']['method'])
        except (KeyError, TypeError, ValueError, InvalidOperation, DadosInvalidosError) as e:
            logger.warning("Carrinho salvo inválido, descartado: %s", e)
            return

        self.itens = [item for item in itens if item.quantidade >= 1]
        self.frete = frete
        self.resumo = self.calcular_resumo()
