from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Dict, Any

# ====================================================================
# ENTIDADES CORE
# Representam os objetos de negócio puros da loja.
# ====================================================================

@dataclass
class Produto:
    """Referência de produto usada pelo carrinho e pelo catálogo."""
    id: str
    nome: str
    preco: Decimal
    slug: str = ''
    descricao: str = ''
    sku: Optional[str] = None
    imagem_url: Optional[str] = None
    categoria_id: Optional[str] = None
    estoque: int = 0
    em_estoque: bool = True
    status: str = 'published'
    destaque: bool = False
    preco_promocional: Optional[Decimal] = None


@dataclass
class ItemCarrinho:
    """Linha do carrinho: um produto e sua quantidade (sempre >= 1)."""
    produto: Produto
    quantidade: int

    @property
    def subtotal(self) -> Decimal:
        return self.produto.preco * self.quantidade


@dataclass(frozen=True)
class OpcaoFrete:
    """Opção de frete do catálogo fixo (standard, express, same-day)."""
    metodo: str
    custo: Decimal
    dias_estimados: int
    descricao: str


@dataclass(frozen=True)
class ResumoPedido:
    """Resumo derivado do carrinho. Não é persistido."""
    subtotal: Decimal
    frete: OpcaoFrete
    imposto: Decimal
    total: Decimal
    quantidade_itens: int


# ====================================================================
# AUTENTICAÇÃO E IDENTIDADE
# ====================================================================

@dataclass
class UsuarioAuth:
    """Usuário como devolvido pelo serviço de autenticação externo."""
    id: str
    email: str = ''
    telefone: Optional[str] = None
    metadados: Dict[str, Any] = field(default_factory=dict)
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None
    email_confirmado_em: Optional[str] = None


@dataclass
class Sessao:
    """Sessão opaca do serviço de autenticação. A loja só guarda a referência."""
    access_token: str
    usuario: UsuarioAuth
    refresh_token: Optional[str] = None
    expira_em: Optional[int] = None


@dataclass
class Identidade:
    """
    Perfil local do usuário autenticado, combinando os dados da sessão
    com o registro persistido na coleção `users`.
    """
    id: str
    email: str
    nome_completo: str = ''
    telefone: Optional[str] = None
    data_nascimento: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[str] = None
    permissoes: Optional[Dict[str, Dict[str, bool]]] = None
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None

    @property
    def primeiro_nome(self) -> str:
        partes = (self.nome_completo or '').split(' ')
        return partes[0] if partes else ''

    @property
    def sobrenome(self) -> str:
        return ' '.join((self.nome_completo or '').split(' ')[1:])


@dataclass
class MensagemErro:
    """Par título/mensagem exibido ao usuário."""
    titulo: str
    mensagem: str
    tipo: Optional[str] = None
    email: Optional[str] = None


# ====================================================================
# PERFIL: ENDEREÇOS, PAGAMENTOS, PEDIDOS E REEMBOLSOS
# ====================================================================

@dataclass
class Endereco:
    """Endereço de entrega/cobrança do cliente."""
    usuario_id: str
    rua: str
    numero: str
    bairro: str
    cidade: str
    estado: str
    cep: str
    tipo: str = 'shipping'
    complemento: Optional[str] = None
    pais: str = 'BR'
    padrao: bool = False
    id: Optional[str] = None
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None


@dataclass
class MetodoPagamento:
    """Método de pagamento salvo. Só os quatro últimos dígitos do cartão."""
    id: str
    usuario_id: str
    tipo: str
    final_cartao: Optional[str] = None
    titular: Optional[str] = None
    bandeira: Optional[str] = None
    padrao: bool = False


@dataclass
class ItemPedido:
    """Snapshot de um item no momento da compra (imutável)."""
    produto_id: str
    nome_produto: str
    preco_unitario: Decimal
    quantidade: int
    sku: Optional[str] = None
    imagem_url: Optional[str] = None
    pedido_id: Optional[str] = None
    total: Decimal = field(init=False)

    def __post_init__(self):
        """Calcula o total da linha após a inicialização."""
        self.total = self.preco_unitario * self.quantidade


@dataclass
class Pedido:
    """Entidade do Pedido de Venda."""
    id: str
    usuario_id: str
    numero_pedido: str
    status: str
    subtotal: Decimal
    imposto: Decimal
    frete: Decimal
    total: Decimal
    desconto: Decimal = Decimal('0')
    metodo_pagamento: Optional[str] = None
    status_pagamento: str = 'pending'
    metodo_frete: Optional[str] = None
    endereco_entrega: Dict[str, Any] = field(default_factory=dict)
    endereco_cobranca: Dict[str, Any] = field(default_factory=dict)
    codigo_rastreio: Optional[str] = None
    observacoes: Optional[str] = None
    itens: List[ItemPedido] = field(default_factory=list)
    criado_em: Optional[str] = None
    atualizado_em: Optional[str] = None


@dataclass
class SolicitacaoReembolso:
    """Pedido de reembolso aberto pelo cliente."""
    pedido_id: str
    usuario_id: str
    motivo: str
    descricao: str
    valor: Decimal
    status: str = 'pending'
    id: Optional[str] = None
    solicitado_em: Optional[str] = None


@dataclass
class ResultadoPedido:
    """Resultado do registro de um pedido no checkout."""
    sucesso: bool
    pedido_id: Optional[str] = None
    numero_pedido: Optional[str] = None
    erro: Optional[str] = None


@dataclass
class MetricasPedidos:
    """Números agregados do painel administrativo de pedidos."""
    total_pedidos: int
    receita_total: Decimal
    ticket_medio: Decimal
    pedidos_por_status: Dict[str, int] = field(default_factory=dict)


# ====================================================================
# CATÁLOGO, CEP E PAGAMENTO
# ====================================================================

@dataclass
class Categoria:
    """Categoria de produtos, com subcategorias opcionais."""
    id: str
    nome: str
    slug: str
    descricao: Optional[str] = None
    imagem_url: Optional[str] = None
    categoria_pai_id: Optional[str] = None
    ordem: int = 0
    ativa: bool = True
    subcategorias: List['Categoria'] = field(default_factory=list)


@dataclass
class EnderecoCep:
    """Endereço devolvido pela consulta de CEP."""
    cep: str
    rua: str = ''
    bairro: str = ''
    cidade: str = ''
    estado: str = ''
    uf: str = ''
    regiao: str = ''
    ddd: str = ''
    valido: bool = True


@dataclass
class DadosPagamento:
    """Dados de pagamento simulados (código PIX, boleto, cartão)."""
    metodo: str
    status_pagamento: str
    dados: Dict[str, Any] = field(default_factory=dict)
