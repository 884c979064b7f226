from decimal import ROUND_HALF_UP

from rest_framework import serializers

from vitrine.core.carrinho import OPCOES_FRETE
from vitrine.core.use_cases import METODOS_PAGAMENTO, STATUS_PEDIDO


class ValorSerializer(serializers.DecimalField):
    """Dinheiro: duas casas na resposta, arredondando meio centavo para cima."""

    def __init__(self, **kwargs):
        kwargs.setdefault('max_digits', 12)
        kwargs.setdefault('decimal_places', 2)
        kwargs.setdefault('rounding', ROUND_HALF_UP)
        super().__init__(**kwargs)


# ====================================================================
# SERIALIZERS DO CATÁLOGO
# ====================================================================

class ProdutoSerializer(serializers.Serializer):
    id = serializers.CharField()
    nome = serializers.CharField()
    preco = ValorSerializer()
    slug = serializers.CharField()
    descricao = serializers.CharField()
    sku = serializers.CharField(allow_null=True)
    imagem_url = serializers.CharField(allow_null=True)
    categoria_id = serializers.CharField(allow_null=True)
    estoque = serializers.IntegerField()
    em_estoque = serializers.BooleanField()
    destaque = serializers.BooleanField()
    preco_promocional = ValorSerializer(allow_null=True)


class CategoriaSerializer(serializers.Serializer):
    id = serializers.CharField()
    nome = serializers.CharField()
    slug = serializers.CharField()
    descricao = serializers.CharField(allow_null=True)
    imagem_url = serializers.CharField(allow_null=True)
    categoria_pai_id = serializers.CharField(allow_null=True)
    ordem = serializers.IntegerField()
    subcategorias = serializers.SerializerMethodField()

    def get_subcategorias(self, categoria):
        return CategoriaSerializer(categoria.subcategorias, many=True).data


# ====================================================================
# SERIALIZERS PARA O CARRINHO
# ====================================================================

class OpcaoFreteSerializer(serializers.Serializer):
    metodo = serializers.CharField()
    custo = ValorSerializer()
    dias_estimados = serializers.IntegerField()
    descricao = serializers.CharField()


class ItemCarrinhoSerializer(serializers.Serializer):
    produto = ProdutoSerializer()
    quantidade = serializers.IntegerField()
    subtotal = ValorSerializer()


class CarrinhoSerializer(serializers.Serializer):
    """
    Serializer principal para o carrinho de compras.
    `total` é a soma dos itens, sem frete e imposto (ver ResumoPedidoSerializer).
    """
    itens = ItemCarrinhoSerializer(many=True)
    total = ValorSerializer()
    quantidade_itens = serializers.IntegerField()
    frete = OpcaoFreteSerializer()


class ResumoPedidoSerializer(serializers.Serializer):
    subtotal = ValorSerializer()
    frete = OpcaoFreteSerializer()
    imposto = ValorSerializer()
    total = ValorSerializer()
    quantidade_itens = serializers.IntegerField()


class AdicionarItemSerializer(serializers.Serializer):
    produto_id = serializers.CharField()
    quantidade = serializers.IntegerField(min_value=1, default=1)


class AtualizarQuantidadeSerializer(serializers.Serializer):
    # Zero ou negativo remove o item
    quantidade = serializers.IntegerField()


class EscolherFreteSerializer(serializers.Serializer):
    metodo = serializers.ChoiceField(choices=[opcao.metodo for opcao in OPCOES_FRETE])


# ====================================================================
# SERIALIZERS DE AUTENTICAÇÃO E PERFIL
# ====================================================================

class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    senha = serializers.CharField(trim_whitespace=False)


class CadastroSerializer(serializers.Serializer):
    email = serializers.EmailField()
    senha = serializers.CharField(trim_whitespace=False)
    nome_completo = serializers.CharField(required=False, allow_blank=True)
    telefone = serializers.CharField(required=False, allow_blank=True)
    cpf = serializers.CharField(required=False, allow_blank=True)


class ReenvioConfirmacaoSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)


class ConfirmacaoEmailSerializer(serializers.Serializer):
    token = serializers.CharField()


class MensagemErroSerializer(serializers.Serializer):
    titulo = serializers.CharField()
    mensagem = serializers.CharField()
    tipo = serializers.CharField(allow_null=True)
    email = serializers.CharField(allow_null=True)


class IdentidadeSerializer(serializers.Serializer):
    id = serializers.CharField()
    email = serializers.CharField()
    nome_completo = serializers.CharField()
    primeiro_nome = serializers.CharField()
    sobrenome = serializers.CharField()
    telefone = serializers.CharField(allow_null=True)
    data_nascimento = serializers.CharField(allow_null=True)
    avatar_url = serializers.CharField(allow_null=True)
    role = serializers.CharField(allow_null=True)
    permissoes = serializers.DictField(allow_null=True)
    criado_em = serializers.CharField(allow_null=True)
    atualizado_em = serializers.CharField(allow_null=True)


class AtualizarPerfilSerializer(serializers.Serializer):
    nome_completo = serializers.CharField(required=False)
    telefone = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    data_nascimento = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Informe ao menos um campo do perfil.")
        if attrs.get('data_nascimento'):
            attrs['data_nascimento'] = attrs['data_nascimento'].isoformat()
        return attrs


class EnderecoSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    tipo = serializers.ChoiceField(choices=['shipping', 'billing', 'both'], default='shipping')
    rua = serializers.CharField(max_length=255)
    numero = serializers.CharField(max_length=50)
    complemento = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    bairro = serializers.CharField(max_length=255)
    cidade = serializers.CharField(max_length=255)
    estado = serializers.CharField(max_length=2)
    cep = serializers.CharField(max_length=9)
    pais = serializers.CharField(max_length=2, default='BR')
    padrao = serializers.BooleanField(default=False)


# ====================================================================
# SERIALIZERS DE PEDIDOS E CHECKOUT
# ====================================================================

class ItemPedidoSerializer(serializers.Serializer):
    produto_id = serializers.CharField()
    nome_produto = serializers.CharField()
    sku = serializers.CharField(allow_null=True)
    imagem_url = serializers.CharField(allow_null=True)
    preco_unitario = ValorSerializer()
    quantidade = serializers.IntegerField()
    total = ValorSerializer()


class PedidoSerializer(serializers.Serializer):
    id = serializers.CharField()
    numero_pedido = serializers.CharField()
    status = serializers.CharField()
    subtotal = ValorSerializer()
    imposto = ValorSerializer()
    frete = ValorSerializer()
    desconto = ValorSerializer()
    total = ValorSerializer()
    metodo_pagamento = serializers.CharField(allow_null=True)
    status_pagamento = serializers.CharField()
    metodo_frete = serializers.CharField(allow_null=True)
    endereco_entrega = serializers.DictField()
    codigo_rastreio = serializers.CharField(allow_null=True)
    observacoes = serializers.CharField(allow_null=True)
    itens = ItemPedidoSerializer(many=True)
    criado_em = serializers.CharField(allow_null=True)
    atualizado_em = serializers.CharField(allow_null=True)


class SolicitacaoReembolsoSerializer(serializers.Serializer):
    id = serializers.CharField(allow_null=True)
    pedido_id = serializers.CharField()
    motivo = serializers.CharField()
    descricao = serializers.CharField()
    valor = ValorSerializer()
    status = serializers.CharField()
    solicitado_em = serializers.CharField(allow_null=True)


class CancelarPedidoSerializer(serializers.Serializer):
    motivo = serializers.CharField(max_length=500)


class SolicitarReembolsoSerializer(serializers.Serializer):
    motivo = serializers.CharField(max_length=255)
    descricao = serializers.CharField(required=False, allow_blank=True, default='')


class EnderecoPedidoSerializer(serializers.Serializer):
    """Endereço gravado junto do pedido (cópia, não referência)."""
    nome = serializers.CharField(required=False, allow_blank=True)
    rua = serializers.CharField(max_length=255)
    numero = serializers.CharField(max_length=50)
    complemento = serializers.CharField(required=False, allow_blank=True)
    bairro = serializers.CharField(max_length=255)
    cidade = serializers.CharField(max_length=255)
    estado = serializers.CharField(max_length=2)
    cep = serializers.CharField(max_length=9)


class CheckoutSerializer(serializers.Serializer):
    """
    Serializer para a validação dos dados de checkout.
    Os valores do pedido vêm do resumo do carrinho, nunca do cliente.
    """
    metodo_pagamento = serializers.ChoiceField(choices=METODOS_PAGAMENTO)
    endereco_entrega = EnderecoPedidoSerializer()
    endereco_cobranca = EnderecoPedidoSerializer(required=False)
    dados_pagamento = serializers.DictField(required=False, default=dict)
    observacoes = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        if attrs['metodo_pagamento'] == 'credit' and not attrs['dados_pagamento'].get('card_number'):
            raise serializers.ValidationError({'dados_pagamento': "Informe os dados do cartão."})
        return attrs


# ====================================================================
# SERIALIZERS ADMINISTRATIVOS E DIVERSOS
# ====================================================================

class AtualizarPedidoAdminSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUS_PEDIDO, required=False)
    observacoes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if 'status' not in attrs and 'observacoes' not in attrs:
            raise serializers.ValidationError("Informe o novo status ou uma observação.")
        return attrs


class MetricasPedidosSerializer(serializers.Serializer):
    total_pedidos = serializers.IntegerField()
    receita_total = ValorSerializer()
    ticket_medio = ValorSerializer()
    pedidos_por_status = serializers.DictField(child=serializers.IntegerField())


class EnderecoCepSerializer(serializers.Serializer):
    cep = serializers.CharField()
    rua = serializers.CharField()
    bairro = serializers.CharField()
    cidade = serializers.CharField()
    estado = serializers.CharField()
    uf = serializers.CharField()
    regiao = serializers.CharField()
    ddd = serializers.CharField()
    valido = serializers.BooleanField()
