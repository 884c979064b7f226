"""
Mapeadores (Mappers) para converter entre:
1. Linhas das coleções do BaaS (dicts com as colunas em inglês)
2. Entidades de Domínio (vitrine.core.entities)
3. Blobs JSON do estado local persistido (carrinho e sessão)
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from vitrine.core.entities import (
    Produto, ItemCarrinho, OpcaoFrete, Identidade, Sessao, UsuarioAuth,
    Endereco, Pedido, ItemPedido, SolicitacaoReembolso, Categoria,
)

Linha = Dict[str, Any]


def para_decimal(valor: Any) -> Optional[Decimal]:
    """Converte números e strings para Decimal sem passar por float binário."""
    if valor is None or valor == '':
        return None
    if isinstance(valor, Decimal):
        return valor
    return Decimal(str(valor))


def _texto_decimal(valor: Optional[Decimal]) -> Optional[str]:
    return str(valor) if valor is not None else None


# ====================================================================
# CATÁLOGO
# ====================================================================

class ProdutoMapper:
    """Mapeador para Produto."""

    @staticmethod
    def to_entity(linha: Optional[Linha]) -> Optional[Produto]:
        """Converte uma linha de `products` para Produto."""
        if not linha: return None
        return Produto(
            id=str(linha['id']),
            nome=linha.get('name', ''),
            preco=para_decimal(linha.get('price')) or Decimal('0'),
            slug=linha.get('slug') or '',
            descricao=linha.get('description') or '',
            sku=linha.get('sku'),
            imagem_url=linha.get('image_url'),
            categoria_id=linha.get('category_id'),
            estoque=int(linha.get('stock_quantity') or 0),
            em_estoque=bool(linha.get('in_stock', True)),
            status=linha.get('status') or 'published',
            destaque=bool(linha.get('featured', False)),
            preco_promocional=para_decimal(linha.get('sale_price')),
        )

    @staticmethod
    def to_linha(produto: Produto) -> Linha:
        """Converte Produto para o formato de linha (usado também no blob do carrinho)."""
        return {
            'id': produto.id,
            'name': produto.nome,
            'price': _texto_decimal(produto.preco),
            'slug': produto.slug,
            'description': produto.descricao,
            'sku': produto.sku,
            'image_url': produto.imagem_url,
            'category_id': produto.categoria_id,
            'stock_quantity': produto.estoque,
            'in_stock': produto.em_estoque,
            'status': produto.status,
            'featured': produto.destaque,
            'sale_price': _texto_decimal(produto.preco_promocional),
        }


class CategoriaMapper:
    """Mapeador para Categoria."""

    @staticmethod
    def to_entity(linha: Optional[Linha]) -> Optional[Categoria]:
        if not linha: return None
        return Categoria(
            id=str(linha['id']),
            nome=linha.get('name', ''),
            slug=linha.get('slug', ''),
            descricao=linha.get('description'),
            imagem_url=linha.get('image_url'),
            categoria_pai_id=linha.get('parent_id'),
            ordem=int(linha.get('sort_order') or 0),
            ativa=bool(linha.get('is_active', True)),
        )


# ====================================================================
# CARRINHO
# ====================================================================

class ItemCarrinhoMapper:
    """Linhas do carrinho no blob `cart-storage`."""

    @staticmethod
    def to_entity(dados: Linha) -> ItemCarrinho:
        return ItemCarrinho(
            produto=ProdutoMapper.to_entity(dados['product']),
            quantidade=int(dados['quantity']),
        )

    @staticmethod
    def to_dict(item: ItemCarrinho) -> Linha:
        return {'product': ProdutoMapper.to_linha(item.produto), 'quantity': item.quantidade}


class OpcaoFreteMapper:

    @staticmethod
    def to_entity(dados: Linha) -> OpcaoFrete:
        return OpcaoFrete(
            metodo=dados['method'],
            custo=para_decimal(dados['cost']),
            dias_estimados=int(dados['estimated_days']),
            descricao=dados.get('description', ''),
        )

    @staticmethod
    def to_dict(opcao: OpcaoFrete) -> Linha:
        return {
            'method': opcao.metodo,
            'cost': str(opcao.custo),
            'estimated_days': opcao.dias_estimados,
            'description': opcao.descricao,
        }


# ====================================================================
# AUTENTICAÇÃO E IDENTIDADE
# ====================================================================

class UsuarioAuthMapper:
    """Usuário no formato do serviço de autenticação."""

    @staticmethod
    def to_entity(dados: Optional[Linha]) -> Optional[UsuarioAuth]:
        if not dados: return None
        return UsuarioAuth(
            id=str(dados['id']),
            email=dados.get('email') or '',
            telefone=dados.get('phone') or None,
            metadados=dict(dados.get('user_metadata') or {}),
            criado_em=dados.get('created_at'),
            atualizado_em=dados.get('updated_at'),
            email_confirmado_em=dados.get('email_confirmed_at'),
        )

    @staticmethod
    def to_dict(usuario: UsuarioAuth) -> Linha:
        return {
            'id': usuario.id,
            'email': usuario.email,
            'phone': usuario.telefone,
            'user_metadata': dict(usuario.metadados),
            'created_at': usuario.criado_em,
            'updated_at': usuario.atualizado_em,
            'email_confirmed_at': usuario.email_confirmado_em,
        }


class SessaoMapper:

    @staticmethod
    def to_entity(dados: Optional[Linha]) -> Optional[Sessao]:
        if not dados or not dados.get('user'): return None
        return Sessao(
            access_token=dados.get('access_token', ''),
            refresh_token=dados.get('refresh_token'),
            expira_em=dados.get('expires_at'),
            usuario=UsuarioAuthMapper.to_entity(dados['user']),
        )

    @staticmethod
    def to_dict(sessao: Sessao) -> Linha:
        return {
            'access_token': sessao.access_token,
            'refresh_token': sessao.refresh_token,
            'expires_at': sessao.expira_em,
            'user': UsuarioAuthMapper.to_dict(sessao.usuario),
        }


class IdentidadeMapper:

    @staticmethod
    def to_entity(dados: Optional[Linha]) -> Optional[Identidade]:
        if not dados: return None
        return Identidade(
            id=str(dados['id']),
            email=dados.get('email') or '',
            nome_completo=dados.get('full_name') or '',
            telefone=dados.get('phone'),
            data_nascimento=dados.get('date_of_birth'),
            avatar_url=dados.get('avatar_url'),
            role=dados.get('role'),
            permissoes=dados.get('permissions'),
            criado_em=dados.get('created_at'),
            atualizado_em=dados.get('updated_at'),
        )

    @staticmethod
    def to_dict(identidade: Identidade) -> Linha:
        return {
            'id': identidade.id,
            'email': identidade.email,
            'full_name': identidade.nome_completo,
            'phone': identidade.telefone,
            'date_of_birth': identidade.data_nascimento,
            'avatar_url': identidade.avatar_url,
            'role': identidade.role,
            'permissions': identidade.permissoes,
            'created_at': identidade.criado_em,
            'updated_at': identidade.atualizado_em,
        }


# ====================================================================
# PERFIL E PEDIDOS
# ====================================================================

class EnderecoMapper:
    """Mapeador para Endereço (coleção `addresses`)."""

    @staticmethod
    def to_entity(linha: Optional[Linha]) -> Optional[Endereco]:
        if not linha: return None
        return Endereco(
            id=str(linha['id']) if linha.get('id') is not None else None,
            usuario_id=linha.get('user_id'),
            tipo=linha.get('type') or 'shipping',
            rua=linha.get('street', ''),
            numero=linha.get('number', ''),
            complemento=linha.get('complement'),
            bairro=linha.get('neighborhood', ''),
            cidade=linha.get('city', ''),
            estado=linha.get('state', ''),
            cep=linha.get('postal_code', ''),
            pais=linha.get('country') or 'BR',
            padrao=bool(linha.get('is_default', False)),
            criado_em=linha.get('created_at'),
            atualizado_em=linha.get('updated_at'),
        )

    @staticmethod
    def to_linha(endereco: Endereco) -> Linha:
        linha = {
            'user_id': endereco.usuario_id,
            'type': endereco.tipo,
            'street': endereco.rua,
            'number': endereco.numero,
            'complement': endereco.complemento,
            'neighborhood': endereco.bairro,
            'city': endereco.cidade,
            'state': endereco.estado,
            'postal_code': endereco.cep,
            'country': endereco.pais,
            'is_default': endereco.padrao,
        }
        if endereco.id:
            linha['id'] = endereco.id
        return linha

    # Campos da entidade -> colunas, para atualizações parciais
    CAMPOS = {
        'tipo': 'type', 'rua': 'street', 'numero': 'number',
        'complemento': 'complement', 'bairro': 'neighborhood',
        'cidade': 'city', 'estado': 'state', 'cep': 'postal_code',
        'pais': 'country', 'padrao': 'is_default',
    }


class ItemPedidoMapper:

    @staticmethod
    def to_entity(linha: Linha) -> ItemPedido:
        return ItemPedido(
            pedido_id=linha.get('order_id'),
            produto_id=linha.get('product_id'),
            nome_produto=linha.get('product_name', ''),
            sku=linha.get('product_sku'),
            imagem_url=linha.get('product_image'),
            preco_unitario=para_decimal(linha.get('unit_price')) or Decimal('0'),
            quantidade=int(linha.get('quantity') or 0),
        )

    @staticmethod
    def to_linha(item: ItemPedido, pedido_id: str) -> Linha:
        return {
            'order_id': pedido_id,
            'product_id': item.produto_id,
            'product_name': item.nome_produto,
            'product_sku': item.sku or '',
            'product_image': item.imagem_url,
            'unit_price': str(item.preco_unitario),
            'quantity': item.quantidade,
            'total_price': str(item.total),
        }


class PedidoMapper:
    """Mapeador para Pedido (coleção `orders`, itens em `order_items`)."""

    @staticmethod
    def to_entity(linha: Optional[Linha], itens: Optional[List[Linha]] = None) -> Optional[Pedido]:
        if not linha: return None
        itens = itens if itens is not None else linha.get('order_items') or []
        return Pedido(
            id=str(linha['id']),
            usuario_id=linha.get('user_id'),
            numero_pedido=linha.get('order_number', ''),
            status=linha.get('status', 'pending'),
            subtotal=para_decimal(linha.get('subtotal')) or Decimal('0'),
            imposto=para_decimal(linha.get('tax_amount')) or Decimal('0'),
            frete=para_decimal(linha.get('shipping_amount')) or Decimal('0'),
            desconto=para_decimal(linha.get('discount_amount')) or Decimal('0'),
            total=para_decimal(linha.get('total_amount')) or Decimal('0'),
            metodo_pagamento=linha.get('payment_method'),
            status_pagamento=linha.get('payment_status') or 'pending',
            metodo_frete=linha.get('shipping_method'),
            endereco_entrega=linha.get('shipping_address') or {},
            endereco_cobranca=linha.get('billing_address') or {},
            codigo_rastreio=linha.get('tracking_number'),
            observacoes=linha.get('notes'),
            itens=[ItemPedidoMapper.to_entity(i) for i in itens],
            criado_em=linha.get('created_at'),
            atualizado_em=linha.get('updated_at'),
        )


class SolicitacaoReembolsoMapper:

    @staticmethod
    def to_entity(linha: Optional[Linha]) -> Optional[SolicitacaoReembolso]:
        if not linha: return None
        return SolicitacaoReembolso(
            id=str(linha['id']) if linha.get('id') is not None else None,
            pedido_id=linha.get('order_id'),
            usuario_id=linha.get('user_id'),
            motivo=linha.get('reason', ''),
            descricao=linha.get('description', ''),
            valor=para_decimal(linha.get('amount')) or Decimal('0'),
            status=linha.get('status') or 'pending',
            solicitado_em=linha.get('requested_at'),
        )

    @staticmethod
    def to_linha(solicitacao: SolicitacaoReembolso) -> Linha:
        return {
            'order_id': solicitacao.pedido_id,
            'user_id': solicitacao.usuario_id,
            'reason': solicitacao.motivo,
            'description': solicitacao.descricao,
            'amount': str(solicitacao.valor),
            'status': solicitacao.status,
            'requested_at': solicitacao.solicitado_em,
        }
