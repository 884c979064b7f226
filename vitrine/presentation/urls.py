"""
Rotas da API JSON da loja: catálogo, carrinho, autenticação, área do
cliente, checkout e painel administrativo.
"""
from django.urls import path

from . import views

urlpatterns = [
    # ====================================================================
    # 1. ROTAS DE CATÁLOGO
    # ====================================================================
    path('api/produtos/', views.ProdutosAPIView.as_view(), name='api_produtos'),
    path('api/produtos/<str:produto_id>/', views.ProdutoDetalheAPIView.as_view(), name='api_produto_detalhe'),
    path('api/categorias/', views.CategoriasAPIView.as_view(), name='api_categorias'),

    # ====================================================================
    # 2. ROTAS DE COMPRA (CARRINHO E CHECKOUT)
    # ====================================================================
    path('api/carrinho/', views.CarrinhoAPIView.as_view(), name='api_carrinho'),
    path('api/carrinho/itens/<str:produto_id>/', views.ItemCarrinhoAPIView.as_view(), name='api_carrinho_item'),
    path('api/carrinho/frete/', views.FreteAPIView.as_view(), name='api_carrinho_frete'),
    path('api/carrinho/resumo/', views.ResumoPedidoAPIView.as_view(), name='api_carrinho_resumo'),
    path('api/checkout/', views.CheckoutAPIView.as_view(), name='api_checkout'),
    path('api/cep/<str:cep>/', views.CepAPIView.as_view(), name='api_cep'),

    # ====================================================================
    # 3. ROTAS DE AUTENTICAÇÃO
    # ====================================================================
    path('api/auth/entrar/', views.EntrarAPIView.as_view(), name='api_entrar'),
    path('api/auth/cadastrar/', views.CadastrarAPIView.as_view(), name='api_cadastrar'),
    path('api/auth/sair/', views.SairAPIView.as_view(), name='api_sair'),
    path('api/auth/reenviar-confirmacao/', views.ReenviarConfirmacaoAPIView.as_view(), name='api_reenviar_confirmacao'),
    path('api/auth/confirmar/', views.ConfirmarEmailAPIView.as_view(), name='api_confirmar_email'),

    # ====================================================================
    # 4. ROTAS DE PERFIL (ÁREA DO CLIENTE)
    # ====================================================================
    path('api/perfil/', views.PerfilAPIView.as_view(), name='api_perfil'),
    path('api/perfil/avatar/', views.AvatarAPIView.as_view(), name='api_perfil_avatar'),
    path('api/perfil/permissoes/', views.PermissoesAPIView.as_view(), name='api_perfil_permissoes'),
    path('api/perfil/enderecos/', views.EnderecosAPIView.as_view(), name='api_enderecos'),
    path('api/perfil/enderecos/<str:endereco_id>/', views.EnderecoDetalheAPIView.as_view(), name='api_endereco_detalhe'),
    path('api/perfil/enderecos/<str:endereco_id>/padrao/', views.EnderecoPadraoAPIView.as_view(), name='api_endereco_padrao'),
    path('api/pedidos/', views.PedidosAPIView.as_view(), name='api_pedidos'),
    path('api/pedidos/reembolsos/', views.ReembolsosAPIView.as_view(), name='api_reembolsos'),
    path('api/pedidos/<str:pedido_id>/cancelar/', views.CancelarPedidoAPIView.as_view(), name='api_pedido_cancelar'),
    path('api/pedidos/<str:pedido_id>/reembolso/', views.SolicitarReembolsoAPIView.as_view(), name='api_pedido_reembolso'),

    # ====================================================================
    # 5. ROTAS ADMINISTRATIVAS
    # ====================================================================
    path('api/admin/pedidos/', views.AdminPedidosAPIView.as_view(), name='api_admin_pedidos'),
    path('api/admin/pedidos/<str:pedido_id>/', views.AdminPedidoDetalheAPIView.as_view(), name='api_admin_pedido_detalhe'),
    path('api/admin/metricas/', views.AdminMetricasAPIView.as_view(), name='api_admin_metricas'),
]
