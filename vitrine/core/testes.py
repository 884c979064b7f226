# vitrine/core/testes.py

import unittest
from decimal import Decimal
from unittest.mock import Mock, call

# Importamos as classes que queremos testar
from vitrine.core.carrinho import CarrinhoStore, calcular_resumo_pedido, obter_opcao_frete, OPCOES_FRETE
from vitrine.core.entities import Produto, ItemCarrinho, Identidade, DadosPagamento, EnderecoCep
from vitrine.core.erros_auth import TradutorErrosAuth, ERRO_SISTEMA, ERRO_INESPERADO, TIPO_EMAIL_NAO_CONFIRMADO
from vitrine.core.exceptions import (
    CarrinhoVazioError, DadosInvalidosError, ProdutoNaoEncontradoError, ColaboradorExternoError,
    ErroAutenticacao, PermissaoNegadaError, StatusInvalidoError, PedidoNaoCancelavelError,
    ReembolsoNaoPermitidoError, CepInvalidoError,
)
from vitrine.core.permissoes import is_admin, tem_permissao, pode_acessar
from vitrine.core.use_cases import (
    CatalogoUseCase, GerenciarEnderecosUseCase, CriarPedidoUseCase, PedidosClienteUseCase,
    GerenciarPedidosAdminUseCase, BuscarCepUseCase,
)


def criar_produto(id='joia-1', preco='100.00', nome='Anel de Prata'):
    return Produto(id=id, nome=nome, preco=Decimal(preco), sku=f'SKU-{id}')


# ====================================================================
# CARRINHO
# ====================================================================

class TestCarrinhoStore(unittest.TestCase):

    def setUp(self):
        """
        Cada teste recebe um carrinho novo com um armazenamento de estado simulado.
        """
        self.estado_mock = Mock()
        self.estado_mock.carregar.return_value = None
        self.carrinho = CarrinhoStore(self.estado_mock)
        self.anel = criar_produto('joia-1', '100.00')
        self.colar = criar_produto('joia-2', '250.50', 'Colar de Ouro')

    def test_adicionar_mesmo_produto_incrementa_a_linha(self):
        """
        Cenário: Adicionar o mesmo produto duas vezes gera uma única linha com quantidade 2.
        """
        # ACT
        self.carrinho.adicionar_item(self.anel)
        self.carrinho.adicionar_item(self.anel)

        # ASSERT
        self.assertEqual(len(self.carrinho.itens), 1)
        self.assertEqual(self.carrinho.obter_quantidade_item('joia-1'), 2)
        self.assertEqual(self.carrinho.quantidade_itens, 2)
        self.assertEqual(self.carrinho.total, Decimal('200.00'))

    def test_atualizar_quantidade_para_zero_remove_o_item(self):
        """
        Cenário: Quantidade zero ou negativa equivale a remover o produto.
        """
        # ARRANGE
        self.carrinho.adicionar_item(self.anel)
        self.carrinho.adicionar_item(self.colar)

        # ACT
        self.carrinho.atualizar_quantidade('joia-1', 0)
        self.carrinho.atualizar_quantidade('joia-2', -3)

        # ASSERT
        self.assertEqual(self.carrinho.itens, [])
        self.assertEqual(self.carrinho.total, Decimal('0'))

    def test_atualizar_quantidade_de_produto_ausente_nao_faz_nada(self):
        """
        Cenário: Alterar a quantidade de um produto que não está no carrinho.
        """
        self.carrinho.atualizar_quantidade('nao-existe', 4)
        self.assertEqual(self.carrinho.itens, [])
        self.estado_mock.salvar.assert_not_called()

    def test_remover_produto_ausente_nao_notifica(self):
        # ARRANGE
        self.carrinho.adicionar_item(self.anel)
        observador = Mock()
        self.carrinho.inscrever(observador)

        # ACT
        self.carrinho.remover_item('nao-existe')

        # ASSERT
        self.assertEqual([item.produto.id for item in self.carrinho.itens], ['joia-1'])
        self.assertEqual(self.carrinho.obter_quantidade_item('joia-1'), 1)
        observador.assert_not_called()

    def test_limpar_carrinho_deixa_so_o_frete(self):
        """
        Cenário: Depois de esvaziar o carrinho o resumo cobra apenas o frete selecionado.
        """
        # ARRANGE
        self.carrinho.adicionar_item(self.anel)
        self.carrinho.adicionar_item(self.colar)
        self.carrinho.definir_frete('express')

        # ACT
        self.carrinho.limpar_carrinho()
        resumo = self.carrinho.calcular_resumo()

        # ASSERT
        self.assertEqual(resumo.subtotal, Decimal('0'))
        self.assertEqual(resumo.imposto, Decimal('0'))
        self.assertEqual(resumo.total, Decimal('19.99'))
        self.assertEqual(resumo.quantidade_itens, 0)
        self.assertEqual(self.carrinho.resumo, resumo)

    def test_resumo_com_frete_e_imposto(self):
        """
        Cenário: Subtotal 200,00 com frete padrão e imposto de 8%.
        """
        # ARRANGE
        self.carrinho.adicionar_item(self.anel)
        self.carrinho.atualizar_quantidade('joia-1', 2)

        # ACT
        resumo = self.carrinho.calcular_resumo()

        # ASSERT
        self.assertEqual(resumo.subtotal, Decimal('200.00'))
        self.assertEqual(resumo.imposto, Decimal('16.00'))
        self.assertEqual(resumo.frete.metodo, 'standard')
        self.assertEqual(resumo.total, Decimal('225.99'))
        self.assertEqual(resumo.quantidade_itens, 2)

    def test_trocar_frete_muda_o_total(self):
        """
        Cenário: Escolher entrega expressa recalcula o resumo com o novo custo.
        """
        self.carrinho.adicionar_item(self.anel)

        self.carrinho.definir_frete('express')

        self.assertEqual(self.carrinho.resumo.frete.custo, Decimal('19.99'))
        self.assertEqual(self.carrinho.resumo.total, Decimal('127.99'))

    def test_frete_inexistente_falha(self):
        """
        Cenário: Método de frete fora do catálogo.
        """
        with self.assertRaises(DadosInvalidosError):
            self.carrinho.definir_frete('drone')

    def test_cada_mudanca_salva_o_blob(self):
        """
        Cenário: A mutação persiste o carrinho sob 'cart-storage' com total e quantidade.
        """
        # ACT
        self.carrinho.adicionar_item(self.anel)

        # ASSERT
        chave, blob = self.estado_mock.salvar.call_args[0]
        self.assertEqual(chave, 'cart-storage')
        self.assertEqual(blob['total'], '100.00')
        self.assertEqual(blob['quantidade_itens'], 1)
        self.assertEqual(blob['itens'][0]['product']['id'], 'joia-1')
        self.assertEqual(blob['frete']['method'], 'standard')

    def test_reidratar_recalcula_os_valores(self):
        """
        Cenário: O blob salvo traz um total adulterado; o carrinho recalcula a partir das linhas.
        """
        # ARRANGE
        self.estado_mock.carregar.return_value = {
            'itens': [{'product': {'id': 'joia-2', 'name': 'Colar de Ouro', 'price': '250.50'}, 'quantity': 2}],
            'total': '1.00',
            'quantidade_itens': 99,
            'frete': {'method': 'same-day', 'cost': '0', 'estimated_days': 0},
        }

        # ACT
        self.carrinho.reidratar()

        # ASSERT
        self.assertEqual(self.carrinho.total, Decimal('501.00'))
        self.assertEqual(self.carrinho.quantidade_itens, 2)
        self.assertEqual(self.carrinho.frete.custo, Decimal('29.99'))

    def test_reidratar_blob_invalido_mantem_carrinho_vazio(self):
        """
        Cenário: Blob corrompido é descartado sem derrubar o carrinho.
        """
        self.estado_mock.carregar.return_value = {'itens': [{'quantity': 1}]}

        self.carrinho.reidratar()

        self.assertEqual(self.carrinho.itens, [])

    def test_observadores_recebem_notificacao_sem_reentrada(self):
        """
        Cenário: Um observador altera o carrinho durante a notificação; a mudança
        é entregue numa nova rodada, depois da atual.
        """
        # ARRANGE
        vistos = []

        def observador(store):
            vistos.append(store.quantidade_itens)
            if len(vistos) == 1:
                store.adicionar_item(self.colar)

        self.carrinho.inscrever(observador)

        # ACT
        self.carrinho.adicionar_item(self.anel)

        # ASSERT
        self.assertEqual(vistos, [1, 2])

    def test_cancelar_inscricao(self):
        observador = Mock()
        cancelar = self.carrinho.inscrever(observador)
        cancelar()

        self.carrinho.adicionar_item(self.anel)

        observador.assert_not_called()


class TestCalcularResumoPedido(unittest.TestCase):

    def test_lista_vazia(self):
        """
        Cenário: Carrinho vazio ainda cobra o frete selecionado.
        """
        resumo = calcular_resumo_pedido([], OPCOES_FRETE[0])

        self.assertEqual(resumo.subtotal, Decimal('0'))
        self.assertEqual(resumo.imposto, Decimal('0'))
        self.assertEqual(resumo.total, Decimal('9.99'))
        self.assertEqual(resumo.quantidade_itens, 0)

    def test_precos_com_centavos_sem_erro_de_ponto_flutuante(self):
        """
        Cenário: 3 x 0,10 soma exatamente 0,30.
        """
        itens = [ItemCarrinho(produto=criar_produto(preco='0.10'), quantidade=3)]

        resumo = calcular_resumo_pedido(itens, obter_opcao_frete('standard'), taxa_imposto=Decimal('0'))

        self.assertEqual(resumo.subtotal, Decimal('0.30'))
        self.assertEqual(resumo.total, Decimal('10.29'))


# ====================================================================
# PERMISSÕES E TRADUÇÃO DE ERROS
# ====================================================================

class TestPermissoes(unittest.TestCase):

    def setUp(self):
        self.cliente = Identidade(id='u1', email='cliente@example.com', role='customer')
        self.super_admin = Identidade(id='u2', email='admin@example.com', role='admin')
        self.admin_pedidos = Identidade(
            id='u3', email='pedidos@example.com', role='admin',
            permissoes={'orders': {'read': True, 'update': False}},
        )

    def test_cliente_nao_e_admin(self):
        self.assertFalse(is_admin(self.cliente))
        self.assertFalse(is_admin(None))
        self.assertFalse(tem_permissao(self.cliente, 'orders', 'read'))
        self.assertFalse(pode_acessar(self.cliente, '/admin/orders'))

    def test_admin_sem_mapa_tem_acesso_total(self):
        """
        Cenário: Admin sem mapa de permissões é super-admin.
        """
        self.assertTrue(tem_permissao(self.super_admin, 'products', 'delete'))
        self.assertTrue(pode_acessar(self.super_admin, '/admin/settings'))

    def test_admin_com_mapa_respeita_as_acoes(self):
        self.assertTrue(tem_permissao(self.admin_pedidos, 'orders', 'read'))
        self.assertFalse(tem_permissao(self.admin_pedidos, 'orders', 'update'))
        self.assertFalse(tem_permissao(self.admin_pedidos, 'products', 'read'))

    def test_rotas(self):
        """
        Cenário: Rotas mapeadas exigem a permissão; rotas desconhecidas ficam liberadas para admins.
        """
        self.assertTrue(pode_acessar(self.admin_pedidos, '/admin/orders'))
        self.assertFalse(pode_acessar(self.admin_pedidos, '/admin/orders/edit'))
        self.assertFalse(pode_acessar(self.admin_pedidos, '/admin/products'))
        self.assertTrue(pode_acessar(self.admin_pedidos, '/admin/dashboard'))


class TestTradutorErrosAuth(unittest.TestCase):

    def test_traducao_exata(self):
        mensagem = TradutorErrosAuth.traduzir(ErroAutenticacao('Invalid login credentials'))

        self.assertEqual(mensagem.titulo, 'Erro de Login')

    def test_traducao_por_trecho_guarda_o_email(self):
        """
        Cenário: A mensagem do servidor contém a chave conhecida no meio do texto.
        """
        mensagem = TradutorErrosAuth.traduzir(
            ErroAutenticacao('AuthApiError: Email not confirmed'), email='ana@example.com',
        )

        self.assertEqual(mensagem.tipo, TIPO_EMAIL_NAO_CONFIRMADO)
        self.assertEqual(mensagem.email, 'ana@example.com')

    def test_traducao_por_palavra_chave(self):
        mensagem = TradutorErrosAuth.traduzir(ErroAutenticacao('invalid user credentials'))

        self.assertEqual(mensagem.titulo, 'Erro de Login')

    def test_mensagem_desconhecida_e_erro_sem_mensagem(self):
        self.assertEqual(TradutorErrosAuth.traduzir(ErroAutenticacao('kaboom')), ERRO_SISTEMA)
        self.assertEqual(TradutorErrosAuth.traduzir(object()), ERRO_INESPERADO)

    def test_mensagem_de_confirmacao(self):
        mensagem = TradutorErrosAuth.mensagem_confirmacao('bia@example.com')

        self.assertIn('bia@example.com', mensagem.mensagem)


# ====================================================================
# CASOS DE USO
# ====================================================================

class TestCatalogoUseCase(unittest.TestCase):

    def setUp(self):
        self.dados_mock = Mock()
        self.use_case = CatalogoUseCase(self.dados_mock)

    def test_listar_produtos_monta_os_filtros(self):
        """
        Cenário: Busca por nome com preço mínimo; só produtos publicados.
        """
        # ARRANGE
        self.dados_mock.selecionar.return_value = [{'id': 'joia-1', 'name': 'Anel', 'price': 89.9}]

        # ACT
        produtos = self.use_case.listar_produtos(busca='anel', preco_min=Decimal('10'))

        # ASSERT
        self.dados_mock.selecionar.assert_called_once_with(
            'products',
            {'status': 'published', 'name__ilike': '%anel%', 'price__gte': '10'},
            ordem=['-created_at'], limite=None, deslocamento=None,
        )
        self.assertEqual(produtos[0].preco, Decimal('89.9'))

    def test_buscar_produto_inexistente(self):
        self.dados_mock.buscar_um.return_value = None

        with self.assertRaises(ProdutoNaoEncontradoError):
            self.use_case.buscar_produto('nao-existe')

    def test_categorias_em_arvore(self):
        """
        Cenário: Subcategorias ficam aninhadas na categoria pai.
        """
        self.dados_mock.selecionar.return_value = [
            {'id': 'c1', 'name': 'Anéis', 'slug': 'aneis', 'sort_order': 1},
            {'id': 'c2', 'name': 'Anéis de ouro', 'slug': 'aneis-ouro', 'parent_id': 'c1', 'sort_order': 2},
            {'id': 'c3', 'name': 'Colares', 'slug': 'colares', 'sort_order': 3},
        ]

        categorias = self.use_case.listar_categorias()

        self.assertEqual([c.id for c in categorias], ['c1', 'c3'])
        self.assertEqual([c.id for c in categorias[0].subcategorias], ['c2'])


class TestGerenciarEnderecosUseCase(unittest.TestCase):

    def setUp(self):
        self.dados_mock = Mock()
        self.use_case = GerenciarEnderecosUseCase(self.dados_mock)
        self.campos = {
            'rua': 'Rua das Flores', 'numero': '10', 'bairro': 'Centro',
            'cidade': 'São Paulo', 'estado': 'SP', 'cep': '01001-000',
        }

    def test_criar_endereco_padrao_desmarca_os_outros(self):
        """
        Cenário: Um novo endereço padrão tira a marca dos endereços anteriores antes de ser gravado.
        """
        # ARRANGE
        self.dados_mock.inserir.return_value = [{'id': 'e1', 'user_id': 'u1', 'street': 'Rua das Flores', 'is_default': True}]

        # ACT
        endereco = self.use_case.criar('u1', dict(self.campos, padrao=True))

        # ASSERT
        self.assertEqual(self.dados_mock.mock_calls[0], call.atualizar('addresses', {'user_id': 'u1'}, {'is_default': False}))
        linha = self.dados_mock.inserir.call_args[0][1]
        self.assertEqual(linha['postal_code'], '01001-000')
        self.assertTrue(linha['is_default'])
        self.assertEqual(endereco.id, 'e1')

    def test_criar_endereco_incompleto(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.criar('u1', {'rua': 'Rua sem número'})

    def test_atualizar_com_campo_desconhecido(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.atualizar('u1', 'e1', {'usuario_id': 'outro'})
        self.dados_mock.atualizar.assert_not_called()


class TestCriarPedidoUseCase(unittest.TestCase):

    def setUp(self):
        """
        Prepara o caso de uso com colaborador de dados e gateway de pagamento simulados.
        """
        self.dados_mock = Mock()
        self.pagamento_mock = Mock()
        self.pagamento_mock.gerar_pagamento.return_value = DadosPagamento('pix', 'pending', {'pix_code': '000'})
        self.use_case = CriarPedidoUseCase(self.dados_mock, self.pagamento_mock)

        self.carrinho = CarrinhoStore()
        self.carrinho.adicionar_item(criar_produto('joia-1', '100.00'))
        self.identidade = Identidade(id='u1', email='ana@example.com', nome_completo='Ana Souza')
        self.endereco = {'rua': 'Rua das Flores', 'numero': '10', 'cidade': 'São Paulo', 'estado': 'SP', 'cep': '01001-000'}

    def test_criar_pedido_com_sucesso(self):
        """
        Cenário: Pedido e itens gravados, carrinho esvaziado.
        """
        # ARRANGE
        self.dados_mock.inserir.side_effect = [[{'id': 'pedido-1'}], [{'id': 'item-1'}]]

        # ACT
        resultado = self.use_case.executar(self.carrinho, self.identidade, 'pix', self.endereco)

        # ASSERT
        self.assertTrue(resultado.sucesso)
        self.assertEqual(resultado.pedido_id, 'pedido-1')
        self.assertTrue(resultado.numero_pedido.startswith('ORD-'))

        colecao, linha = self.dados_mock.inserir.call_args_list[0][0]
        self.assertEqual(colecao, 'orders')
        self.assertEqual(linha['total_amount'], '117.99')
        self.assertEqual(linha['status'], 'pending')
        self.assertEqual(linha['payment_status'], 'pending')
        self.assertEqual(linha['billing_address'], self.endereco)

        colecao, itens = self.dados_mock.inserir.call_args_list[1][0]
        self.assertEqual(colecao, 'order_items')
        self.assertEqual(itens[0]['order_id'], 'pedido-1')
        self.assertEqual(itens[0]['unit_price'], '100.00')

        self.assertEqual(self.carrinho.itens, [])

    def test_falha_nos_itens_remove_o_pedido(self):
        """
        Cenário: A gravação dos itens falha; o pedido órfão é removido e o carrinho é mantido.
        """
        # ARRANGE
        self.dados_mock.inserir.side_effect = [[{'id': 'pedido-1'}], ColaboradorExternoError('timeout')]

        # ACT
        resultado = self.use_case.executar(self.carrinho, self.identidade, 'pix', self.endereco)

        # ASSERT
        self.assertFalse(resultado.sucesso)
        self.assertIn('timeout', resultado.erro)
        self.dados_mock.remover.assert_called_once_with('orders', {'id': 'pedido-1'})
        self.assertEqual(len(self.carrinho.itens), 1)

    def test_carrinho_vazio_falha(self):
        with self.assertRaises(CarrinhoVazioError):
            self.use_case.executar(CarrinhoStore(), self.identidade, 'pix', self.endereco)
        self.dados_mock.inserir.assert_not_called()

    def test_metodo_de_pagamento_invalido(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar(self.carrinho, self.identidade, 'cheque', self.endereco)


class TestPedidosClienteUseCase(unittest.TestCase):

    def setUp(self):
        self.dados_mock = Mock()
        self.dados_mock.selecionar.return_value = []
        self.use_case = PedidosClienteUseCase(self.dados_mock)

    def test_cancelar_pedido_enviado_falha(self):
        self.dados_mock.buscar_um.return_value = {'id': 'p1', 'user_id': 'u1', 'status': 'shipped'}

        with self.assertRaises(PedidoNaoCancelavelError):
            self.use_case.cancelar('u1', 'p1', 'Desisti')
        self.dados_mock.atualizar.assert_not_called()

    def test_cancelar_pedido_pendente(self):
        # ARRANGE
        self.dados_mock.buscar_um.return_value = {'id': 'p1', 'user_id': 'u1', 'status': 'pending'}
        self.dados_mock.atualizar.return_value = [{'id': 'p1', 'user_id': 'u1', 'status': 'cancelled'}]

        # ACT
        pedido = self.use_case.cancelar('u1', 'p1', 'Desisti')

        # ASSERT
        self.assertEqual(pedido.status, 'cancelled')
        alteracoes = self.dados_mock.atualizar.call_args[0][2]
        self.assertEqual(alteracoes['cancellation_reason'], 'Desisti')

    def test_reembolso_so_para_pedido_entregue(self):
        self.dados_mock.buscar_um.return_value = {'id': 'p1', 'user_id': 'u1', 'status': 'processing'}

        with self.assertRaises(ReembolsoNaoPermitidoError):
            self.use_case.solicitar_reembolso('u1', 'p1', 'Defeito', '')

    def test_reembolso_usa_o_total_do_pedido(self):
        # ARRANGE
        self.dados_mock.buscar_um.return_value = {'id': 'p1', 'user_id': 'u1', 'status': 'delivered', 'total_amount': '117.99'}
        self.dados_mock.inserir.side_effect = lambda colecao, linha: [dict(linha, id='r1')]

        # ACT
        solicitacao = self.use_case.solicitar_reembolso('u1', 'p1', 'Defeito', 'Fecho quebrado')

        # ASSERT
        self.assertEqual(solicitacao.valor, Decimal('117.99'))
        self.assertEqual(solicitacao.status, 'pending')
        self.assertEqual(self.dados_mock.inserir.call_args[0][0], 'refund_requests')


class TestGerenciarPedidosAdminUseCase(unittest.TestCase):

    def setUp(self):
        self.dados_mock = Mock()
        self.super_admin = Identidade(id='a1', email='admin@example.com', role='admin')

    def test_cliente_sem_permissao(self):
        use_case = GerenciarPedidosAdminUseCase(self.dados_mock, Identidade(id='u1', email='c@example.com', role='customer'))

        with self.assertRaises(PermissaoNegadaError):
            use_case.listar()
        self.dados_mock.selecionar.assert_not_called()

    def test_admin_so_leitura_nao_altera_status(self):
        leitor = Identidade(id='a2', email='leitor@example.com', role='admin', permissoes={'orders': {'read': True}})
        use_case = GerenciarPedidosAdminUseCase(self.dados_mock, leitor)

        with self.assertRaises(PermissaoNegadaError):
            use_case.atualizar_status('p1', 'shipped')

    def test_status_invalido(self):
        use_case = GerenciarPedidosAdminUseCase(self.dados_mock, self.super_admin)

        with self.assertRaises(StatusInvalidoError):
            use_case.atualizar_status('p1', 'perdido')

    def test_marcar_como_enviado_grava_a_data(self):
        self.dados_mock.atualizar.return_value = [{'id': 'p1', 'status': 'shipped'}]
        use_case = GerenciarPedidosAdminUseCase(self.dados_mock, self.super_admin)

        pedido = use_case.atualizar_status('p1', 'shipped')

        alteracoes = self.dados_mock.atualizar.call_args[0][2]
        self.assertEqual(alteracoes['shipped_at'], alteracoes['updated_at'])
        self.assertEqual(pedido.status, 'shipped')

    def test_listar_com_total(self):
        self.dados_mock.selecionar.return_value = [{'id': 'p1', 'status': 'pending'}]
        self.dados_mock.contar.return_value = 42
        use_case = GerenciarPedidosAdminUseCase(self.dados_mock, self.super_admin)

        pedidos, total = use_case.listar(status='pending', limite=1)

        self.assertEqual(total, 42)
        self.assertEqual(len(pedidos), 1)
        self.dados_mock.contar.assert_called_once_with('orders', {'status': 'pending'})

    def test_metricas(self):
        """
        Cenário: Receita, ticket médio e contagem por status.
        """
        self.dados_mock.selecionar.return_value = [
            {'id': 'p1', 'status': 'delivered', 'total_amount': '100.00'},
            {'id': 'p2', 'status': 'pending', 'total_amount': '50.00'},
        ]
        use_case = GerenciarPedidosAdminUseCase(self.dados_mock, self.super_admin)

        metricas = use_case.metricas()

        self.assertEqual(metricas.total_pedidos, 2)
        self.assertEqual(metricas.receita_total, Decimal('150.00'))
        self.assertEqual(metricas.ticket_medio, Decimal('75.00'))
        self.assertEqual(metricas.pedidos_por_status, {'delivered': 1, 'pending': 1})


class TestBuscarCepUseCase(unittest.TestCase):

    def setUp(self):
        self.gateway_mock = Mock()
        self.use_case = BuscarCepUseCase(self.gateway_mock)

    def test_validar_e_formatar(self):
        self.assertTrue(BuscarCepUseCase.validar_cep('01310-100'))
        self.assertFalse(BuscarCepUseCase.validar_cep('1234'))
        self.assertEqual(BuscarCepUseCase.formatar_cep('01310100'), '01310-100')
        self.assertEqual(BuscarCepUseCase.formatar_cep('0131'), '0131')

    def test_cep_invalido_nao_consulta_o_gateway(self):
        with self.assertRaises(CepInvalidoError):
            self.use_case.executar('123')
        self.gateway_mock.buscar.assert_not_called()

    def test_cep_limpo_vai_para_o_gateway(self):
        self.gateway_mock.buscar.return_value = EnderecoCep(cep='01310-100', cidade='São Paulo')

        endereco = self.use_case.executar('01310-100')

        self.gateway_mock.buscar.assert_called_once_with('01310100')
        self.assertEqual(endereco.cidade, 'São Paulo')


if __name__ == '__main__':
    unittest.main()
