from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from vitrine.core import dependency_injection as di
from vitrine.core.entities import EnderecoCep
from vitrine.infrastructure.memoria import DadosMemoria

ENDERECO = {
    'rua': 'Rua das Flores', 'numero': '10', 'bairro': 'Centro',
    'cidade': 'São Paulo', 'estado': 'SP', 'cep': '01001-000',
}


@override_settings(BAAS_BACKEND='memoria', BAAS_EXIGIR_CONFIRMACAO=False)
class LojaAPITestCase(SimpleTestCase):
    """
    Base dos testes da API: o BaaS é o banco em memória, limpo e
    populado com um catálogo pequeno antes de cada teste.
    """

    def setUp(self):
        di.banco_memoria.limpar()
        di.banco_memoria.popular('products', [
            {'id': 'joia-1', 'name': 'Anel de Prata', 'price': '100.00', 'status': 'published',
             'slug': 'anel-de-prata', 'sku': 'AN-01', 'created_at': '2024-01-02T00:00:00+00:00'},
            {'id': 'joia-2', 'name': 'Colar de Ouro', 'price': '250.50', 'status': 'published',
             'slug': 'colar-de-ouro', 'featured': True, 'created_at': '2024-01-03T00:00:00+00:00'},
            {'id': 'joia-3', 'name': 'Brinco (rascunho)', 'price': '10.00', 'status': 'draft',
             'created_at': '2024-01-04T00:00:00+00:00'},
        ])
        di.banco_memoria.popular('categories', [
            {'id': 'c1', 'name': 'Anéis', 'slug': 'aneis', 'sort_order': 1, 'is_active': True},
            {'id': 'c2', 'name': 'Anéis de prata', 'slug': 'aneis-prata', 'parent_id': 'c1', 'sort_order': 2, 'is_active': True},
        ])
        self.client = APIClient()

    def cadastrar(self, email='ana@example.com', client=None, **extras):
        client = client or self.client
        dados = {'email': email, 'senha': 'segredo1', 'nome_completo': 'Ana Souza', **extras}
        return client.post('/api/auth/cadastrar/', dados, format='json')

    def tornar_admin(self, usuario_id, permissoes=None):
        DadosMemoria(di.banco_memoria).atualizar(
            'users', {'id': usuario_id}, {'role': 'admin', 'permissions': permissoes},
        )


class CatalogoAPITestCase(LojaAPITestCase):

    def test_lista_so_produtos_publicados(self):
        response = self.client.get('/api/produtos/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['id'] for p in response.data], ['joia-2', 'joia-1'])
        self.assertEqual(response.data[1]['preco'], '100.00')

    def test_filtros_por_busca_e_destaque(self):
        self.assertEqual([p['id'] for p in self.client.get('/api/produtos/?busca=anel').data], ['joia-1'])
        self.assertEqual([p['id'] for p in self.client.get('/api/produtos/?destaque=true').data], ['joia-2'])

    def test_produto_inexistente(self):
        response = self.client.get('/api/produtos/joia-3/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_categorias_aninhadas(self):
        response = self.client.get('/api/categorias/')

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['subcategorias'][0]['id'], 'c2')


class CarrinhoAPITestCase(LojaAPITestCase):

    def test_carrinho_persiste_entre_requisicoes(self):
        """
        Cenário: Visitante anônimo adiciona produtos; o carrinho sobrevive na sessão.
        """
        # ACT
        response = self.client.post('/api/carrinho/', {'produto_id': 'joia-1', 'quantidade': 2}, format='json')

        # ASSERT
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '200.00')

        carrinho = self.client.get('/api/carrinho/').data
        self.assertEqual(carrinho['quantidade_itens'], 2)
        self.assertEqual(carrinho['itens'][0]['produto']['id'], 'joia-1')
        self.assertEqual(carrinho['itens'][0]['subtotal'], '200.00')

    def test_resumo_com_imposto_e_frete(self):
        # ARRANGE
        self.client.post('/api/carrinho/', {'produto_id': 'joia-1', 'quantidade': 2}, format='json')

        # ACT
        resumo = self.client.get('/api/carrinho/resumo/').data

        # ASSERT
        self.assertEqual(resumo['subtotal'], '200.00')
        self.assertEqual(resumo['imposto'], '16.00')
        self.assertEqual(resumo['frete']['custo'], '9.99')
        self.assertEqual(resumo['total'], '225.99')

    def test_trocar_frete(self):
        response = self.client.put('/api/carrinho/frete/', {'metodo': 'express'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/carrinho/frete/').data['selecionado']['metodo'], 'express')

    def test_quantidade_zero_remove_o_item(self):
        self.client.post('/api/carrinho/', {'produto_id': 'joia-1'}, format='json')

        response = self.client.patch('/api/carrinho/itens/joia-1/', {'quantidade': 0}, format='json')

        self.assertEqual(response.data['itens'], [])

    def test_produto_inexistente_nao_entra(self):
        response = self.client.post('/api/carrinho/', {'produto_id': 'joia-3'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class AutenticacaoAPITestCase(LojaAPITestCase):

    def test_cadastro_ja_autentica(self):
        """
        Cenário: Sem confirmação de e-mail, o cadastro devolve a identidade e o perfil fica acessível.
        """
        # ACT
        response = self.cadastrar()

        # ASSERT
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['email'], 'ana@example.com')
        self.assertEqual(response.data['primeiro_nome'], 'Ana')

        perfil = self.client.get('/api/perfil/')
        self.assertEqual(perfil.status_code, status.HTTP_200_OK)
        self.assertEqual(perfil.data['nome_completo'], 'Ana Souza')
        self.assertEqual(DadosMemoria(di.banco_memoria).contar('users'), 1)

    def test_perfil_exige_login(self):
        response = self.client.get('/api/perfil/')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_login_com_senha_errada(self):
        self.cadastrar()
        outro = APIClient()

        response = outro.post('/api/auth/entrar/', {'email': 'ana@example.com', 'senha': 'errada'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['titulo'], 'Erro de Login')

    def test_login_em_outro_cliente(self):
        self.cadastrar()
        outro = APIClient()

        response = outro.post('/api/auth/entrar/', {'email': 'ana@example.com', 'senha': 'segredo1'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(outro.get('/api/perfil/').status_code, status.HTTP_200_OK)

    def test_sair(self):
        self.cadastrar()

        response = self.client.post('/api/auth/sair/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/perfil/').status_code, status.HTTP_403_FORBIDDEN)

    @override_settings(BAAS_EXIGIR_CONFIRMACAO=True)
    def test_cadastro_com_confirmacao_e_reenvio(self):
        """
        Cenário: Cadastro pendente de confirmação, reenvio limitado por tempo e confirmação pelo token.
        """
        # ACT / ASSERT: cadastro pendente
        response = self.cadastrar('bia@example.com')
        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertIn('bia@example.com', response.data['message'])

        # O primeiro reenvio usa o e-mail pendente guardado na sessão
        self.assertEqual(self.client.post('/api/auth/reenviar-confirmacao/', {}, format='json').status_code, status.HTTP_200_OK)
        segundo = self.client.post('/api/auth/reenviar-confirmacao/', {}, format='json')
        self.assertEqual(segundo.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertGreater(segundo.data['segundos_restantes'], 0)

        # Confirmação
        token = next(iter(di.banco_memoria.tokens_confirmacao))
        confirmado = self.client.post('/api/auth/confirmar/', {'token': token}, format='json')
        self.assertEqual(confirmado.status_code, status.HTTP_200_OK)
        self.assertEqual(confirmado.data['email'], 'bia@example.com')

    @override_settings(BAAS_EXIGIR_CONFIRMACAO=True)
    def test_token_invalido(self):
        response = self.client.post('/api/auth/confirmar/', {'token': 'nao-existe'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['titulo'], 'Link expirado')


class PerfilAPITestCase(LojaAPITestCase):

    def setUp(self):
        super().setUp()
        self.cadastrar()

    def test_atualizar_perfil(self):
        response = self.client.patch('/api/perfil/', {'telefone': '11999990000'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['telefone'], '11999990000')
        self.assertEqual(self.client.get('/api/perfil/').data['telefone'], '11999990000')

    def test_enderecos_com_um_unico_padrao(self):
        """
        Cenário: O segundo endereço padrão tira a marca do primeiro.
        """
        # ACT
        self.client.post('/api/perfil/enderecos/', dict(ENDERECO, padrao=True), format='json')
        response = self.client.post('/api/perfil/enderecos/', dict(ENDERECO, numero='20', padrao=True), format='json')

        # ASSERT
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        padroes = [e['numero'] for e in response.data if e['padrao']]
        self.assertEqual(padroes, ['20'])

    def test_remover_endereco(self):
        criado = self.client.post('/api/perfil/enderecos/', ENDERECO, format='json').data[0]

        response = self.client.delete(f"/api/perfil/enderecos/{criado['id']}/")

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get('/api/perfil/enderecos/').data, [])

    def test_enviar_avatar(self):
        imagem = SimpleUploadedFile('foto.png', b'\x89PNG', content_type='image/png')

        response = self.client.post('/api/perfil/avatar/', {'avatar': imagem}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['avatar_url'].endswith('/avatar.png'))
        self.assertEqual(self.client.get('/api/perfil/').data['avatar_url'], response.data['avatar_url'])

    def test_avatar_precisa_ser_imagem(self):
        arquivo = SimpleUploadedFile('notas.txt', b'texto', content_type='text/plain')

        response = self.client.post('/api/perfil/avatar/', {'avatar': arquivo}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_permissoes_de_cliente(self):
        response = self.client.get('/api/perfil/permissoes/?rota=/admin/orders')

        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['pode_acessar'])


class CheckoutAPITestCase(LojaAPITestCase):

    def setUp(self):
        super().setUp()
        self.usuario_id = self.cadastrar().data['id']
        self.client.post('/api/carrinho/', {'produto_id': 'joia-1'}, format='json')

    def finalizar(self, **extras):
        dados = {'metodo_pagamento': 'pix', 'endereco_entrega': ENDERECO, **extras}
        return self.client.post('/api/checkout/', dados, format='json')

    def test_checkout_cria_o_pedido_e_esvazia_o_carrinho(self):
        # ACT
        response = self.finalizar()

        # ASSERT
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['numero_pedido'].startswith('ORD-'))
        self.assertEqual(self.client.get('/api/carrinho/').data['itens'], [])

        pedidos = self.client.get('/api/pedidos/').data
        self.assertEqual(len(pedidos), 1)
        self.assertEqual(pedidos[0]['total'], '117.99')
        self.assertEqual(pedidos[0]['status'], 'pending')
        self.assertEqual(pedidos[0]['itens'][0]['produto_id'], 'joia-1')

    def test_cartao_exige_dados(self):
        response = self.finalizar(metodo_pagamento='credit')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_carrinho_vazio(self):
        self.client.delete('/api/carrinho/')

        response = self.finalizar()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_checkout_exige_login(self):
        response = APIClient().post('/api/checkout/', {'metodo_pagamento': 'pix', 'endereco_entrega': ENDERECO}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancelar_e_reembolso(self):
        """
        Cenário: Pedido pendente pode ser cancelado; reembolso só depois da entrega.
        """
        pedido_id = self.finalizar().data['pedido_id']

        reembolso = self.client.post(f'/api/pedidos/{pedido_id}/reembolso/', {'motivo': 'Defeito'}, format='json')
        self.assertEqual(reembolso.status_code, status.HTTP_400_BAD_REQUEST)

        cancelado = self.client.post(f'/api/pedidos/{pedido_id}/cancelar/', {'motivo': 'Desisti'}, format='json')
        self.assertEqual(cancelado.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/pedidos/').data[0]['status'], 'cancelled')

    def test_painel_administrativo(self):
        """
        Cenário: Cliente não acessa o painel; o admin lista, entrega e mede os pedidos,
        e o cliente então consegue pedir reembolso.
        """
        # ARRANGE
        pedido_id = self.finalizar().data['pedido_id']
        self.assertEqual(self.client.get('/api/admin/pedidos/').status_code, status.HTTP_403_FORBIDDEN)

        admin = APIClient()
        admin_id = self.cadastrar('admin@example.com', client=admin).data['id']
        self.tornar_admin(admin_id)

        # ACT / ASSERT
        lista = admin.get('/api/admin/pedidos/?status=pending')
        self.assertEqual(lista.status_code, status.HTTP_200_OK)
        self.assertEqual(lista.data['count'], 1)

        entregue = admin.patch(f'/api/admin/pedidos/{pedido_id}/', {'status': 'delivered'}, format='json')
        self.assertEqual(entregue.data['status'], 'delivered')

        metricas = admin.get('/api/admin/metricas/').data
        self.assertEqual(metricas['total_pedidos'], 1)
        self.assertEqual(metricas['receita_total'], '117.99')

        reembolso = self.client.post(f'/api/pedidos/{pedido_id}/reembolso/', {'motivo': 'Defeito'}, format='json')
        self.assertEqual(reembolso.status_code, status.HTTP_201_CREATED)
        self.assertEqual(reembolso.data['valor'], '117.99')

    def test_admin_sem_permissao_de_alterar(self):
        pedido_id = self.finalizar().data['pedido_id']
        admin = APIClient()
        admin_id = self.cadastrar('leitor@example.com', client=admin).data['id']
        self.tornar_admin(admin_id, {'orders': {'read': True, 'update': False}})

        self.assertEqual(admin.get(f'/api/admin/pedidos/{pedido_id}/').status_code, status.HTTP_200_OK)
        response = admin.patch(f'/api/admin/pedidos/{pedido_id}/', {'status': 'shipped'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CepAPITestCase(LojaAPITestCase):

    def test_cep_invalido(self):
        response = self.client.get('/api/cep/123/')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cep_encontrado(self):
        endereco = EnderecoCep(cep='01310-100', rua='Avenida Paulista', cidade='São Paulo', uf='SP')
        with patch.object(di.cep_gateway, 'buscar', return_value=endereco) as buscar_mock:
            response = self.client.get('/api/cep/01310-100/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rua'], 'Avenida Paulista')
        buscar_mock.assert_called_once_with('01310100')
