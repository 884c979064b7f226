from decimal import Decimal
from unittest.mock import Mock, patch

import requests
from django.test import SimpleTestCase

# Importamos as classes que queremos testar
from vitrine.core.entities import Sessao
from vitrine.core.exceptions import (
    ColaboradorExternoError, ErroAutenticacao, CepNaoEncontradoError, PagamentoFalhouError,
)
from vitrine.core.mappers import SessaoMapper
from vitrine.infrastructure.baas import (
    CHAVE_SESSAO_BAAS, SupabaseAuthGateway, SupabaseDadosGateway, SupabaseStorageGateway,
    filtros_para_params, ordem_para_param,
)
from vitrine.infrastructure.estado import EstadoMemoria, EstadoSessaoDjango
from vitrine.infrastructure.gateways import ViaCepGateway, PagamentoGatewayMock
from vitrine.infrastructure.memoria import BancoMemoria, DadosMemoria, AuthMemoria, atende, ordenar


def resposta(status=200, corpo=None, headers=None):
    """Resposta HTTP simulada no formato que o cliente do BaaS lê."""
    response = Mock()
    response.ok = status < 400
    response.status_code = status
    response.json.return_value = corpo
    response.content = b'{}' if corpo is not None else b''
    response.text = ''
    response.headers = headers or {}
    return response


# ====================================================================
# COLABORADORES EM MEMÓRIA
# ====================================================================

class FiltrosMemoriaTestCase(SimpleTestCase):

    def setUp(self):
        self.linhas = [
            {'id': '1', 'name': 'Anel de Prata', 'price': '89.90', 'status': 'published', 'category_id': None},
            {'id': '2', 'name': 'Colar de Ouro', 'price': 1200, 'status': 'draft', 'category_id': 'c1'},
            {'id': '3', 'name': 'ANEL DE OURO', 'price': '950.00', 'status': 'published', 'category_id': 'c1'},
        ]

    def filtrar(self, filtros):
        return [linha['id'] for linha in self.linhas if atende(linha, filtros)]

    def test_lookups(self):
        """
        Cenário: Cada lookup no estilo Django é avaliado sobre as linhas.
        """
        self.assertEqual(self.filtrar({'status': 'published'}), ['1', '3'])
        self.assertEqual(self.filtrar({'price__gte': '900'}), ['2', '3'])
        self.assertEqual(self.filtrar({'price__lt': 100}), ['1'])
        self.assertEqual(self.filtrar({'name__ilike': '%anel%'}), ['1', '3'])
        self.assertEqual(self.filtrar({'id__in': ['1', '2']}), ['1', '2'])
        self.assertEqual(self.filtrar({'category_id__isnull': True}), ['1'])
        self.assertEqual(self.filtrar({'status__ne': 'draft'}), ['1', '3'])

    def test_lookup_desconhecido(self):
        with self.assertRaises(ValueError):
            self.filtrar({'name__regex': 'x'})

    def test_ordenar_com_nulos_por_ultimo(self):
        ordenadas = ordenar(self.linhas, ['category_id', '-price'])

        self.assertEqual([linha['id'] for linha in ordenadas], ['2', '3', '1'])


class DadosMemoriaTestCase(SimpleTestCase):

    def setUp(self):
        self.banco = BancoMemoria()
        self.dados = DadosMemoria(self.banco)

    def test_inserir_gera_id_e_recusa_duplicado(self):
        # ACT
        criada = self.dados.inserir('users', {'id': 'u1', 'email': 'ana@example.com'})[0]

        # ASSERT
        self.assertEqual(criada['id'], 'u1')
        self.assertIn('created_at', criada)
        with self.assertRaises(ColaboradorExternoError) as contexto:
            self.dados.inserir('users', {'id': 'u1', 'email': 'outra@example.com'})
        self.assertEqual(contexto.exception.codigo, 409)
        self.assertEqual(self.dados.contar('users'), 1)

    def test_linhas_devolvidas_sao_copias(self):
        """
        Cenário: Alterar a linha devolvida não altera a coleção.
        """
        self.dados.inserir('products', {'id': 'p1', 'name': 'Anel'})

        linha = self.dados.buscar_um('products', {'id': 'p1'})
        linha['name'] = 'Alterado'

        self.assertEqual(self.dados.buscar_um('products', {'id': 'p1'})['name'], 'Anel')

    def test_selecionar_com_ordem_limite_e_deslocamento(self):
        self.dados.inserir('orders', [
            {'id': 'o1', 'created_at': '2024-01-01'},
            {'id': 'o2', 'created_at': '2024-03-01'},
            {'id': 'o3', 'created_at': '2024-02-01'},
        ])

        linhas = self.dados.selecionar('orders', ordem=['-created_at'], limite=2, deslocamento=1)

        self.assertEqual([linha['id'] for linha in linhas], ['o3', 'o1'])

    def test_atualizar_remover_e_inscrever(self):
        # ARRANGE
        eventos = []
        cancelar = self.dados.inscrever('addresses', lambda evento, linha: eventos.append((evento, linha['id'])))
        self.dados.inserir('addresses', {'id': 'e1', 'user_id': 'u1', 'is_default': True})

        # ACT
        alteradas = self.dados.atualizar('addresses', {'user_id': 'u1'}, {'is_default': False})
        removidas = self.dados.remover('addresses', {'id': 'e1'})
        cancelar()
        self.dados.inserir('addresses', {'id': 'e2', 'user_id': 'u1'})

        # ASSERT
        self.assertFalse(alteradas[0]['is_default'])
        self.assertEqual(len(removidas), 1)
        self.assertEqual(eventos, [('INSERT', 'e1'), ('UPDATE', 'e1'), ('DELETE', 'e1')])

    def test_remover_sem_filtros(self):
        with self.assertRaises(ValueError):
            self.dados.remover('orders', {})


class AuthMemoriaTestCase(SimpleTestCase):

    def setUp(self):
        self.banco = BancoMemoria()
        self.estado = EstadoMemoria()

    def test_cadastro_sem_confirmacao_ja_entra(self):
        """
        Cenário: Sem exigência de confirmação, o cadastro cria a sessão e avisa os inscritos.
        """
        # ARRANGE
        auth = AuthMemoria(self.banco, self.estado)
        eventos = []
        auth.ao_mudar_sessao(lambda evento, sessao: eventos.append(evento))

        # ACT
        usuario = auth.cadastrar('Ana@Example.com', 'segredo1', {'full_name': 'Ana Souza'})

        # ASSERT
        self.assertEqual(usuario.email, 'ana@example.com')
        self.assertIsNotNone(usuario.email_confirmado_em)
        self.assertEqual(eventos, ['SIGNED_IN'])
        self.assertEqual(auth.obter_sessao().usuario.id, usuario.id)

    def test_cadastro_com_confirmacao(self):
        """
        Cenário: O login fica bloqueado até o token de confirmação ser verificado.
        """
        # ARRANGE
        auth = AuthMemoria(self.banco, self.estado, exigir_confirmacao=True)
        auth.cadastrar('bia@example.com', 'segredo1', {})

        # ACT / ASSERT
        with self.assertRaisesMessage(ErroAutenticacao, 'Email not confirmed'):
            auth.entrar_com_senha('bia@example.com', 'segredo1')

        token = next(iter(self.banco.tokens_confirmacao))
        sessao = auth.verificar_token_confirmacao(token)
        self.assertEqual(sessao.usuario.email, 'bia@example.com')
        self.assertIsNotNone(auth.entrar_com_senha('bia@example.com', 'segredo1'))

        with self.assertRaisesMessage(ErroAutenticacao, 'Token has expired or is invalid'):
            auth.verificar_token_confirmacao(token)

    def test_erros_com_as_mensagens_do_servico(self):
        auth = AuthMemoria(self.banco, self.estado)
        auth.cadastrar('ana@example.com', 'segredo1', {})

        with self.assertRaisesMessage(ErroAutenticacao, 'Invalid login credentials'):
            auth.entrar_com_senha('ana@example.com', 'errada')
        with self.assertRaisesMessage(ErroAutenticacao, 'User already registered'):
            auth.cadastrar('ana@example.com', 'segredo1', {})
        with self.assertRaisesMessage(ErroAutenticacao, 'Password should be at least 6 characters'):
            auth.cadastrar('bia@example.com', '123', {})

    def test_sair_invalida_o_token(self):
        auth = AuthMemoria(self.banco, self.estado)
        auth.cadastrar('ana@example.com', 'segredo1', {})

        auth.sair()

        self.assertIsNone(auth.obter_sessao())
        self.assertEqual(self.banco.tokens_acesso, {})


class EstadoTestCase(SimpleTestCase):

    def test_sessao_django_guarda_json(self):
        """
        Cenário: Decimal vira texto e o blob volta como dict.
        """
        session = {}
        estado = EstadoSessaoDjango(session)

        estado.salvar('cart-storage', {'total': Decimal('10.50')})

        self.assertIsInstance(session['vitrine:cart-storage'], str)
        self.assertEqual(estado.carregar('cart-storage'), {'total': '10.50'})
        estado.remover('cart-storage')
        self.assertIsNone(estado.carregar('cart-storage'))

    def test_blob_que_nao_e_objeto(self):
        estado = EstadoSessaoDjango({'vitrine:auth-storage': '[1, 2]'})

        with self.assertRaises(ValueError):
            estado.carregar('auth-storage')


# ====================================================================
# CLIENTES HTTP DO BaaS
# ====================================================================

class FiltrosPostgrestTestCase(SimpleTestCase):

    def test_conversao_de_filtros_e_ordem(self):
        params = filtros_para_params({
            'status': 'published',
            'price__gte': Decimal('10'),
            'featured': True,
            'id__in': ['a', 'b'],
            'parent_id__isnull': True,
            'name__ilike': '%anel%',
        })

        self.assertEqual(params, {
            'status': 'eq.published',
            'price': 'gte.10',
            'featured': 'eq.true',
            'id': 'in.(a,b)',
            'parent_id': 'is.null',
            'name': 'ilike.%anel%',
        })
        self.assertEqual(ordem_para_param(['-created_at', 'name']), 'created_at.desc,name.asc')


@patch('vitrine.infrastructure.baas.requests.request')
class SupabaseAuthGatewayTestCase(SimpleTestCase):

    def setUp(self):
        self.estado = EstadoMemoria()
        self.auth = SupabaseAuthGateway(
            self.estado, relogio=lambda: 1000, url='http://baas.test', chave_anonima='anon', timeout=5,
        )

    def test_entrar_guarda_a_sessao(self, request_mock):
        """
        Cenário: Login por senha devolve a sessão, que fica guardada no estado do cliente.
        """
        # ARRANGE
        request_mock.return_value = resposta(corpo={
            'access_token': 'at-1', 'refresh_token': 'rt-1', 'expires_in': 3600,
            'user': {'id': 'u1', 'email': 'ana@example.com', 'user_metadata': {'full_name': 'Ana'}},
        })
        eventos = []
        self.auth.ao_mudar_sessao(lambda evento, sessao: eventos.append(evento))

        # ACT
        sessao = self.auth.entrar_com_senha('ana@example.com', 'segredo1')

        # ASSERT
        metodo, url = request_mock.call_args[0]
        self.assertEqual((metodo, url), ('POST', 'http://baas.test/auth/v1/token'))
        self.assertEqual(request_mock.call_args[1]['params'], {'grant_type': 'password'})
        self.assertEqual(sessao.expira_em, 4600)
        self.assertEqual(self.estado.carregar(CHAVE_SESSAO_BAAS)['access_token'], 'at-1')
        self.assertEqual(eventos, ['SIGNED_IN'])

    def test_erro_do_servidor_vira_erro_de_autenticacao(self, request_mock):
        request_mock.return_value = resposta(400, {'error_description': 'Invalid login credentials'})

        with self.assertRaises(ErroAutenticacao) as contexto:
            self.auth.entrar_com_senha('ana@example.com', 'errada')

        self.assertEqual(contexto.exception.message, 'Invalid login credentials')
        self.assertEqual(contexto.exception.codigo, 400)

    def test_falha_de_rede(self, request_mock):
        request_mock.side_effect = requests.exceptions.ConnectionError('sem rede')

        with self.assertRaisesMessage(ErroAutenticacao, 'Network request failed'):
            self.auth.entrar_com_senha('ana@example.com', 'segredo1')

    def test_sessao_expirada_e_renovada(self, request_mock):
        """
        Cenário: A sessão salva está vencendo; obter_sessao usa o refresh token.
        """
        # ARRANGE
        antiga = SessaoMapper.to_entity({
            'access_token': 'at-velho', 'refresh_token': 'rt-velho', 'expires_at': 1000,
            'user': {'id': 'u1', 'email': 'ana@example.com'},
        })
        self.estado.salvar(CHAVE_SESSAO_BAAS, SessaoMapper.to_dict(antiga))
        request_mock.return_value = resposta(corpo={
            'access_token': 'at-novo', 'refresh_token': 'rt-novo', 'expires_at': 5000,
            'user': {'id': 'u1', 'email': 'ana@example.com'},
        })

        # ACT
        sessao = self.auth.obter_sessao()

        # ASSERT
        self.assertIsInstance(sessao, Sessao)
        self.assertEqual(sessao.access_token, 'at-novo')
        self.assertEqual(request_mock.call_args[1]['json'], {'refresh_token': 'rt-velho'})
        self.assertEqual(self.estado.carregar(CHAVE_SESSAO_BAAS)['access_token'], 'at-novo')

    def test_renovacao_recusada_encerra_a_sessao(self, request_mock):
        self.estado.salvar(CHAVE_SESSAO_BAAS, {
            'access_token': 'at-velho', 'refresh_token': 'rt-velho', 'expires_at': 900,
            'user': {'id': 'u1', 'email': 'ana@example.com'},
        })
        request_mock.return_value = resposta(400, {'msg': 'Invalid Refresh Token'})

        self.assertIsNone(self.auth.obter_sessao())
        self.assertIsNone(self.estado.carregar(CHAVE_SESSAO_BAAS))


@patch('vitrine.infrastructure.baas.requests.request')
class SupabaseDadosGatewayTestCase(SimpleTestCase):

    def setUp(self):
        estado = EstadoMemoria({CHAVE_SESSAO_BAAS: {
            'access_token': 'at-1', 'expires_at': None, 'user': {'id': 'u1', 'email': 'ana@example.com'},
        }})
        conexao = {'url': 'http://baas.test', 'chave_anonima': 'anon', 'timeout': 5}
        self.dados = SupabaseDadosGateway(SupabaseAuthGateway(estado, **conexao), **conexao)

    def test_selecionar_com_token_do_usuario(self, request_mock):
        request_mock.return_value = resposta(corpo=[{'id': 'p1'}])

        linhas = self.dados.selecionar('products', {'status': 'published'}, ordem=['-created_at'], limite=10)

        self.assertEqual(linhas, [{'id': 'p1'}])
        metodo, url = request_mock.call_args[0]
        kwargs = request_mock.call_args[1]
        self.assertEqual((metodo, url), ('GET', 'http://baas.test/rest/v1/products'))
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer at-1')
        self.assertEqual(kwargs['params'], {
            'select': '*', 'status': 'eq.published', 'order': 'created_at.desc', 'limit': '10',
        })

    def test_contar_pelo_content_range(self, request_mock):
        request_mock.return_value = resposta(headers={'Content-Range': '0-19/42'})

        self.assertEqual(self.dados.contar('orders', {'status': 'pending'}), 42)
        self.assertEqual(request_mock.call_args[0][0], 'HEAD')

    def test_inserir_publica_para_inscritos(self, request_mock):
        request_mock.return_value = resposta(201, [{'id': 'o1'}])
        eventos = []
        self.dados.inscrever('orders', lambda evento, linha: eventos.append((evento, linha['id'])))

        self.dados.inserir('orders', {'order_number': 'ORD-1'})

        self.assertEqual(eventos, [('INSERT', 'o1')])
        self.assertEqual(request_mock.call_args[1]['headers']['Prefer'], 'return=representation')

    def test_erro_de_consulta(self, request_mock):
        request_mock.return_value = resposta(500, {'message': 'Database connection lost'})

        with self.assertRaisesMessage(ColaboradorExternoError, 'Database connection lost'):
            self.dados.selecionar('orders')


@patch('vitrine.infrastructure.baas.requests.request')
class SupabaseStorageGatewayTestCase(SimpleTestCase):

    def setUp(self):
        estado = EstadoMemoria({CHAVE_SESSAO_BAAS: {
            'access_token': 'at-1', 'expires_at': None, 'user': {'id': 'u1', 'email': 'ana@example.com'},
        }})
        conexao = {'url': 'http://baas.test', 'chave_anonima': 'anon', 'timeout': 5}
        self.arquivos = SupabaseStorageGateway(SupabaseAuthGateway(estado, **conexao), **conexao)

    def test_enviar_devolve_url_publica(self, request_mock):
        request_mock.return_value = resposta(200, {'Key': 'avatars/u1/avatar.png'})

        url = self.arquivos.enviar('avatars', 'u1/avatar.png', b'png', 'image/png')

        self.assertEqual(url, 'http://baas.test/storage/v1/object/public/avatars/u1/avatar.png')
        metodo, endereco = request_mock.call_args[0]
        headers = request_mock.call_args[1]['headers']
        self.assertEqual((metodo, endereco), ('POST', 'http://baas.test/storage/v1/object/avatars/u1/avatar.png'))
        self.assertEqual(headers['Content-Type'], 'image/png')
        self.assertEqual(headers['Authorization'], 'Bearer at-1')

    def test_remover(self, request_mock):
        request_mock.return_value = resposta(200, [])

        self.arquivos.remover('products', ['p1/a.png', 'p1/b.png'])

        self.assertEqual(request_mock.call_args[1]['json'], {'prefixes': ['p1/a.png', 'p1/b.png']})


# ====================================================================
# GATEWAYS EXTERNOS
# ====================================================================

@patch('vitrine.infrastructure.gateways.requests.get')
class ViaCepGatewayTestCase(SimpleTestCase):

    def setUp(self):
        self.gateway = ViaCepGateway()

    def test_cep_encontrado(self, get_mock):
        get_mock.return_value = Mock(status_code=200)
        get_mock.return_value.json.return_value = {
            'cep': '01310-100', 'logradouro': 'Avenida Paulista', 'bairro': 'Bela Vista',
            'localidade': 'São Paulo', 'uf': 'SP', 'estado': 'São Paulo', 'regiao': 'Sudeste', 'ddd': '11',
        }

        endereco = self.gateway.buscar('01310100')

        self.assertEqual(endereco.rua, 'Avenida Paulista')
        self.assertEqual(endereco.cidade, 'São Paulo')
        self.assertTrue(endereco.valido)
        self.assertTrue(get_mock.call_args[0][0].endswith('/01310100/json/'))

    def test_cep_inexistente(self, get_mock):
        get_mock.return_value = Mock(status_code=200)
        get_mock.return_value.json.return_value = {'erro': True}

        with self.assertRaises(CepNaoEncontradoError):
            self.gateway.buscar('99999999')

    def test_tempo_esgotado(self, get_mock):
        get_mock.side_effect = requests.exceptions.Timeout()

        with self.assertRaisesMessage(ColaboradorExternoError, 'Tempo limite da requisição excedido'):
            self.gateway.buscar('01310100')


class PagamentoGatewayMockTestCase(SimpleTestCase):

    def setUp(self):
        self.gateway = PagamentoGatewayMock()

    def test_pix_gera_codigo(self):
        pagamento = self.gateway.gerar_pagamento('pix', Decimal('117.99'), {})

        self.assertEqual(pagamento.status_pagamento, 'pending')
        self.assertIn('br.gov.bcb.pix', pagamento.dados['pix_code'])
        self.assertEqual(pagamento.dados['amount'], '117.99')

    def test_cartao_guarda_so_o_final(self):
        pagamento = self.gateway.gerar_pagamento('credit', Decimal('50'), {'card_number': '4111 1111 1111 1234'})

        self.assertEqual(pagamento.status_pagamento, 'completed')
        self.assertEqual(pagamento.dados['card_last_four'], '1234')
        self.assertNotIn('card_number', pagamento.dados)

    def test_cartao_invalido(self):
        with self.assertRaises(PagamentoFalhouError):
            self.gateway.gerar_pagamento('credit', Decimal('50'), {'card_number': '1234'})
