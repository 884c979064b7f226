# vitrine/core/testes_identidade.py

import threading
import time
import unittest
from unittest.mock import Mock

from vitrine.core.contexto import ContextoLoja
from vitrine.core.entities import UsuarioAuth, Sessao, Identidade
from vitrine.core.exceptions import ColaboradorExternoError, ErroAutenticacao
from vitrine.core.identidade import (
    IdentidadeStore, RegistroSincronizacoes, mesclar_identidade, SITUACAO_PRONTO,
)


def criar_sessao(id='u1', email='ana@example.com', nome='Ana Souza', token='token-1'):
    usuario = UsuarioAuth(
        id=id,
        email=email,
        metadados={'full_name': nome},
        criado_em='2024-01-01T00:00:00+00:00',
        email_confirmado_em='2024-01-01T00:00:00+00:00',
    )
    return Sessao(access_token=token, usuario=usuario, refresh_token='refresh-1')


class TestMontagemIdentidade(unittest.TestCase):

    def test_registro_vence_apenas_nos_campos_preenchidos(self):
        """
        Cenário: O registro de `users` tem telefone mas não tem nome; o nome continua o da sessão.
        """
        usuario = criar_sessao().usuario

        identidade = mesclar_identidade(usuario, {'full_name': None, 'phone': '11999990000', 'role': 'customer'})

        self.assertEqual(identidade.nome_completo, 'Ana Souza')
        self.assertEqual(identidade.telefone, '11999990000')
        self.assertEqual(identidade.role, 'customer')
        self.assertEqual(identidade.email, 'ana@example.com')


class TestIdentidadeStoreSincronizacao(unittest.TestCase):

    def setUp(self):
        """
        Store com colaboradores de autenticação e dados simulados e um
        registro de sincronizações exclusivo do teste.
        """
        self.sessao = criar_sessao()
        self.auth_mock = Mock()
        self.auth_mock.obter_sessao.return_value = self.sessao
        self.dados_mock = Mock()
        self.dados_mock.buscar_um.return_value = {
            'id': 'u1', 'email': 'ana@example.com', 'full_name': 'Ana Maria Souza',
            'role': 'admin', 'permissions': None,
        }
        self.store = IdentidadeStore(self.auth_mock, self.dados_mock, sincronizacoes=RegistroSincronizacoes())

    def test_identidade_em_duas_fases(self):
        """
        Cenário: Primeiro o cliente aparece logado com os dados da sessão;
        depois a role chega do registro persistido.
        """
        # ARRANGE
        vistos = []
        self.store.inscrever(lambda s: vistos.append(
            (s.identidade.nome_completo, s.identidade.role) if s.identidade else None
        ))

        # ACT
        self.store.inicializar()

        # ASSERT
        self.assertEqual(vistos[0], ('Ana Souza', None))
        self.assertEqual(vistos[-1], ('Ana Maria Souza', 'admin'))
        self.assertTrue(self.store.is_authenticated)
        self.assertTrue(self.store.is_admin())
        self.assertEqual(self.store.situacao, SITUACAO_PRONTO)
        self.auth_mock.ao_mudar_sessao.assert_called_once()

    def test_inicializar_roda_uma_vez(self):
        self.store.inicializar()
        self.store.inicializar()

        self.auth_mock.obter_sessao.assert_called_once()

    def test_cria_o_registro_quando_nao_existe(self):
        """
        Cenário: Primeiro acesso do usuário; o registro é criado a partir da sessão.
        """
        # ARRANGE
        self.dados_mock.buscar_um.return_value = None
        self.dados_mock.inserir.side_effect = lambda colecao, linha: [linha]

        # ACT
        self.store.inicializar()

        # ASSERT
        colecao, linha = self.dados_mock.inserir.call_args[0]
        self.assertEqual(colecao, 'users')
        self.assertEqual(linha['id'], 'u1')
        self.assertEqual(linha['full_name'], 'Ana Souza')
        self.assertEqual(linha['role'], 'customer')
        self.assertEqual(self.store.identidade.role, 'customer')

    def test_falha_na_sincronizacao_mantem_identidade_provisoria(self):
        """
        Cenário: O colaborador de dados está fora do ar; o cliente segue logado com os dados da sessão.
        """
        self.dados_mock.buscar_um.side_effect = ColaboradorExternoError('Network request failed')

        self.store.inicializar()

        self.assertTrue(self.store.is_authenticated)
        self.assertEqual(self.store.identidade.nome_completo, 'Ana Souza')
        self.assertEqual(self.store.situacao, SITUACAO_PRONTO)

    def test_email_da_sessao_substitui_o_da_identidade_salva(self):
        """
        Cenário: A identidade reidratada traz um e-mail antigo e o registro
        não pode ser lido; o e-mail publicado é o da sessão.
        """
        # ARRANGE
        self.store.identidade = Identidade(id='u1', email='antigo@example.com', role='admin')
        self.auth_mock.obter_sessao.return_value = criar_sessao(email='novo@example.com')
        self.dados_mock.buscar_um.side_effect = ColaboradorExternoError('Network request failed')

        # ACT
        self.store.inicializar()

        # ASSERT
        self.assertEqual(self.store.identidade.email, 'novo@example.com')

    def test_outro_usuario_e_sincronizado_de_novo(self):
        """
        Cenário: Depois do usuário u1, entra o usuário u2 na mesma store; u2 também é sincronizado.
        """
        # ARRANGE
        self.dados_mock.buscar_um.side_effect = lambda colecao, filtros: {'id': filtros['id'], 'role': 'customer'}
        self.store.inicializar()

        # ACT
        self.store._ao_mudar_sessao('SIGNED_IN', criar_sessao('u2', 'bia@example.com', 'Bia Lima', 'token-2'))

        # ASSERT
        self.assertEqual(self.store.identidade.id, 'u2')
        self.assertEqual(self.store.identidade.role, 'customer')
        self.dados_mock.buscar_um.assert_called_with('users', {'id': 'u2'})

    def test_recarregar_le_o_registro_de_novo(self):
        """
        Cenário: A role muda no registro depois da sincronização; recarregar traz a nova role.
        """
        # ARRANGE
        self.store.inicializar()
        self.dados_mock.buscar_um.return_value = {'id': 'u1', 'role': 'customer'}

        # ACT
        self.store.recarregar_dados_usuario()

        # ASSERT
        self.assertEqual(self.dados_mock.buscar_um.call_count, 2)
        self.assertFalse(self.store.is_admin())

    def test_sincronizacoes_concorrentes_criam_um_unico_registro(self):
        """
        Cenário: Duas stores do mesmo usuário sincronizam ao mesmo tempo; só uma cria o registro.
        """
        # ARRANGE
        registros = {}
        erros = []

        def buscar_um(colecao, filtros):
            time.sleep(0.05)
            return registros.get(filtros['id'])

        def inserir(colecao, linha):
            if linha['id'] in registros:
                raise ColaboradorExternoError('duplicate key value violates unique constraint "users_pkey"')
            registros[linha['id']] = linha
            return [linha]

        dados = Mock()
        dados.buscar_um.side_effect = buscar_um
        dados.inserir.side_effect = inserir
        sincronizacoes = RegistroSincronizacoes()

        stores = []
        for _ in range(2):
            store = IdentidadeStore(Mock(), dados, sincronizacoes=sincronizacoes)
            store.sessao = self.sessao
            stores.append(store)

        def sincronizar(store):
            try:
                store.sincronizar_dados_usuario(self.sessao.usuario)
            except Exception as e:
                erros.append(e)

        # ACT
        threads = [threading.Thread(target=sincronizar, args=(store,)) for store in stores]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # ASSERT
        self.assertEqual(erros, [])
        self.assertEqual(dados.inserir.call_count, 1)
        self.assertEqual([s.identidade.id for s in stores], ['u1', 'u1'])
        self.assertEqual(sincronizacoes.ativos(), 0)


class TestIdentidadeStoreAutenticacao(unittest.TestCase):

    def setUp(self):
        self.auth_mock = Mock()
        self.auth_mock.obter_sessao.return_value = None
        self.dados_mock = Mock()
        self.dados_mock.buscar_um.return_value = {'id': 'u1', 'role': 'customer'}
        self.relogio = Mock(return_value=1000.0)
        self.store = IdentidadeStore(
            self.auth_mock, self.dados_mock, sincronizacoes=RegistroSincronizacoes(), relogio=self.relogio,
        )

    def test_entrar_com_sucesso(self):
        self.auth_mock.entrar_com_senha.return_value = criar_sessao()

        self.assertTrue(self.store.entrar('ana@example.com', 'segredo1'))

        self.assertTrue(self.store.is_authenticated)
        self.assertEqual(self.store.identidade.role, 'customer')
        self.assertFalse(self.store.carregando)

    def test_entrar_com_senha_errada(self):
        """
        Cenário: Credenciais inválidas viram a mensagem traduzida.
        """
        self.auth_mock.entrar_com_senha.side_effect = ErroAutenticacao('Invalid login credentials', codigo=400)

        self.assertFalse(self.store.entrar('ana@example.com', 'errada'))

        self.assertEqual(self.store.erro.titulo, 'Erro de Login')
        self.assertFalse(self.store.carregando)
        self.assertFalse(self.store.is_authenticated)

    def test_cadastro_pendente_de_confirmacao(self):
        """
        Cenário: O serviço exige confirmação de e-mail; o cadastro devolve False com o aviso.
        """
        # ARRANGE
        self.auth_mock.cadastrar.return_value = UsuarioAuth(id='u9', email='bia@example.com')

        # ACT
        resultado = self.store.cadastrar('bia@example.com', 'segredo1', nome_completo='Bia')

        # ASSERT
        self.assertFalse(resultado)
        self.assertEqual(self.store.email_pendente_confirmacao, 'bia@example.com')
        self.assertEqual(self.store.erro.titulo, 'Confirmação enviada')
        self.auth_mock.cadastrar.assert_called_once_with('bia@example.com', 'segredo1', {'full_name': 'Bia'})

    def test_reenvio_respeita_o_intervalo(self):
        """
        Cenário: Um reenvio dentro de 60 segundos é recusado sem chamar o serviço.
        """
        # ACT / ASSERT: primeiro envio
        self.assertTrue(self.store.reenviar_confirmacao('bia@example.com'))

        # 30 segundos depois
        self.relogio.return_value = 1030.0
        self.assertEqual(self.store.segundos_para_reenvio(), 30)
        self.assertFalse(self.store.reenviar_confirmacao('bia@example.com'))
        self.assertEqual(self.auth_mock.reenviar_confirmacao.call_count, 1)

        # 60 segundos depois
        self.relogio.return_value = 1060.0
        self.assertEqual(self.store.segundos_para_reenvio(), 0)
        self.assertTrue(self.store.reenviar_confirmacao('bia@example.com'))
        self.assertEqual(self.auth_mock.reenviar_confirmacao.call_count, 2)

    def test_reenvio_sem_email(self):
        self.assertFalse(self.store.reenviar_confirmacao())
        self.auth_mock.reenviar_confirmacao.assert_not_called()

    def test_sair_limpa_tudo(self):
        """
        Cenário: Logout aceito pelo serviço limpa identidade, sessão e dados de conta.
        """
        # ARRANGE
        self.auth_mock.entrar_com_senha.return_value = criar_sessao()
        self.store.entrar('ana@example.com', 'segredo1')
        self.store.enderecos = [Mock()]
        self.store.pedidos = [Mock()]

        # ACT
        resultado = self.store.sair()

        # ASSERT
        self.assertTrue(resultado)
        self.assertIsNone(self.store.identidade)
        self.assertFalse(self.store.is_authenticated)
        self.assertEqual(self.store.enderecos, [])
        self.assertEqual(self.store.pedidos, [])

    def test_sair_com_falha_nao_muda_nada(self):
        """
        Cenário: O serviço recusa o logout; o cliente continua logado.
        """
        self.auth_mock.entrar_com_senha.return_value = criar_sessao()
        self.store.entrar('ana@example.com', 'segredo1')
        self.auth_mock.sair.side_effect = ErroAutenticacao('Network request failed')

        self.assertFalse(self.store.sair())

        self.assertTrue(self.store.is_authenticated)
        self.assertEqual(self.store.identidade.id, 'u1')
        self.assertEqual(self.store.erro.mensagem, 'Erro ao fazer logout')


class TestIdentidadeStoreConta(unittest.TestCase):

    def setUp(self):
        self.auth_mock = Mock()
        self.dados_mock = Mock()
        self.store = IdentidadeStore(self.auth_mock, self.dados_mock, sincronizacoes=RegistroSincronizacoes())
        self.store.sessao = criar_sessao()
        self.store.identidade = Identidade(id='u1', email='ana@example.com', nome_completo='Ana Souza')

    def test_atualizar_perfil(self):
        """
        Cenário: Só os campos editáveis são gravados em `users` e nos metadados da sessão;
        a linha devolvida pelo colaborador é mesclada na identidade.
        """
        # ARRANGE
        self.dados_mock.atualizar.return_value = [
            {'id': 'u1', 'full_name': 'Ana Lima', 'updated_at': '2024-02-01T10:00:00+00:00'},
        ]

        # ACT
        resultado = self.store.atualizar_perfil({'nome_completo': 'Ana Lima', 'role': 'admin'})

        # ASSERT
        self.assertTrue(resultado)
        colecao, filtros, colunas = self.dados_mock.atualizar.call_args[0]
        self.assertEqual((colecao, filtros), ('users', {'id': 'u1'}))
        self.assertEqual(colunas['full_name'], 'Ana Lima')
        self.assertNotIn('role', colunas)
        self.auth_mock.atualizar_usuario.assert_called_once_with({'full_name': 'Ana Lima'})
        self.assertEqual(self.store.identidade.nome_completo, 'Ana Lima')
        self.assertEqual(self.store.identidade.primeiro_nome, 'Ana')
        self.assertEqual(self.store.identidade.atualizado_em, '2024-02-01T10:00:00+00:00')

    def test_atualizar_perfil_com_falha(self):
        self.dados_mock.atualizar.side_effect = ColaboradorExternoError('timeout')

        self.assertFalse(self.store.atualizar_perfil({'telefone': '11999990000'}))

        self.assertEqual(self.store.erro.mensagem, 'Erro ao atualizar perfil')
        self.assertIsNone(self.store.identidade.telefone)

    def test_falha_nos_metadados_nao_altera_o_registro(self):
        """
        Cenário: A autenticação recusa os novos metadados; o registro em `users` não é tocado.
        """
        self.auth_mock.atualizar_usuario.side_effect = ColaboradorExternoError('timeout')

        self.assertFalse(self.store.atualizar_perfil({'telefone': '11999990000'}))

        self.dados_mock.atualizar.assert_not_called()
        self.assertIsNone(self.store.identidade.telefone)

    def test_reembolso_de_pedido_nao_entregue(self):
        """
        Cenário: O pedido ainda está em processamento; a solicitação é recusada com a mensagem do domínio.
        """
        self.dados_mock.buscar_um.return_value = {'id': 'p1', 'user_id': 'u1', 'status': 'processing'}
        self.dados_mock.selecionar.return_value = []

        self.assertFalse(self.store.solicitar_reembolso('p1', 'Defeito', ''))

        self.assertIn('entregues', self.store.erro.mensagem)
        self.dados_mock.inserir.assert_not_called()

    def test_enviar_avatar(self):
        # ARRANGE
        self.store.arquivos = Mock()
        self.store.arquivos.enviar.return_value = 'https://cdn.example.com/avatars/u1/avatar.png'

        # ACT
        url = self.store.atualizar_avatar(b'png', 'image/png')

        # ASSERT
        self.assertEqual(url, 'https://cdn.example.com/avatars/u1/avatar.png')
        self.store.arquivos.enviar.assert_called_once_with('avatars', 'u1/avatar.png', b'png', 'image/png')
        self.assertEqual(self.dados_mock.atualizar.call_args[0][2]['avatar_url'], url)
        self.assertEqual(self.store.identidade.avatar_url, url)

    def test_limpar_erro(self):
        self.dados_mock.atualizar.side_effect = ColaboradorExternoError('timeout')
        self.store.atualizar_perfil({'telefone': '11999990000'})

        self.store.limpar_erro()

        self.assertIsNone(self.store.erro)

    def test_sem_identidade_nada_acontece(self):
        self.store.identidade = None

        self.assertFalse(self.store.adicionar_endereco({'rua': 'Rua A'}))
        self.dados_mock.inserir.assert_not_called()


class TestContextoLoja(unittest.TestCase):

    def test_iniciar_e_encerrar(self):
        """
        Cenário: O contexto inicializa a autenticação uma vez e solta a inscrição ao encerrar.
        """
        # ARRANGE
        auth_mock = Mock()
        auth_mock.obter_sessao.return_value = None
        cancelar = Mock()
        auth_mock.ao_mudar_sessao.return_value = cancelar
        estado_mock = Mock()
        estado_mock.carregar.return_value = None

        # ACT
        with ContextoLoja(auth_mock, Mock(), estado_mock) as contexto:
            contexto.iniciar()
            self.assertFalse(contexto.identidade.is_authenticated)
            self.assertEqual(contexto.carrinho.itens, [])

        # ASSERT
        auth_mock.obter_sessao.assert_called_once()
        cancelar.assert_called_once_with()


if __name__ == '__main__':
    unittest.main()
