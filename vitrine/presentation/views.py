import logging

from rest_framework import status
from rest_framework.parsers import MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from vitrine.core import dependency_injection as di
from vitrine.core.carrinho import OPCOES_FRETE
from vitrine.core.erros_auth import TradutorErrosAuth
from vitrine.core.exceptions import (
    BaseErroCore,
    CarrinhoVazioError,
    CepInvalidoError,
    CepNaoEncontradoError,
    ColaboradorExternoError,
    DadosInvalidosError,
    ItemNaoEncontradoError,
    PagamentoFalhouError,
    PermissaoNegadaError,
)
from .serializers import (
    AdicionarItemSerializer,
    AtualizarPedidoAdminSerializer,
    AtualizarPerfilSerializer,
    AtualizarQuantidadeSerializer,
    CadastroSerializer,
    CancelarPedidoSerializer,
    CarrinhoSerializer,
    CategoriaSerializer,
    CheckoutSerializer,
    ConfirmacaoEmailSerializer,
    EnderecoCepSerializer,
    EnderecoSerializer,
    EscolherFreteSerializer,
    IdentidadeSerializer,
    LoginSerializer,
    MensagemErroSerializer,
    MetricasPedidosSerializer,
    OpcaoFreteSerializer,
    PedidoSerializer,
    ProdutoSerializer,
    ReenvioConfirmacaoSerializer,
    ResumoPedidoSerializer,
    SolicitacaoReembolsoSerializer,
    SolicitarReembolsoSerializer,
)

logger = logging.getLogger(__name__)


# ====================================================================
# VIEWS: Orquestram a requisição, a execução dos casos de uso e a resposta.
# ====================================================================

def _resposta_erro(erro, status_http=status.HTTP_400_BAD_REQUEST) -> Response:
    """Erro da store (MensagemErro) no formato {'message', 'titulo', 'tipo', 'email'}."""
    if erro is None:
        return Response({'message': 'Não foi possível concluir a operação.'}, status=status_http)
    dados = MensagemErroSerializer(erro).data
    return Response({'message': erro.mensagem, **dados}, status=status_http)


def _falha_externa(e: ColaboradorExternoError) -> Response:
    logger.error("Falha no colaborador externo: %s", e.message)
    return Response({'message': e.message}, status=status.HTTP_502_BAD_GATEWAY)


# ====================================================================
# 1. CATÁLOGO
# ====================================================================

class ProdutosAPIView(APIView):
    """Lista os produtos publicados, com filtros por query string."""

    def get(self, request):
        params = request.query_params
        destaque = params.get('destaque')
        try:
            produtos = di.get_catalogo_use_case(request.loja).listar_produtos(
                categoria_id=params.get('categoria') or None,
                busca=params.get('busca', '').strip() or None,
                destaque=destaque.lower() in ('1', 'true', 'sim') if destaque else None,
                preco_min=params.get('preco_min') or None,
                preco_max=params.get('preco_max') or None,
                limite=int(params['limite']) if params.get('limite', '').isdigit() else None,
                deslocamento=int(params['deslocamento']) if params.get('deslocamento', '').isdigit() else None,
            )
        except ColaboradorExternoError as e:
            return _falha_externa(e)
        return Response(ProdutoSerializer(produtos, many=True).data)


class ProdutoDetalheAPIView(APIView):

    def get(self, request, produto_id):
        try:
            produto = di.get_catalogo_use_case(request.loja).buscar_produto(produto_id)
        except ItemNaoEncontradoError as e:
            return Response({'message': e.message}, status=status.HTTP_404_NOT_FOUND)
        except ColaboradorExternoError as e:
            return _falha_externa(e)
        return Response(ProdutoSerializer(produto).data)


class CategoriasAPIView(APIView):

    def get(self, request):
        try:
            categorias = di.get_catalogo_use_case(request.loja).listar_categorias()
        except ColaboradorExternoError as e:
            return _falha_externa(e)
        return Response(CategoriaSerializer(categorias, many=True).data)


# ====================================================================
# 2. CARRINHO
# ====================================================================

class CarrinhoAPIView(APIView):
    """
    API View para o carrinho do cliente (logado ou não).
    """

    def get(self, request):
        return Response(CarrinhoSerializer(request.loja.carrinho).data)

    def post(self, request):
        """
        Adiciona um produto ao carrinho (uma unidade por padrão).
        """
        serializer = AdicionarItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        produto_id = serializer.validated_data['produto_id']
        quantidade = serializer.validated_data['quantidade']

        try:
            produto = di.get_catalogo_use_case(request.loja).buscar_produto(produto_id)
        except ItemNaoEncontradoError as e:
            return Response({'message': e.message}, status=status.HTTP_400_BAD_REQUEST)
        except ColaboradorExternoError as e:
            return _falha_externa(e)

        carrinho = request.loja.carrinho
        carrinho.adicionar_item(produto)
        if quantidade > 1:
            carrinho.atualizar_quantidade(produto.id, carrinho.obter_quantidade_item(produto.id) + quantidade - 1)
        return Response(CarrinhoSerializer(carrinho).data, status=status.HTTP_201_CREATED)

    def delete(self, request):
        """
        Esvazia o carrinho.
        """
        request.loja.carrinho.limpar_carrinho()
        return Response(CarrinhoSerializer(request.loja.carrinho).data)


class ItemCarrinhoAPIView(APIView):

    def patch(self, request, produto_id):
        serializer = AtualizarQuantidadeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        request.loja.carrinho.atualizar_quantidade(produto_id, serializer.validated_data['quantidade'])
        return Response(CarrinhoSerializer(request.loja.carrinho).data)

    def delete(self, request, produto_id):
        request.loja.carrinho.remover_item(produto_id)
        return Response(CarrinhoSerializer(request.loja.carrinho).data)


class FreteAPIView(APIView):
    """Opções de frete e a opção escolhida no carrinho."""

    def get(self, request):
        return Response({
            'opcoes': OpcaoFreteSerializer(OPCOES_FRETE, many=True).data,
            'selecionado': OpcaoFreteSerializer(request.loja.carrinho.frete).data,
        })

    def put(self, request):
        serializer = EscolherFreteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            opcao = request.loja.carrinho.definir_frete(serializer.validated_data['metodo'])
        except DadosInvalidosError as e:
            return Response({'message': e.message}, status=status.HTTP_400_BAD_REQUEST)
        return Response(OpcaoFreteSerializer(opcao).data)


class ResumoPedidoAPIView(APIView):

    def get(self, request):
        return Response(ResumoPedidoSerializer(request.loja.carrinho.calcular_resumo()).data)


# ====================================================================
# 3. AUTENTICAÇÃO
# ====================================================================

class EntrarAPIView(APIView):

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade
        if not identidade.entrar(serializer.validated_data['email'], serializer.validated_data['senha']):
            return _resposta_erro(identidade.erro)
        return Response(IdentidadeSerializer(identidade.identidade).data)


class CadastrarAPIView(APIView):

    def post(self, request):
        serializer = CadastroSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dados = serializer.validated_data
        identidade = request.loja.identidade

        if identidade.cadastrar(
            dados['email'],
            dados['senha'],
            nome_completo=dados.get('nome_completo'),
            telefone=dados.get('telefone'),
            cpf=dados.get('cpf'),
        ):
            corpo = IdentidadeSerializer(identidade.identidade).data if identidade.identidade else {}
            return Response(corpo, status=status.HTTP_201_CREATED)

        if identidade.email_pendente_confirmacao == dados['email']:
            return _resposta_erro(identidade.erro, status.HTTP_202_ACCEPTED)
        return _resposta_erro(identidade.erro)


class SairAPIView(APIView):

    def post(self, request):
        identidade = request.loja.identidade
        if not identidade.sair():
            return _resposta_erro(identidade.erro)
        return Response({'message': TradutorErrosAuth.mensagem_sucesso('logout').mensagem})


class ReenviarConfirmacaoAPIView(APIView):

    def post(self, request):
        serializer = ReenvioConfirmacaoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade

        restante = identidade.segundos_para_reenvio()
        if restante:
            return Response(
                {'message': f'Aguarde {restante} segundos para reenviar o e-mail.', 'segundos_restantes': restante},
                status=status.HTTP_429_TOO_MANY_REQUESTS,
            )
        if not identidade.reenviar_confirmacao(serializer.validated_data.get('email')):
            return _resposta_erro(identidade.erro)
        return Response({'message': identidade.erro.mensagem})


class ConfirmarEmailAPIView(APIView):

    def post(self, request):
        serializer = ConfirmacaoEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade
        if not identidade.confirmar_email(serializer.validated_data['token']):
            return _resposta_erro(identidade.erro)
        return Response(IdentidadeSerializer(identidade.identidade).data)


# ====================================================================
# 4. PERFIL (ÁREA DO CLIENTE)
# ====================================================================

class PerfilAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(IdentidadeSerializer(request.loja.identidade.identidade).data)

    def patch(self, request):
        serializer = AtualizarPerfilSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade
        if not identidade.atualizar_perfil(serializer.validated_data):
            return _resposta_erro(identidade.erro)
        return Response(IdentidadeSerializer(identidade.identidade).data)


class AvatarAPIView(APIView):
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser]

    def post(self, request):
        arquivo = request.FILES.get('avatar')
        if arquivo is None or not (arquivo.content_type or '').startswith('image/'):
            return Response({'message': 'Envie uma imagem no campo "avatar".'}, status=status.HTTP_400_BAD_REQUEST)

        identidade = request.loja.identidade
        url = identidade.atualizar_avatar(arquivo.read(), arquivo.content_type)
        if url is None:
            return _resposta_erro(identidade.erro)
        return Response({'avatar_url': url})


class PermissoesAPIView(APIView):
    """Consulta de acesso ao painel: `?rota=` e/ou `?recurso=&acao=`."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        identidade = request.loja.identidade
        resposta = {'is_admin': identidade.is_admin()}

        rota = request.query_params.get('rota')
        if rota:
            resposta['rota'] = rota
            resposta['pode_acessar'] = identidade.pode_acessar(rota)

        recurso, acao = request.query_params.get('recurso'), request.query_params.get('acao')
        if recurso and acao:
            resposta['tem_permissao'] = identidade.tem_permissao(recurso, acao)
        return Response(resposta)


class EnderecosAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        enderecos = request.loja.identidade.carregar_enderecos()
        return Response(EnderecoSerializer(enderecos, many=True).data)

    def post(self, request):
        serializer = EnderecoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade
        if not identidade.adicionar_endereco(serializer.validated_data):
            return _resposta_erro(identidade.erro)
        return Response(EnderecoSerializer(identidade.enderecos, many=True).data, status=status.HTTP_201_CREATED)


class EnderecoDetalheAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, endereco_id):
        serializer = EnderecoSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        # Em atualização parcial só os campos enviados contam
        campos = {nome: valor for nome, valor in serializer.validated_data.items() if nome in request.data}
        identidade = request.loja.identidade
        if not identidade.atualizar_endereco(endereco_id, campos):
            return _resposta_erro(identidade.erro)
        return Response(EnderecoSerializer(identidade.enderecos, many=True).data)

    def delete(self, request, endereco_id):
        identidade = request.loja.identidade
        if not identidade.remover_endereco(endereco_id):
            return _resposta_erro(identidade.erro)
        return Response(status=status.HTTP_204_NO_CONTENT)


class EnderecoPadraoAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, endereco_id):
        identidade = request.loja.identidade
        if not identidade.definir_endereco_padrao(endereco_id):
            return _resposta_erro(identidade.erro)
        return Response(EnderecoSerializer(identidade.enderecos, many=True).data)


# ====================================================================
# 5. PEDIDOS E CHECKOUT
# ====================================================================

class PedidosAPIView(APIView):
    """Histórico de pedidos do cliente logado."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        pedidos = request.loja.identidade.carregar_pedidos()
        return Response(PedidoSerializer(pedidos, many=True).data)


class CancelarPedidoAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pedido_id):
        serializer = CancelarPedidoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade
        if not identidade.cancelar_pedido(pedido_id, serializer.validated_data['motivo']):
            return _resposta_erro(identidade.erro)
        return Response({'message': 'Pedido cancelado.'})


class ReembolsosAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        solicitacoes = request.loja.identidade.carregar_solicitacoes_reembolso()
        return Response(SolicitacaoReembolsoSerializer(solicitacoes, many=True).data)


class SolicitarReembolsoAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pedido_id):
        serializer = SolicitarReembolsoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identidade = request.loja.identidade
        if not identidade.solicitar_reembolso(
            pedido_id, serializer.validated_data['motivo'], serializer.validated_data['descricao'],
        ):
            return _resposta_erro(identidade.erro)
        return Response(
            SolicitacaoReembolsoSerializer(identidade.solicitacoes_reembolso[0]).data,
            status=status.HTTP_201_CREATED,
        )


class CheckoutAPIView(APIView):
    """
    API View para finalizar o pedido com o carrinho atual.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dados = serializer.validated_data

        try:
            resultado = di.get_criar_pedido_use_case(request.loja).executar(
                request.loja.carrinho,
                request.loja.identidade.identidade,
                metodo_pagamento=dados['metodo_pagamento'],
                endereco_entrega=dict(dados['endereco_entrega']),
                endereco_cobranca=dict(dados['endereco_cobranca']) if dados.get('endereco_cobranca') else None,
                dados_pagamento=dados['dados_pagamento'],
                observacoes=dados.get('observacoes'),
            )
        except (CarrinhoVazioError, DadosInvalidosError, PagamentoFalhouError) as e:
            return Response({'message': e.message}, status=status.HTTP_400_BAD_REQUEST)

        if not resultado.sucesso:
            return Response({'message': resultado.erro}, status=status.HTTP_502_BAD_GATEWAY)
        return Response(
            {
                'message': 'Pedido criado com sucesso!',
                'pedido_id': resultado.pedido_id,
                'numero_pedido': resultado.numero_pedido,
            },
            status=status.HTTP_201_CREATED,
        )


class CepAPIView(APIView):

    def get(self, request, cep):
        try:
            endereco = di.get_buscar_cep_use_case().executar(cep)
        except CepInvalidoError as e:
            return Response({'message': e.message}, status=status.HTTP_400_BAD_REQUEST)
        except CepNaoEncontradoError as e:
            return Response({'message': e.message}, status=status.HTTP_404_NOT_FOUND)
        except ColaboradorExternoError as e:
            return _falha_externa(e)
        return Response(EnderecoCepSerializer(endereco).data)


# ====================================================================
# 6. PAINEL ADMINISTRATIVO
# ====================================================================

class AdminAPIView(APIView):
    """Base das views do painel: traduz os erros dos casos de uso administrativos."""
    permission_classes = [IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, PermissaoNegadaError):
            return Response({'message': exc.message}, status=status.HTTP_403_FORBIDDEN)
        if isinstance(exc, ItemNaoEncontradoError):
            return Response({'message': exc.message}, status=status.HTTP_404_NOT_FOUND)
        if isinstance(exc, ColaboradorExternoError):
            return _falha_externa(exc)
        if isinstance(exc, BaseErroCore):
            return Response({'message': exc.message}, status=status.HTTP_400_BAD_REQUEST)
        return super().handle_exception(exc)


class AdminPedidosAPIView(AdminAPIView):

    def get(self, request):
        params = request.query_params
        limite = int(params['limite']) if params.get('limite', '').isdigit() else 20
        deslocamento = int(params['deslocamento']) if params.get('deslocamento', '').isdigit() else 0
        pedidos, total = di.get_pedidos_admin_use_case(request.loja).listar(
            status=params.get('status'),
            status_pagamento=params.get('status_pagamento'),
            limite=limite,
            deslocamento=deslocamento,
        )
        return Response({'count': total, 'results': PedidoSerializer(pedidos, many=True).data})


class AdminPedidoDetalheAPIView(AdminAPIView):

    def get(self, request, pedido_id):
        pedido = di.get_pedidos_admin_use_case(request.loja).detalhar(pedido_id)
        return Response(PedidoSerializer(pedido).data)

    def patch(self, request, pedido_id):
        serializer = AtualizarPedidoAdminSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        uc = di.get_pedidos_admin_use_case(request.loja)

        pedido = None
        if 'status' in serializer.validated_data:
            pedido = uc.atualizar_status(pedido_id, serializer.validated_data['status'])
        if 'observacoes' in serializer.validated_data:
            pedido = uc.adicionar_observacao(pedido_id, serializer.validated_data['observacoes'])
        return Response(PedidoSerializer(pedido).data)


class AdminMetricasAPIView(AdminAPIView):

    def get(self, request):
        metricas = di.get_pedidos_admin_use_case(request.loja).metricas(
            inicio=request.query_params.get('inicio'),
            fim=request.query_params.get('fim'),
        )
        return Response(MetricasPedidosSerializer(metricas).data)
