class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    def __init__(self, message="Ocorreu um erro na loja."):
        self.message = message
        super().__init__(self.message)

class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos."""
    def __init__(self, message="Os dados fornecidos são inválidos."):
        super().__init__(message)

# ===============================================
# ERROS DE ENTIDADE
# ===============================================

class ItemNaoEncontradoError(BaseErroCore):
    """Erro levantado quando um item (genérico) não é encontrado."""
    def __init__(self, message="O item solicitado não foi encontrado."):
        super().__init__(message)

class ProdutoNaoEncontradoError(ItemNaoEncontradoError):
    """Erro levantado quando um produto específico não é encontrado."""
    def __init__(self, message="O produto solicitado não foi encontrado."):
        super().__init__(message)

class PedidoNaoEncontradoError(ItemNaoEncontradoError):
    """Erro específico para Pedidos não encontrados."""
    pass

class PermissaoNegadaError(BaseErroCore):
    """Erro levantado quando o usuário não tem permissão para o recurso/ação."""
    def __init__(self, recurso: str = '', acao: str = '', message=None):
        self.recurso = recurso
        self.acao = acao
        if message is None:
            message = f"Sem permissão para '{acao}' em '{recurso}'."
        super().__init__(message)

# ===============================================
# ERROS DOS COLABORADORES EXTERNOS (BaaS)
# ===============================================

class ColaboradorExternoError(BaseErroCore):
    """Falha de rede ou de consulta em um serviço externo (dados, storage)."""
    def __init__(self, message="Falha ao comunicar com o servidor.", codigo=None):
        self.codigo = codigo
        super().__init__(message)

class ErroAutenticacao(ColaboradorExternoError):
    """Erro devolvido pelo serviço de autenticação (mensagem original em inglês)."""
    pass

# ===============================================
# ERROS DE CEP
# ===============================================

class CepInvalidoError(DadosInvalidosError):
    def __init__(self, message="CEP deve conter exatamente 8 dígitos"):
        super().__init__(message)

class CepNaoEncontradoError(ItemNaoEncontradoError):
    def __init__(self, message="CEP não encontrado"):
        super().__init__(message)

# ===============================================
# ERROS DE FLUXO DE COMPRA E PÓS-VENDA
# ===============================================

class CarrinhoVazioError(BaseErroCore):
    """Erro levantado ao tentar fazer checkout com carrinho vazio."""
    def __init__(self, message="O carrinho de compras está vazio."):
        super().__init__(message)

class PagamentoFalhouError(BaseErroCore):
    """Erro levantado quando o pagamento simulado é rejeitado."""
    def __init__(self, message="A transação de pagamento foi rejeitada ou falhou."):
        super().__init__(message)

class StatusInvalidoError(BaseErroCore):
    """Erro levantado ao tentar definir um status de pedido inválido."""
    def __init__(self, message="O status fornecido não é válido para um pedido."):
        super().__init__(message)

class PedidoNaoCancelavelError(BaseErroCore):
    def __init__(self, status: str, message=None):
        self.status = status
        if message is None:
            message = f"Pedido com status '{status}' não pode ser cancelado."
        super().__init__(message)

class ReembolsoNaoPermitidoError(BaseErroCore):
    def __init__(self, status: str, message=None):
        self.status = status
        if message is None:
            message = f"Reembolso disponível apenas para pedidos entregues (status atual: '{status}')."
        super().__init__(message)
