# vitrine/core/erros_auth.py
"""
Tradução das mensagens de erro do serviço de autenticação para textos
exibidos ao cliente.
"""
from typing import Dict, Optional

from vitrine.core.entities import MensagemErro

TIPO_EMAIL_NAO_CONFIRMADO = 'email_not_confirmed'

_TRADUCOES: Dict[str, MensagemErro] = {
    'Invalid login credentials': MensagemErro(
        titulo='Erro de Login',
        mensagem='E-mail ou senha incorretos. Verifique suas credenciais e tente novamente.',
    ),
    'Email not confirmed': MensagemErro(
        titulo='E-mail não confirmado',
        mensagem='Você precisa confirmar seu e-mail antes de fazer login. Verifique sua caixa de entrada.',
        tipo=TIPO_EMAIL_NAO_CONFIRMADO,
    ),
    'User already registered': MensagemErro(
        titulo='Usuário já cadastrado',
        mensagem='Este e-mail já está cadastrado. Faça login ou recupere sua senha.',
    ),
    'Password should be at least 6 characters': MensagemErro(
        titulo='Senha muito curta',
        mensagem='A senha deve ter pelo menos 6 caracteres.',
    ),
    'Invalid email': MensagemErro(
        titulo='E-mail inválido',
        mensagem='Por favor, digite um e-mail válido.',
    ),
    'Signup requires a valid password': MensagemErro(
        titulo='Senha obrigatória',
        mensagem='Por favor, digite uma senha válida para continuar.',
    ),
    'Unable to validate email address: invalid format': MensagemErro(
        titulo='Formato de e-mail inválido',
        mensagem='O formato do e-mail digitado não é válido. Verifique e tente novamente.',
    ),
    'Email rate limit exceeded': MensagemErro(
        titulo='Muitas tentativas',
        mensagem='Muitas tentativas de envio de e-mail. Aguarde alguns minutos antes de tentar novamente.',
    ),
    'Token has expired or is invalid': MensagemErro(
        titulo='Link expirado',
        mensagem='Este link de confirmação expirou ou é inválido. Solicite um novo link.',
    ),
    'User not found': MensagemErro(
        titulo='Usuário não encontrado',
        mensagem='Não encontramos uma conta com este e-mail. Verifique o e-mail digitado.',
    ),
    'Password reset limit exceeded': MensagemErro(
        titulo='Limite de redefinição excedido',
        mensagem='Muitas tentativas de redefinir senha. Aguarde antes de tentar novamente.',
    ),
    'Network request failed': MensagemErro(
        titulo='Erro de conexão',
        mensagem='Verifique sua conexão com a internet e tente novamente.',
    ),
    'Database connection lost': MensagemErro(
        titulo='Erro de conexão',
        mensagem='Conexão com o servidor perdida. Tente novamente em alguns instantes.',
    ),
}

ERRO_SISTEMA = MensagemErro(
    titulo='Erro no sistema',
    mensagem='Ocorreu um erro inesperado. Tente novamente em alguns instantes.',
)

ERRO_INESPERADO = MensagemErro(
    titulo='Erro inesperado',
    mensagem='Algo deu errado. Tente novamente ou entre em contato com o suporte.',
)


def _com_email(traducao: MensagemErro, email: Optional[str]) -> MensagemErro:
    return MensagemErro(
        titulo=traducao.titulo,
        mensagem=traducao.mensagem,
        tipo=traducao.tipo,
        email=email or traducao.email,
    )


class TradutorErrosAuth:
    """
    Busca a tradução exata, depois por trecho (nos dois sentidos), depois por
    palavras-chave. Erros sem mensagem caem no texto genérico.
    """

    traducoes = _TRADUCOES

    @classmethod
    def traduzir(cls, erro: object, email: Optional[str] = None) -> MensagemErro:
        mensagem = getattr(erro, 'message', None)
        if not isinstance(mensagem, str):
            return ERRO_INESPERADO

        traducao = cls.traducoes.get(mensagem)
        if traducao:
            return _com_email(traducao, email)

        if mensagem:
            for chave, traducao in cls.traducoes.items():
                if chave in mensagem or mensagem in chave:
                    return _com_email(traducao, email)

        minuscula = mensagem.lower()
        if 'invalid' in minuscula and 'credentials' in minuscula:
            return cls.traducoes['Invalid login credentials']
        if 'email' in minuscula and 'not confirmed' in minuscula:
            return _com_email(cls.traducoes['Email not confirmed'], email)
        if 'already registered' in minuscula or 'user exists' in minuscula:
            return cls.traducoes['User already registered']
        if 'password' in minuscula and '6 characters' in minuscula:
            return cls.traducoes['Password should be at least 6 characters']

        return ERRO_SISTEMA

    @staticmethod
    def mensagem_confirmacao(email: str) -> MensagemErro:
        return MensagemErro(
            titulo='Confirmação enviada',
            mensagem=f'Um link de confirmação foi enviado para {email}. Verifique sua caixa de entrada e spam.',
        )

    @staticmethod
    def mensagem_sucesso(acao: str) -> MensagemErro:
        mensagens = {
            'login': MensagemErro('Login realizado', 'Bem-vindo de volta!'),
            'register': MensagemErro(
                'Conta criada',
                'Sua conta foi criada com sucesso. Verifique seu e-mail para confirmação.',
            ),
            'logout': MensagemErro('Logout realizado', 'Você foi desconectado com sucesso.'),
            'update': MensagemErro('Perfil atualizado', 'Suas informações foram atualizadas com sucesso.'),
        }
        return mensagens[acao]
