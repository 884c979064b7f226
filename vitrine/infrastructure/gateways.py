import logging
import time
from decimal import Decimal
from typing import Any, Dict

import requests
from decouple import config

from vitrine.core.entities import EnderecoCep, DadosPagamento
from vitrine.core.exceptions import (
    ColaboradorExternoError, CepNaoEncontradoError, PagamentoFalhouError,
)
from vitrine.core.ports import ICepGateway, IGatewayPagamento

logger = logging.getLogger(__name__)


# ====================================================================
# GATEWAYS: Implementações concretas que se comunicam com APIs externas.
# ====================================================================

class ViaCepGateway(ICepGateway):
    """
    Consulta de endereço na API pública do ViaCEP.
    Espera o CEP já limpo (8 dígitos); a validação fica no caso de uso.
    """

    def __init__(self):
        self.base_url = config('VIACEP_URL', default='https://viacep.com.br/ws').rstrip('/')
        self.timeout = config('VIACEP_TIMEOUT', default=10, cast=int)

    def buscar(self, cep: str) -> EnderecoCep:
        try:
            response = requests.get(
                f"{self.base_url}/{cep}/json/",
                headers={'Accept': 'application/json'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            raise ColaboradorExternoError('Tempo limite da requisição excedido')
        except requests.exceptions.HTTPError as e:
            raise ColaboradorExternoError(f"Erro na requisição: {e.response.status_code}", codigo=e.response.status_code)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error("Erro ao buscar CEP %s: %s", cep, e)
            raise ColaboradorExternoError('Erro desconhecido ao buscar CEP')

        # O ViaCEP responde 200 com {"erro": true} para CEP inexistente
        if data.get('erro'):
            raise CepNaoEncontradoError()

        return EnderecoCep(
            cep=data.get('cep', cep),
            rua=data.get('logradouro') or '',
            bairro=data.get('bairro') or '',
            cidade=data.get('localidade') or '',
            estado=data.get('estado') or '',
            uf=data.get('uf') or '',
            regiao=data.get('regiao') or '',
            ddd=data.get('ddd') or '',
            valido=True,
        )


class PagamentoGatewayMock(IGatewayPagamento):
    """
    Gateway de pagamento simulado.
    Gera os dados que a tela de pagamento exibe, sem processar nada de verdade.
    """

    def gerar_pagamento(self, metodo: str, valor: Decimal, dados: Dict[str, Any]) -> DadosPagamento:
        marca = int(time.time() * 1000)

        if metodo == 'pix':
            codigo = f"00020126580014br.gov.bcb.pix0136{marca}@pix.example.com5204000053039865802BR"
            return DadosPagamento(metodo, 'pending', {'pix_code': codigo, 'amount': str(valor)})

        if metodo == 'boleto':
            linha = f"34191.79001 01043.510047 91020.150008 1 {marca % 10**10:010d}"
            return DadosPagamento(metodo, 'pending', {'boleto_code': linha, 'amount': str(valor)})

        if metodo == 'credit':
            numero = ''.join(ch for ch in str(dados.get('card_number', '')) if ch.isdigit())
            if len(numero) < 13:
                raise PagamentoFalhouError("Dados do cartão inválidos.")
            return DadosPagamento(metodo, 'completed', {
                'card_last_four': numero[-4:],
                'card_holder': dados.get('card_holder', ''),
                'installments': int(dados.get('installments') or 1),
                'amount': str(valor),
            })

        if metodo == 'delivery':
            return DadosPagamento(metodo, 'pending', {'amount': str(valor)})

        raise PagamentoFalhouError(f"Método de pagamento '{metodo}' não suportado.")
