# vitrine/core/observavel.py
"""
Base comum das stores do cliente (carrinho e identidade): registro de
observadores e persistência explícita do estado a cada mudança.
"""
import logging
from typing import Callable, List, Optional, Dict, Any

from vitrine.core.ports import IArmazenamentoEstado

logger = logging.getLogger(__name__)


class StoreObservavel:
    """
    Mantém a lista de observadores e salva o blob da store sob `CHAVE_ESTADO`.

    Notificações disparadas por um observador durante a entrega de outra
    notificação não são reentrantes: são agrupadas e entregues numa nova
    rodada assim que a atual termina.
    """

    CHAVE_ESTADO: str = ''

    def __init__(self, estado: Optional[IArmazenamentoEstado] = None):
        self.estado = estado
        self._observadores: List[Callable] = []
        self._notificando = False
        self._notificacao_pendente = False

    # --- Observadores ---

    def inscrever(self, callback: Callable) -> Callable[[], None]:
        """Registra `callback(store)` e devolve a função que cancela a inscrição."""
        self._observadores.append(callback)

        def cancelar():
            if callback in self._observadores:
                self._observadores.remove(callback)

        return cancelar

    def _notificar(self):
        self._persistir()
        if self._notificando:
            self._notificacao_pendente = True
            return

        self._notificando = True
        try:
            while True:
                self._notificacao_pendente = False
                for callback in list(self._observadores):
                    callback(self)
                if not self._notificacao_pendente:
                    break
        finally:
            self._notificando = False

    # --- Persistência ---

    def para_dict(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _persistir(self):
        if self.estado is None:
            return
        self.estado.salvar(self.CHAVE_ESTADO, self.para_dict())

    def _carregar_blob(self) -> Optional[Dict[str, Any]]:
        if self.estado is None:
            return None
        try:
            return self.estado.carregar(self.CHAVE_ESTADO)
        except (ValueError, TypeError):
            logger.warning("Estado '%s' corrompido; iniciando vazio.", self.CHAVE_ESTADO)
            return None
