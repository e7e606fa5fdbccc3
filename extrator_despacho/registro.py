# ══════════════════════════════════════════════════════════════════════
# extrator_despacho/registro.py — Log estruturado de uma execução
# ══════════════════════════════════════════════════════════════════════
"""
Cada extração acumula entradas de log no próprio resultado (para
auditoria offline) e repassa cada entrada, de forma síncrona, a um
callback opcional do chamador. As mesmas entradas também vão para o
logger "extrator_despacho".

O callback é chamado na thread da extração; quem roda várias extrações
em paralelo deve serializar o próprio callback.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from extrator_despacho.modelos import RegistroLog

log = logging.getLogger("extrator_despacho")

_NIVEIS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

CallbackLog = Callable[[RegistroLog], None]


def agora_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RegistroExecucao:
    """Acumulador de log de uma única extração."""

    def __init__(self, destino: list[RegistroLog], callback: Optional[CallbackLog] = None):
        self._destino = destino
        self._callback = callback

    def registrar(self, nivel: str, mensagem: str, **dados: Any) -> RegistroLog:
        entrada = RegistroLog(nivel=nivel, mensagem=mensagem, dados=dados, em=agora_iso())
        self._destino.append(entrada)
        log.log(_NIVEIS.get(nivel, logging.INFO), "[EXTRACAO] %s %s", mensagem, dados)
        if self._callback is not None:
            self._callback(entrada)
        return entrada

    def info(self, mensagem: str, **dados: Any) -> RegistroLog:
        return self.registrar("info", mensagem, **dados)

    def aviso(self, mensagem: str, **dados: Any) -> RegistroLog:
        return self.registrar("warn", mensagem, **dados)
