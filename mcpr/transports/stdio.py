"""stdio-транспорт MCP: одна JSON-строка на вход, одна JSON-строка на выход.

Запросы обрабатываются строго последовательно в порядке поступления, поэтому
два хэндлера никогда не выполняются одновременно. Логи пишутся в stderr,
stdout занят протоколом.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional, TextIO

from mcpr.capabilities.registry import Server
from mcpr.engine.dispatcher import ProtocolEngine
from mcpr.engine.session import SessionState

logger = logging.getLogger("mcpr.transports.stdio")


def serve_io(
    server: Server,
    input_stream: Optional[TextIO] = None,
    output_stream: Optional[TextIO] = None,
) -> SessionState:
    """Обслуживает одну сессию до EOF, ошибки записи или `shutdown`.

    Возвращает итоговое состояние сессии (удобно для тестов).
    """
    input_stream = input_stream if input_stream is not None else sys.stdin
    output_stream = output_stream if output_stream is not None else sys.stdout

    engine = ProtocolEngine(server)
    session = SessionState()
    server.serving = True
    logger.info("Serving %s v%s over stdio (session=%s)", server.name, server.version, session.id)

    # Строки читаются байтами: декодирование делает движок, битый UTF-8 даёт -32700.
    source = getattr(input_stream, "buffer", input_stream)

    try:
        for line in source:
            if not line.strip():
                continue
            response = engine.handle_raw(line, session)
            if response is not None:
                try:
                    output_stream.write(json.dumps(response, ensure_ascii=False) + "\n")
                    output_stream.flush()
                except OSError as exc:
                    logger.error("Failed to write response, stopping stdio loop: %s", exc)
                    break
            if session.closed:
                logger.info("Session %s closed by client", session.id)
                break
    finally:
        server.serving = False

    logger.info("stdio loop finished (session=%s, phase=%s)", session.id, session.phase.value)
    return session


__all__ = ["serve_io"]
