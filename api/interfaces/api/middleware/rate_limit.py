# api/interfaces/api/middleware/rate_limit.py
from __future__ import annotations

import time
from collections import defaultdict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.infrastructure.config import get_settings

_JANELA_SEGUNDOS = 60.0


def _chave_cliente(request: Request) -> str:
    """Usuario identificado (X-User-Id) quando houver, senao IP."""
    usuario = request.headers.get("X-User-Id")
    if usuario:
        return f"user:{usuario}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: object) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._requests: dict[str, list[float]] = defaultdict(list)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        limite = get_settings().rate_limit_per_minute

        # 0 = sem limite (usado em testes)
        if limite == 0:
            return await call_next(request)

        chave = _chave_cliente(request)
        now = time.time()
        recentes = [t for t in self._requests[chave] if now - t < _JANELA_SEGUNDOS]
        self._requests[chave] = recentes

        if len(recentes) >= limite:
            retry_after = int(_JANELA_SEGUNDOS - (now - recentes[0])) + 1
            return Response(
                content='{"detail": "Rate limit excedido. Tente novamente em 1 minuto."}',
                status_code=429,
                media_type="application/json",
                headers={"Retry-After": str(retry_after)},
            )

        recentes.append(now)
        return await call_next(request)
