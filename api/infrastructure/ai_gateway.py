# api/infrastructure/ai_gateway.py
#
# Summary generator backed by an OpenAI-compatible chat-completions gateway.
#
# Design decisions:
#   - One synchronous httpx.post per analyze call; analyze is already a
#     single synchronous unit of work.
#   - Any transport error, non-2xx status, badly shaped body or empty answer becomes
#     ResumoIndisponivelError. The analyze service catches it and stores the
#     templated summary, so an AI outage never blocks an import.
#   - Token usage is read from usage.total_tokens when the gateway reports it
#     and goes to the audit trail.
from __future__ import annotations

from typing import Any

import httpx

from api.domain.importacao.entities import ResumoGerado
from api.domain.importacao.errors import ResumoIndisponivelError


class HttpxGeradorResumo:
    def __init__(self, url: str, api_key: str, modelo: str, timeout: float = 30.0) -> None:
        self._url = url
        self._api_key = api_key
        self._modelo = modelo
        self._timeout = timeout

    def gerar(self, prompt_sistema: str, prompt_usuario: str) -> ResumoGerado:
        try:
            response = httpx.post(
                self._url,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self._modelo,
                    "messages": [
                        {"role": "system", "content": prompt_sistema},
                        {"role": "user", "content": prompt_usuario},
                    ],
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as err:
            raise ResumoIndisponivelError(f"Gateway de IA indisponível: {err}") from err

        try:
            payload: Any = response.json()
        except ValueError as err:
            raise ResumoIndisponivelError("Gateway de IA respondeu com JSON inválido") from err
        if not isinstance(payload, dict):
            raise ResumoIndisponivelError(
                f"Gateway de IA respondeu {type(payload).__name__}, esperado objeto"
            )

        return ResumoGerado(
            texto=_texto_da_resposta(payload),
            modelo=self._modelo,
            tokens=_total_tokens(payload),
        )


def _texto_da_resposta(payload: dict[str, Any]) -> str:
    choices = payload.get("choices")
    primeira = choices[0] if isinstance(choices, list) and choices else None
    mensagem = primeira.get("message") if isinstance(primeira, dict) else None
    conteudo = mensagem.get("content") if isinstance(mensagem, dict) else None
    texto = conteudo.strip() if isinstance(conteudo, str) else ""
    if not texto:
        raise ResumoIndisponivelError("Gateway de IA respondeu sem conteúdo")
    return texto


def _total_tokens(payload: dict[str, Any]) -> int | None:
    """Uso de tokens e opcional: formato inesperado vira None, nao erro."""
    usage = payload.get("usage")
    tokens = usage.get("total_tokens") if isinstance(usage, dict) else None
    if isinstance(tokens, bool) or not isinstance(tokens, (int, float)):
        return None
    return int(tokens)
