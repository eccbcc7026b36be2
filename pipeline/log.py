# pipeline/log.py
#
# Shared import-pipeline logger with elapsed time.
#
# Design decisions:
#   - Single log() function used by the parser, the validator and the API
#     services that drive analyze / approve / reject.
#   - Elapsed time is measured from the first log() of the current operation
#     (reset by inicio_operacao) so every line shows how long the phase took.
#   - Plain stdout with flush for immediate visibility, no logging config.
#   - Thread-safe enough: sys.stdout.write of a single string is atomic in CPython.
#   - CPFs must never be passed in full; use mascarar_cpf.
from __future__ import annotations

import sys
import time

_start = time.monotonic()


def inicio_operacao() -> float:
    """Reset the elapsed-time reference and return it."""
    global _start  # noqa: PLW0603
    _start = time.monotonic()
    return _start


def log(message: str) -> None:
    """Write a timestamped log line to stdout."""
    elapsed = time.monotonic() - _start
    minutes, seconds = divmod(int(elapsed), 60)
    sys.stdout.write(f"[importacao {minutes:02d}:{seconds:02d}] {message}\n")
    sys.stdout.flush()


def mascarar_cpf(cpf: str | None) -> str:
    """***.XXX.XXX-** (formato seguro para logs)."""
    digitos = "".join(c for c in (cpf or "") if c.isdigit())
    if len(digitos) != 11:
        return "***"
    return f"***.{digitos[3:6]}.{digitos[6:9]}-**"
