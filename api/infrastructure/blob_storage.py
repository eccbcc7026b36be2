# api/infrastructure/blob_storage.py
#
# Filesystem-backed blob storage for uploaded import files and export artifacts.
#
# Design decisions:
#   - Paths are relative keys ("<empresa_id>/<arquivo>.csv", "exports/...")
#     resolved under one base directory. A key that escapes the base directory
#     ("../") is rejected, so a caller-supplied arquivo_path cannot read
#     arbitrary files.
#   - baixar raises FileNotFoundError; the analyze service turns it into
#     ArquivoIndisponivelError.
#   - enviar writes to a .tmp sibling and renames, so readers never see a
#     partially written export.
from __future__ import annotations

from pathlib import Path


class LocalBlobStorage:
    def __init__(self, base_dir: Path) -> None:
        self._base = base_dir.resolve()

    def _resolver(self, caminho: str) -> Path:
        destino = (self._base / caminho.lstrip("/")).resolve()
        if not destino.is_relative_to(self._base):
            raise FileNotFoundError(caminho)
        return destino

    def baixar(self, caminho: str) -> bytes:
        destino = self._resolver(caminho)
        if not destino.is_file():
            raise FileNotFoundError(caminho)
        return destino.read_bytes()

    def enviar(self, caminho: str, conteudo: bytes, content_type: str) -> str:
        """Grava o conteudo e retorna a chave. content_type e ignorado no filesystem."""
        destino = self._resolver(caminho)
        destino.parent.mkdir(parents=True, exist_ok=True)
        tmp = destino.with_suffix(destino.suffix + ".tmp")
        tmp.write_bytes(conteudo)
        tmp.replace(destino)
        return caminho
