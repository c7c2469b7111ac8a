# novtl/reconstructor.py
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_INCOMPLETE_MARKER = "[⚠ TRADUCCIÓN INCOMPLETA: se detuvo en el chunk {chunk}]\n\n"


class Reconstructor:
    """
    Responsabilidad única: escribir en disco el texto que devolvió el pipeline.

    No sabe nada de modelos, chunks ni lógica de traducción.
    Recibe texto y produce un archivo TXT.
    """

    def __init__(self, output_dir: Optional[Path] = None):
        self._output_dir = output_dir

    def output_path_for(self, source_path: Path, target_lang: str) -> Path:
        """capitulo_01.txt + Indonesian → capitulo_01_indonesian.txt, junto al original."""
        directory = self._output_dir or source_path.parent
        return directory / f"{_slugify(source_path.stem)}_{_slugify(target_lang)}.txt"

    def write(self, text: str, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(text, encoding="utf-8")
        logger.info("Output escrito en: %s", output_path)
        return output_path

    def write_partial(self, text: str, output_path: Path, chunk_index: Optional[int]) -> Optional[Path]:
        """
        Guarda lo ya traducido con una marca visible al inicio.
        Nada del trabajo hecho se pierde en silencio.
        """
        if not text.strip():
            return None
        marker = _INCOMPLETE_MARKER.format(chunk="?" if chunk_index is None else chunk_index + 1)
        return self.write(marker + text.strip(), output_path)


def _slugify(title: str) -> str:
    """Convierte el título en un nombre de archivo seguro."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s]+", "_", slug)
    return slug or "output"
