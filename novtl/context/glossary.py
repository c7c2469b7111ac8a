# context/glossary.py
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import yaml


@dataclass(frozen=True)
class GlossaryEntry:
    original:   str
    translated: str


class GlossaryIndex:
    """
    Responsabilidad única: dado un chunk, devolver solo las entradas
    del glosario que aparecen en él.

    Mandar el glosario completo en cada chunk gasta presupuesto y
    diluye la atención del modelo en proyectos con cientos de términos.
    """

    def __init__(self, entries: Iterable[GlossaryEntry]):
        self._by_key: dict[str, GlossaryEntry] = {}
        for entry in entries:
            key = entry.original.strip().casefold()
            if key and key not in self._by_key:   # la primera gana
                self._by_key[key] = entry

        self._pattern: Optional[re.Pattern] = None
        if self._by_key:
            # Más largo primero: "Frozen Cloud Asgard" antes que "Cloud"
            # El patrón usa el original tal cual: lower() puede cambiar su longitud ("İ")
            originals = sorted(
                (e.original.strip() for e in self._by_key.values()), key=len, reverse=True,
            )
            self._pattern = re.compile(
                "|".join(re.escape(o) for o in originals),
                re.IGNORECASE,
            )

    def __len__(self) -> int:
        return len(self._by_key)

    def relevant_terms(self, chunk_text: str) -> list[GlossaryEntry]:
        """Una sola pasada sobre el chunk; sin duplicados, en orden de aparición."""
        if self._pattern is None:
            return []

        found: dict[str, GlossaryEntry] = {}
        for match in self._pattern.finditer(chunk_text):
            key = match.group(0).casefold()
            entry = self._by_key.get(key)
            if entry is not None and key not in found:
                found[key] = entry
        return list(found.values())


def format_glossary_block(entries: list[GlossaryEntry]) -> str:
    if not entries:
        return ""
    lines = "\n".join(f"{e.original}={e.translated}" for e in entries)
    return f"\n[GLOSSARY - STRICTLY FOLLOW]\n{lines}\n"


def load_glossary(path: str | Path) -> list[GlossaryEntry]:
    """
    Carga un glosario desde YAML. Acepta dos formas:

        - original: Frozen Cloud Asgard
          translated: Asgard Awan Beku

    o un mapping plano `original: translated`.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Glosario no encontrado: {path}")

    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or []

    if isinstance(raw, dict):
        items = [{"original": k, "translated": v} for k, v in raw.items()]
    elif isinstance(raw, list):
        items = raw
    else:
        raise ValueError(f"Formato de glosario no soportado en {path}")

    entries = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"Entrada de glosario inválida: {item!r}")
        original = str(item.get("original") or "").strip()
        if not original:
            continue
        entries.append(GlossaryEntry(
            original   = original,
            translated = str(item.get("translated") or "").strip(),
        ))
    return entries
