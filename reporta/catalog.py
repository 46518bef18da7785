"""Category catalog used to render the questionnaire menus.

The catalog is an ordered list of `Category` records, each with its ordered
subcategory labels and the label used for the "other" choice (key ``0``).
It is loaded once per process, either from the built-in defaults below or
from the JSON file named by ``CATEGORIES_FILE``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
import json
import logging

logger = logging.getLogger("reporta.catalog")

OTHER_KEY = "0"


@dataclass(frozen=True)
class Category:
    key: str
    name: str
    subcategories: List[str] = field(default_factory=list)
    other_label: str = "Otro problema"
    # Accept any free text as the subcategory instead of a menu number
    open_subcategory: bool = False

    @property
    def has_subcategories(self) -> bool:
        return bool(self.subcategories) or self.open_subcategory

    def resolve_subcategory(self, text: str) -> Optional[str]:
        """Map a reporter answer to a subcategory label, or None if invalid."""
        answer = (text or "").strip()
        if answer == OTHER_KEY:
            return self.other_label
        if answer.isdigit():
            index = int(answer)
            if 1 <= index <= len(self.subcategories):
                return self.subcategories[index - 1]
            return None
        if self.open_subcategory and answer:
            return answer
        return None


@dataclass(frozen=True)
class Catalog:
    categories: List[Category]

    def by_key(self, key: str) -> Optional[Category]:
        key = (key or "").strip()
        for category in self.categories:
            if category.key == key:
                return category
        return None

    def ordered(self) -> List[Category]:
        """Menu order: numeric keys ascending, the catch-all key 0 last."""
        return sorted(
            self.categories,
            key=lambda c: (c.key == OTHER_KEY, int(c.key) if c.key.isdigit() else 0, c.key),
        )

    @property
    def keys(self) -> List[str]:
        return [c.key for c in self.ordered()]


DEFAULT_CATEGORIES: List[Dict] = [
    {
        "key": "1",
        "name": "Calles y Carreteras 🚗",
        "subcategories": [
            "Hoyo en la calle",
            "Pavimento dañado",
            "Obstáculo en la vía",
            "Topes y reductores",
            "Zona de accidentes",
            "Señal rota o ausente",
        ],
    },
    {
        "key": "2",
        "name": "Banquetas y Parques 🚶🏽",
        "subcategories": [
            "Banqueta dañada",
            "Árbol o rama caída",
            "Raíz o rama invadiendo",
            "Mobiliario urbano roto",
            "Area verde descuidada",
            "Estructura en mal estado",
        ],
    },
    {
        "key": "3",
        "name": "Basura y Residuos ♻️",
        "subcategories": [
            "Basura acumulada",
            "Escombro suelto",
            "Tiradero ilegal",
            "Contenedor roto",
            "Animal muerto",
            "Residuo peligroso",
        ],
    },
    {
        "key": "4",
        "name": "Agua y Drenaje 💧",
        "subcategories": [
            "Fuga de agua",
            "Alcantarilla tapada",
            "Encharcamiento/inundación",
            "Olor fuerte a drenaje",
            "Drenaje desbordado",
            "Pozo o registro abierto",
        ],
    },
    {
        "key": "5",
        "name": "Luces y Electricidad 💡",
        "subcategories": [
            "Luminaria fallando",
            "Poste dañado",
            "Cables colgando",
            "Transformadores",
            "Zona muy oscura",
            "Riesgo eléctrico",
        ],
    },
    {
        "key": "6",
        "name": "Animales y Fauna 🐾",
        "subcategories": [
            "Fauna salvaje peligrosa",
            "Panal de abejas/avispas",
            "Nidos en estructuras",
            "Animal herido/agresivo",
            "Animal doméstico suelto",
            "Plagas en vía pública",
        ],
    },
    {
        "key": "7",
        "name": "Construcción y Obras 🚧",
        "subcategories": [
            "Zanja abierta",
            "Obra sin señalización",
            "Material de obra en calle",
            "Obra abandonada",
            "Valla/protección dañada",
            "Excavación peligrosa",
        ],
    },
    {
        "key": OTHER_KEY,
        "name": "Otro tipo de problema",
        "subcategories": [],
        "other_label": "Otro tipo de problema",
    },
]


def build_catalog(records: List[Dict]) -> Catalog:
    categories = []
    for record in records:
        categories.append(
            Category(
                key=str(record["key"]),
                name=record["name"],
                subcategories=list(record.get("subcategories", [])),
                other_label=record.get("other_label", "Otro problema"),
                open_subcategory=bool(record.get("open_subcategory", False)),
            )
        )
    keys = [c.key for c in categories]
    if len(keys) != len(set(keys)):
        raise ValueError("Category keys must be unique")
    return Catalog(categories=categories)


@lru_cache()
def load_catalog(path: Optional[str] = None) -> Catalog:
    """Load the catalog from a JSON file, or the built-in defaults."""
    if not path:
        return build_catalog(DEFAULT_CATEGORIES)
    records = json.loads(Path(path).read_text(encoding="utf-8"))
    catalog = build_catalog(records)
    logger.info("Loaded %d categories from %s", len(catalog.categories), path)
    return catalog


__all__ = ["Category", "Catalog", "OTHER_KEY", "DEFAULT_CATEGORIES", "build_catalog", "load_catalog"]
