"""Catalog entries."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Product:
    id: str
    name: str
    price: int  # minor currency units, always > 0
    description: str = ""
    images: list[str] = field(default_factory=list)
