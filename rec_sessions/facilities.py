"""Facility directory with alias-based resolution of free-text locations."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Facility


def _normalize(text: str) -> str:
    # "*" marks cancelled listings on some calendars
    return text.lower().strip().lstrip("*").strip()


class FacilityDirectory:
    """Read-only lookup over the configured facilities.

    Declaration order matters: ``resolve`` walks each city's aliases in the
    order the facilities (and their aliases) were declared and returns the
    first alias contained in the text. There is no longest-match rule, so a
    short alias declared early can shadow a longer one declared later.
    """

    def __init__(self, facilities: Iterable[Facility]) -> None:
        self._by_id: Dict[str, Facility] = {}
        self._by_city: Dict[str, List[Facility]] = {}
        self._aliases: Dict[str, List[Tuple[str, Facility]]] = {}
        for fac in facilities:
            if fac.id in self._by_id:
                raise ValueError(f"Duplicate facility id: {fac.id}")
            self._by_id[fac.id] = fac
            city = fac.city.lower()
            self._by_city.setdefault(city, []).append(fac)
            for alias in fac.aliases:
                self._aliases.setdefault(city, []).append((alias.lower(), fac))

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, ref: object) -> bool:
        return ref in self._by_id

    def get(self, ref: Optional[str]) -> Optional[Facility]:
        if ref is None:
            return None
        return self._by_id.get(str(ref))

    def in_city(self, city: str) -> List[Facility]:
        return list(self._by_city.get(city.lower(), []))

    def cities(self) -> List[str]:
        seen: Dict[str, str] = {}
        for fac in self._by_id.values():
            seen.setdefault(fac.city.lower(), fac.city)
        return list(seen.values())

    def resolve(self, text: Optional[str], city: str) -> Optional[Facility]:
        if not text:
            return None
        needle = _normalize(text)
        if not needle:
            return None
        for alias, fac in self._aliases.get(city.lower(), []):
            if alias and alias in needle:
                return fac
        return None

    def resolve_or_default(
        self, text: Optional[str], city: str, default_ref: Optional[str]
    ) -> Optional[Facility]:
        fac = self.resolve(text, city)
        if fac is None and default_ref:
            fac = self.get(default_ref)
            if fac is not None:
                logging.debug("No alias for %r in %s, using %s", text, city, fac.name)
        return fac
