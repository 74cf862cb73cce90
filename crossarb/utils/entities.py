"""Named-entity anchors for title matching.

Generic token overlap produces false positives between unrelated markets
that merely share common words, so titles are also reduced to a set of
high-confidence anchors: canonical names (resolved through an alias map),
numbers and years.

The alias map is data, not code. The bundled ``config/aliases.json`` maps a
canonical key to its aliases::

    {"trump": ["donald trump", "djt"], "bitcoin": ["btc"]}

and ``ENTITY_ALIASES_PATH`` (or an explicit path) swaps in another file.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Pattern, Tuple

from crossarb.utils.logging import get_logger
from crossarb.utils.text import normalize_text


logger = get_logger("entities")

DEFAULT_ALIASES_PATH = Path(__file__).resolve().parent.parent / "config" / "aliases.json"

_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_YEAR = re.compile(r"(?<!\d)20\d{2}(?!\d)")
_THOUSANDS_SEP = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")


def load_alias_map(path: Optional[str | Path] = None) -> Dict[str, List[str]]:
    """Load a canonical -> aliases map from JSON.

    Raises:
        ValueError: If the file is not an object of string lists
    """
    p = Path(path) if path else DEFAULT_ALIASES_PATH
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"alias map {p} must be a JSON object")
    out: Dict[str, List[str]] = {}
    for canonical, aliases in raw.items():
        if not isinstance(aliases, list) or not all(isinstance(a, str) for a in aliases):
            raise ValueError(f"aliases for {canonical!r} in {p} must be a list of strings")
        out[str(canonical)] = list(aliases)
    logger.debug("Loaded %d canonical entities from %s", len(out), p)
    return out


def _phrase_pattern(phrase: str) -> Optional[Pattern[str]]:
    norm = normalize_text(phrase)
    if not norm:
        return None
    return re.compile(r"(?<![a-z0-9])" + re.escape(norm) + r"(?![a-z0-9])")


class EntityExtractor:
    def __init__(self, alias_map: Optional[Mapping[str, Iterable[str]]] = None):
        if alias_map is None:
            alias_map = load_alias_map()
        self._patterns: List[Tuple[str, List[Pattern[str]]]] = []
        for canonical, aliases in alias_map.items():
            pats = [p for p in (_phrase_pattern(x) for x in [canonical, *aliases]) if p is not None]
            if pats:
                self._patterns.append((canonical, pats))

    @classmethod
    def from_path(cls, path: Optional[str | Path] = None) -> "EntityExtractor":
        return cls(load_alias_map(path))

    @property
    def canonical_names(self) -> List[str]:
        return [c for c, _ in self._patterns]

    def extract(self, title: str) -> FrozenSet[str]:
        """Return canonical entities, numbers and 20xx years found in ``title``."""
        lowered = (title or "").lower()
        normalized = normalize_text(lowered)
        entities = set()
        for canonical, patterns in self._patterns:
            if any(p.search(normalized) for p in patterns):
                entities.add(canonical)

        numeric_text = _THOUSANDS_SEP.sub("", lowered)
        entities.update(_NUMBER.findall(numeric_text))
        entities.update(_YEAR.findall(numeric_text))
        return frozenset(entities)
