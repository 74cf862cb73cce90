import re
import unicodedata
from typing import FrozenSet, List

from crossarb.config.constants import MIN_TOKEN_LENGTH


# Articles, prepositions, auxiliaries and question words, plus the market
# boilerplate ("win", "market", "odds") that every listing shares.
STOP_WORDS: FrozenSet[str] = frozenset({
    "will", "the", "be", "a", "an", "in", "on", "at", "to", "for", "of", "and", "or",
    "is", "it", "by", "with", "as", "this", "that", "what", "when", "where", "who",
    "how", "which", "their", "its", "his", "her", "before", "after", "during", "between",
    "are", "was", "were", "been", "being", "do", "does", "did", "has", "have", "had",
    "can", "could", "would", "should", "shall", "may", "might", "must",
    "from", "into", "than", "over", "under", "above", "below", "any",
    "win", "wins", "winner", "market", "prediction", "odds", "bet",
})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_text(value: str) -> str:
    """Lowercase and collapse every non-alphanumeric run to a single space."""
    value = unicodedata.normalize("NFKC", value or "")
    value = value.lower()
    value = _NON_ALNUM.sub(" ", value)
    return value.strip()


def normalize(title: str) -> List[str]:
    """Return the content tokens of a title, in order, duplicates kept.

    Tokens of length <= 1 and stop words are dropped.
    """
    return [
        tok
        for tok in normalize_text(title).split()
        if len(tok) >= MIN_TOKEN_LENGTH and tok not in STOP_WORDS
    ]


def tokenize(title: str) -> FrozenSet[str]:
    return frozenset(normalize(title))
