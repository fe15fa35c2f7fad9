# epub_emoji_x/src/epub_emoji_x/core/emoji/classifier.py
"""
Découpage en graphèmes et détection des emoji.

Responsabilité unique: dire, pour chaque graphème d'un texte, s'il s'agit
d'un emoji (y compris les séquences multi-codepoints: ZWJ, sélecteur de
variation, drapeaux, modificateurs de teinte).
"""

import logging
from typing import Iterator, Tuple

import emoji
import regex
from emoji.unicode_codes import EMOJI_DATA, STATUS

logger = logging.getLogger(__name__)

# \X = extended grapheme cluster (UAX #29, règles ZWJ et indicateurs régionaux)
_GRAPHEME_PATTERN = regex.compile(r"\X")

# Suffixe du sélecteur de présentation emoji (VS16)
PRESENTATION_SUFFIX = "-fe0f"

logger.debug("Emoji property table: emoji %s", getattr(emoji, "__version__", "?"))


def iter_graphemes(text: str) -> Iterator[str]:
    """
    Itère sur les graphèmes de `text`.

    Chaque appel renvoie un nouvel itérateur: la séquence peut être
    reparcourue autant de fois que nécessaire.
    """
    return (m.group(0) for m in _GRAPHEME_PATTERN.finditer(text))


def is_emoji_grapheme(cluster: str) -> bool:
    """
    Vrai si le graphème complet est une entrée de la table emoji.

    La recherche porte sur la chaîne exacte (pas sur un codepoint isolé).
    Les formes « unqualified » (ex: « © » sans VS16) restent du texte.
    """
    data = EMOJI_DATA.get(cluster)
    if data is None:
        return False
    # Plus strict que la simple appartenance à la table: « © » ou « ❤ » nus
    # y figurent (unqualified) mais restent du texte, « ❤️ » devient une image.
    return data.get("status") != STATUS["unqualified"]


def classify(text: str) -> Iterator[Tuple[str, bool]]:
    """Itère sur les couples (graphème, est_emoji)."""
    for cluster in iter_graphemes(text):
        yield cluster, is_emoji_grapheme(cluster)


def emoji_key(cluster: str) -> str:
    """Clé canonique: codepoints hexadécimaux en minuscules joints par '-'."""
    return "-".join(f"{ord(c):x}" for c in cluster)


def asset_filename(key: str) -> str:
    return f"{key}.png"


def manifest_item_id(key: str) -> str:
    """Identifiant d'item OPF dérivé de la clé (ex: emoji_1f468_200d_1f469)."""
    return "emoji_" + key.replace("-", "_")


def strip_presentation_suffix(key: str) -> str | None:
    """Retourne la clé sans le suffixe '-fe0f' final, ou None s'il est absent."""
    if key.endswith(PRESENTATION_SUFFIX) and len(key) > len(PRESENTATION_SUFFIX):
        return key[: -len(PRESENTATION_SUFFIX)]
    return None
