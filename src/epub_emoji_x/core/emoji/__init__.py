# epub_emoji_x/src/epub_emoji_x/core/emoji/__init__.py
"""
Module Emoji - Détection, résolution des images et réécriture des documents.

Ce module découpe le texte en graphèmes, identifie les emoji, garantit la
présence de leur image PNG dans le cache local et remplace chaque emoji
par une balise <img>.
"""

# Exports publics
from .classifier import classify, emoji_key, is_emoji_grapheme, iter_graphemes
from .resolver import AssetResolver
from .rewriter import find_existing_references, rewrite_document

__all__ = [
    "AssetResolver",
    "classify",
    "emoji_key",
    "find_existing_references",
    "is_emoji_grapheme",
    "iter_graphemes",
    "rewrite_document",
]
