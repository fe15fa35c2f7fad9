# epub_emoji_x/src/epub_emoji_x/core/epub/__init__.py
"""
Module EPUB - Navigation dans le conteneur, mise à jour de l'OPF et
reconstruction de l'archive.
"""

# Exports publics
from .container import locate_manifest, navigation_documents
from .manifest import patch_manifest
from .repackager import EpubRepackager, replace_emoji_in_epub

__all__ = [
    "EpubRepackager",
    "locate_manifest",
    "navigation_documents",
    "patch_manifest",
    "replace_emoji_in_epub",
]
