# epub_emoji_x/src/epub_emoji_x/core/file_utils.py
"""
Logique pour les opérations sur le système de fichiers (trouver les EPUB,
développer les motifs, calculer les chemins de sortie).
"""

import glob
import logging
import os
from typing import Iterable, List, Optional

from ..config import OUTPUT_SUFFIX, SUPPORTED_EXT

logger = logging.getLogger(__name__)


def find_epubs_in_folder(folder: str) -> List[str]:
    """Trouve tous les fichiers EPUB dans un dossier et ses sous-dossiers."""
    files = []
    for root, _, filenames in os.walk(folder):
        for f in sorted(filenames):
            if f.lower().endswith(SUPPORTED_EXT):
                files.append(os.path.join(root, f))
    logger.info("Found %d epub(s) in folder %s", len(files), folder)
    return files


def expand_inputs(patterns: Iterable[str]) -> List[str]:
    """
    Développe une liste d'entrées: fichiers, dossiers (récursif) ou motifs glob.

    Les doublons sont retirés en conservant l'ordre d'apparition.
    """
    files: List[str] = []
    for pattern in patterns:
        if os.path.isdir(pattern):
            files.extend(find_epubs_in_folder(pattern))
        elif any(c in pattern for c in "*?["):
            matches = sorted(glob.glob(pattern, recursive=True))
            if not matches:
                logger.warning("No file matches %s", pattern)
            files.extend(m for m in matches if os.path.isfile(m))
        else:
            files.append(pattern)

    seen = set()
    unique = []
    for f in files:
        key = os.path.abspath(f)
        if key not in seen:
            seen.add(key)
            unique.append(f)
    return unique


def derive_output_path(input_path: str, output_dir: Optional[str] = None) -> str:
    """
    Chemin de sortie par défaut: `<nom>_emoji.<ext>` à côté de l'entrée,
    ou dans `output_dir` si fourni.
    """
    stem, ext = os.path.splitext(os.path.basename(input_path))
    folder = output_dir if output_dir else os.path.dirname(input_path)
    return os.path.join(folder, f"{stem}{OUTPUT_SUFFIX}{ext or '.epub'}")
