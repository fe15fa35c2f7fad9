# epub_emoji_x/src/epub_emoji_x/cli.py
"""
Logique pour le mode ligne de commande.

Utilise EmojiReplacerService pour réutiliser la logique de remplacement.
"""

import logging
from typing import List, Optional

from .core.models import EmojiSettings, TransformReport
from .core.replacer_service import EmojiReplacerService

logger = logging.getLogger(__name__)


def cli_process_epub(
    input_path: str, output_path: str, settings: Optional[EmojiSettings] = None
) -> List[TransformReport]:
    """Transforme un seul EPUB vers un chemin de sortie explicite."""
    logger.info(f"CLI mode - processing epub: {input_path}")
    service = EmojiReplacerService(settings)
    return [service.replace_in_epub(input_path, output_path)]


def cli_process_html(
    input_path: str,
    output_path: str,
    img_dir: str,
    settings: Optional[EmojiSettings] = None,
) -> List[TransformReport]:
    """Mode contournement: un document HTML isolé, sans archive ni OPF."""
    logger.info(f"CLI mode - processing html: {input_path}")
    service = EmojiReplacerService(settings)
    return [service.replace_in_html(input_path, output_path, img_dir)]


def cli_process_batch(
    inputs: List[str],
    output_dir: Optional[str] = None,
    settings: Optional[EmojiSettings] = None,
) -> List[TransformReport]:
    """
    Traite une liste de fichiers, dossiers ou motifs glob.

    Args:
        inputs: Entrées telles que saisies sur la ligne de commande
        output_dir: Dossier de sortie (sinon à côté de chaque fichier)
        settings: Paramètres de transformation

    Returns:
        Liste des rapports de transformation
    """
    logger.info(f"CLI mode - processing {len(inputs)} input(s)")

    service = EmojiReplacerService(settings)
    reports = service.process_batch(inputs, output_dir)

    logger.info(f"CLI mode - processed {len(reports)} files")
    return reports


def print_summary(reports: List[TransformReport]):
    """Affiche un résumé des transformations."""
    print("\n=== Résumé du traitement ===")
    print(f"Fichiers traités: {len(reports)}")

    succeeded = sum(1 for r in reports if r.success)
    print(f"Réussis: {succeeded}")

    for report in reports:
        print(f"\n{report.input_path} -> {report.output_path}")
        if not report.success:
            print(f"  Échec: {report.note}")
            continue

        print(f"  Emoji remplacés: {report.emoji_replaced}")
        print(f"  Documents modifiés: {report.documents_rewritten}")
        if report.assets:
            print(f"  Images: {len(report.assets)}")
        if report.manifest_patched:
            print(f"  Manifest mis à jour: {report.manifest_path}")
        if report.unresolved:
            print(f"  Laissés en texte: {', '.join(report.unresolved)}")
