# epub_emoji_x/src/epub_emoji_x/core/replacer_service.py
"""
Service de remplacement des emoji.

Service réutilisable qui orchestre les transformations (EPUB complet,
document HTML isolé, traitement par lot). Utilisé par le mode CLI pour
éviter la duplication de logique.
"""

import logging
import os
from typing import Iterable, List, Optional

from .emoji.resolver import AssetResolver
from .emoji.rewriter import rewrite_document_counted
from .epub.repackager import EpubRepackager, write_output
from .errors import EmojiEpubError, OutputWriteError
from .file_utils import derive_output_path, expand_inputs
from .models import EmojiSettings, TransformReport

logger = logging.getLogger(__name__)


class EmojiReplacerService:
    """
    Service de remplacement des emoji par des images.

    Fournit les opérations de haut niveau:
    - Transformation d'un fichier EPUB
    - Transformation d'un document (X)HTML isolé (sans archive ni OPF)
    - Traitement d'une liste de fichiers / dossiers / motifs glob

    Le résolveur (et donc sa mémoïsation) est partagé entre les fichiers
    traités par une même instance.
    """

    def __init__(self, settings: Optional[EmojiSettings] = None):
        """Initialise le service."""
        self.settings = settings or EmojiSettings()
        self.resolver = AssetResolver.from_settings(self.settings)
        logger.debug("EmojiReplacerService initialized (cache=%s)", self.settings.cache_dir)

    def replace_in_epub(self, input_path: str, output_path: str) -> TransformReport:
        """
        Transforme un fichier EPUB.

        Args:
            input_path: Chemin de l'EPUB source
            output_path: Chemin de l'EPUB à produire

        Returns:
            Rapport de transformation

        Raises:
            EmojiEpubError: erreur fatale (archive illisible, écriture impossible)
        """
        logger.info("Processing EPUB: %s -> %s", input_path, output_path)
        try:
            report = EpubRepackager(self.settings, self.resolver).run(input_path, output_path)
        except EmojiEpubError:
            logger.exception("Error processing %s", input_path)
            raise
        logger.info(
            "Successfully processed %s: %d emoji, %d image(s)",
            os.path.basename(input_path),
            report.emoji_replaced,
            len(report.assets),
        )
        return report

    def replace_in_html(self, input_path: str, output_path: str, img_dir: str) -> TransformReport:
        """
        Transforme un document (X)HTML isolé.

        Les images restent dans le cache local; `img_dir` est écrit tel quel
        dans les attributs src. Aucune archive ni aucun manifest n'est touché.
        """
        logger.info("Processing HTML document: %s -> %s", input_path, output_path)
        report = TransformReport(input_path=input_path, output_path=output_path)
        try:
            with open(input_path, encoding="utf-8") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise EmojiEpubError(f"Cannot read {input_path}: {e}") from e

        new_text, keys, replaced = rewrite_document_counted(
            text, img_dir, self.resolver, self.settings.delivery
        )
        try:
            write_output(new_text.encode("utf-8"), output_path)
        except OutputWriteError:
            logger.exception("Error writing %s", output_path)
            raise

        report.documents_rewritten = 1 if replaced else 0
        report.emoji_replaced = replaced
        report.assets = sorted(keys)
        report.success = True
        report.note = f"{replaced} emoji replaced"
        return report

    def process_batch(
        self, inputs: Iterable[str], output_dir: Optional[str] = None
    ) -> List[TransformReport]:
        """
        Transforme plusieurs EPUB; un échec n'interrompt pas le lot.

        Args:
            inputs: Fichiers, dossiers ou motifs glob
            output_dir: Dossier de sortie (sinon à côté de chaque entrée)

        Returns:
            Un rapport par fichier (success=False et note renseignée en cas d'échec)
        """
        files = expand_inputs(inputs)
        logger.info("Batch: %d file(s) to process", len(files))

        reports = []
        for epub_path in files:
            output_path = derive_output_path(epub_path, output_dir)
            try:
                reports.append(self.replace_in_epub(epub_path, output_path))
            except EmojiEpubError as e:
                reports.append(
                    TransformReport(
                        input_path=epub_path,
                        output_path=output_path,
                        success=False,
                        note=f"Error: {e}",
                    )
                )

        logger.info(
            "Batch done: %d/%d succeeded", sum(1 for r in reports if r.success), len(reports)
        )
        return reports
