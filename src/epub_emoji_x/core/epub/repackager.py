# epub_emoji_x/src/epub_emoji_x/core/epub/repackager.py
"""
Module de reconstruction de l'archive EPUB.

Responsabilité unique: lire chaque membre une seule fois, transformer les
documents (X)HTML, mettre à jour l'OPF, injecter les images et écrire la
nouvelle archive en une seule étape finale (tout ou rien).
"""

import io
import logging
import os
import posixpath
import tempfile
import zipfile
import zlib
from enum import Enum
from typing import Dict, List, Optional, Set

from ...config import HTML_EXTENSIONS, MIMETYPE_MEMBER
from ..emoji.classifier import asset_filename
from ..emoji.resolver import AssetResolver
from ..emoji.rewriter import (
    find_existing_references,
    rewrite_document_counted,
    scan_emoji_keys,
)
from ..errors import ArchiveOpenError, MemberReadError, OutputWriteError
from ..models import ArchiveMember, AssetDelivery, EmojiSettings, TransformReport
from .container import asset_dir_for, locate_manifest, manifest_dir, navigation_documents
from .manifest import patch_manifest

logger = logging.getLogger(__name__)


class Stage(Enum):
    OPENED = "opened"
    SCANNED = "scanned"
    MANIFEST_RESOLVED = "manifest-resolved"
    DOCUMENTS_REWRITTEN = "documents-rewritten"
    MANIFEST_PATCHED = "manifest-patched"
    PACKAGED = "packaged"
    DONE = "done"


def is_html_member(path: str) -> bool:
    return path.lower().endswith(HTML_EXTENSIONS)


def relative_img_dir(asset_dir: str, document_path: str) -> str:
    """Chemin du dossier d'images vu depuis le document."""
    doc_dir = posixpath.dirname(document_path) or "."
    return posixpath.relpath(asset_dir, doc_dir)


def _is_under(path: str, directory: str) -> bool:
    return path.startswith(directory.rstrip("/") + "/")


class EpubRepackager:
    """
    Transformation d'une archive EPUB, étape par étape.

    Opened -> Scanned -> ManifestResolved -> DocumentsRewritten
    -> ManifestPatched (si OPF) -> Packaged -> Done
    """

    def __init__(self, settings: EmojiSettings, resolver: Optional[AssetResolver] = None):
        self.settings = settings
        self.resolver = resolver or AssetResolver.from_settings(settings)
        self.stage: Optional[Stage] = None

        self.members: List[ArchiveMember] = []
        self.manifest_path: Optional[str] = None
        self.asset_dir: str = settings.emoji_dir_name
        self.nav_documents: Set[str] = set()
        self.archived_assets: Dict[str, bytes] = {}

    def _advance(self, stage: Stage):
        logger.debug("Repackager stage: %s -> %s", self.stage and self.stage.value, stage.value)
        self.stage = stage

    # --- Étapes ---

    def _read_members(self, input_path: str):
        """Lit tout le contenu de l'archive en mémoire (une seule lecture par membre)."""
        try:
            archive = zipfile.ZipFile(input_path)
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveOpenError(f"Cannot open {input_path} as a zip archive: {e}") from e

        with archive:
            self._advance(Stage.OPENED)
            seen: Set[str] = set()
            for info in archive.infolist():
                if info.is_dir():
                    continue
                if info.filename in seen:
                    logger.warning("Duplicate member %s ignored", info.filename)
                    continue
                seen.add(info.filename)
                try:
                    data = archive.read(info)
                except (zipfile.BadZipFile, zlib.error, OSError, RuntimeError) as e:
                    raise MemberReadError(f"Cannot read member {info.filename}: {e}") from e
                self.members.append(ArchiveMember(info.filename, data, info.compress_type))
            self._advance(Stage.SCANNED)

        self.manifest_path = locate_manifest({m.path: m.data for m in self.members})

        self.asset_dir = asset_dir_for(self.manifest_path, self.settings.emoji_dir_name)
        manifest = self._manifest_member()
        if manifest is not None:
            self.nav_documents = navigation_documents(
                manifest.data, manifest_dir(self.manifest_path)
            )
        self._advance(Stage.MANIFEST_RESOLVED)
        logger.info(
            "Read %d member(s); emoji images go to %s", len(self.members), self.asset_dir
        )

    def _manifest_member(self) -> Optional[ArchiveMember]:
        if not self.manifest_path:
            return None
        for member in self.members:
            if member.path == self.manifest_path:
                return member
        logger.warning("Package document %s listed but missing from archive", self.manifest_path)
        return None

    def _is_rewritable(self, member: ArchiveMember) -> bool:
        return is_html_member(member.path) and member.path not in self.nav_documents

    def _decode_documents(self) -> Dict[str, str]:
        texts: Dict[str, str] = {}
        for member in self.members:
            if not self._is_rewritable(member):
                continue
            try:
                texts[member.path] = member.data.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Document %s is not valid UTF-8; copied unchanged", member.path)
        return texts

    def _rewrite_documents(self, report: TransformReport) -> Set[str]:
        """
        Transforme les documents et retourne les clés à empaqueter.

        Les images sont d'abord résolues en parallèle (une fois par clé),
        puis chaque document est réécrit séquentiellement.
        """
        texts = self._decode_documents()

        candidates: Set[str] = set()
        for text in texts.values():
            candidates |= scan_emoji_keys(text)
        self.resolver.prefetch(candidates)

        resolved: Set[str] = set()
        referenced: Set[str] = set()
        for member in self.members:
            text = texts.get(member.path)
            if text is None:
                continue
            img_dir = relative_img_dir(self.asset_dir, member.path)
            new_text, keys, replaced = rewrite_document_counted(
                text, img_dir, self.resolver, self.settings.delivery
            )
            referenced |= find_existing_references(text, img_dir)
            resolved |= keys
            if replaced:
                member.data = new_text.encode("utf-8")
                member.compress_type = zipfile.ZIP_DEFLATED
                report.documents_rewritten += 1
                report.emoji_replaced += replaced
                logger.info("Rewrote %s (%d emoji)", member.path, replaced)

        report.unresolved = sorted(candidates - resolved)
        self._advance(Stage.DOCUMENTS_REWRITTEN)

        # Les URI data: n'ont besoin ni de fichier ni d'entrée dans l'OPF
        if self.settings.delivery is AssetDelivery.EMBEDDED_DATA_URI:
            return referenced
        return resolved | referenced

    def _collect_archived_assets(self):
        """Sort les anciennes images du flux: elles seront réinjectées si encore utiles."""
        kept: List[ArchiveMember] = []
        for member in self.members:
            if _is_under(member.path, self.asset_dir):
                self.archived_assets[posixpath.basename(member.path)] = member.data
            else:
                kept.append(member)
        self.members = kept

    def _asset_bytes(self, key: str) -> Optional[bytes]:
        data = self.archived_assets.get(asset_filename(key))
        if data is not None:
            return data
        return self.resolver.read_bytes(key)

    def _patch_manifest(self, keys: Set[str], report: TransformReport):
        manifest = self._manifest_member()
        if manifest is None:
            return
        asset_dir_in_opf = posixpath.relpath(self.asset_dir, manifest_dir(self.manifest_path) or ".")
        new_content = patch_manifest(manifest.data, keys, asset_dir_in_opf)
        if new_content != manifest.data:
            manifest.data = new_content
            manifest.compress_type = zipfile.ZIP_DEFLATED
            report.manifest_patched = True
        self._advance(Stage.MANIFEST_PATCHED)

    def _build_archive(self, assets: Dict[str, bytes]) -> bytes:
        """Construit l'archive complète en mémoire."""
        buffer = io.BytesIO()
        ordered = sorted(self.members, key=lambda m: m.path != MIMETYPE_MEMBER)
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as out:
            for member in ordered:
                if member.path == MIMETYPE_MEMBER:
                    compress_type = zipfile.ZIP_STORED
                elif member.compress_type in (zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED):
                    compress_type = member.compress_type
                else:
                    compress_type = zipfile.ZIP_DEFLATED
                out.writestr(member.path, member.data, compress_type=compress_type)
            for key in sorted(assets):
                path = posixpath.join(self.asset_dir, asset_filename(key))
                out.writestr(path, assets[key], compress_type=zipfile.ZIP_DEFLATED)
        self._advance(Stage.PACKAGED)
        return buffer.getvalue()

    # --- Point d'entrée ---

    def run(self, input_path: str, output_path: str) -> TransformReport:
        """
        Transforme `input_path` et écrit le résultat dans `output_path`.

        Raises:
            ArchiveOpenError: l'entrée n'est pas une archive ZIP
            MemberReadError: un membre est illisible
            OutputWriteError: l'écriture de la sortie a échoué
        """
        report = TransformReport(input_path=input_path, output_path=output_path)

        self._read_members(input_path)
        report.manifest_path = self.manifest_path
        report.asset_dir = self.asset_dir

        wanted = self._rewrite_documents(report)
        self._collect_archived_assets()

        # Source unique: ces mêmes clés alimentent l'OPF et l'injection
        assets: Dict[str, bytes] = {}
        for key in sorted(wanted):
            data = self._asset_bytes(key)
            if data is None:
                logger.warning("No image bytes for %s; skipped", key)
                continue
            assets[key] = data
        report.assets = sorted(assets)

        self._patch_manifest(set(assets), report)
        payload = self._build_archive(assets)
        write_output(payload, output_path)

        self._advance(Stage.DONE)
        report.success = True
        report.note = f"{report.emoji_replaced} emoji replaced"
        return report


def write_output(payload: bytes, output_path: str):
    """
    Écrit l'archive de manière atomique.

    Utilise un fichier temporaire voisin pour ne jamais laisser de sortie
    partielle en cas d'échec.
    """
    out_dir = os.path.dirname(os.path.abspath(output_path))
    tmp_path = None
    try:
        os.makedirs(out_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".epub_emoji_x.", suffix=".tmp", dir=out_dir)
        with os.fdopen(fd, "wb") as f:
            f.write(payload)
        os.replace(tmp_path, output_path)
        logger.info("Wrote %s (%d bytes)", output_path, len(payload))
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            try:
                os.remove(tmp_path)
            except OSError:
                logger.debug("Could not remove temporary file %s", tmp_path)
        raise OutputWriteError(f"Cannot write {output_path}: {e}") from e


def replace_emoji_in_epub(
    input_path: str,
    output_path: str,
    settings: Optional[EmojiSettings] = None,
    resolver: Optional[AssetResolver] = None,
) -> TransformReport:
    """Remplace les emoji d'un EPUB par des images (voir EpubRepackager)."""
    settings = settings or EmojiSettings()
    logger.info("Processing EPUB %s -> %s", input_path, output_path)
    return EpubRepackager(settings, resolver).run(input_path, output_path)
