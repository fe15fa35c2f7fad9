# epub_emoji_x/src/epub_emoji_x/core/epub/container.py
"""
Module de navigation dans le conteneur EPUB.

Responsabilité unique: trouver l'OPF via META-INF/container.xml et
identifier les documents de navigation (exclus du remplacement).
"""

import logging
import posixpath
from typing import Mapping, Optional, Set
from urllib.parse import unquote

from lxml import etree

from ...config import CONTAINER_PATH, EMOJI_DIR_NAME, NAV_PROPERTY
from ..errors import ManifestMissing

logger = logging.getLogger(__name__)

_PARSER_OPTIONS = {"resolve_entities": False, "no_network": True}


def _parse_xml(content: bytes) -> etree._Element:
    return etree.fromstring(content, parser=etree.XMLParser(**_PARSER_OPTIONS))


def parse_container(content: bytes) -> str:
    """
    Extrait le chemin de l'OPF depuis le contenu de container.xml.

    Raises:
        ManifestMissing: XML invalide ou aucun rootfile/@full-path
    """
    try:
        root = _parse_xml(content)
    except etree.XMLSyntaxError as e:
        raise ManifestMissing(f"Malformed {CONTAINER_PATH}: {e}") from e

    for rootfile in root.iter("{*}rootfile"):
        full_path = rootfile.get("full-path")
        if full_path:
            return full_path
    raise ManifestMissing(f"No rootfile full-path in {CONTAINER_PATH}")


def locate_manifest(members: Mapping[str, bytes]) -> Optional[str]:
    """
    Retourne le chemin de l'OPF déclaré par le conteneur, ou None.

    Une archive sans OPF exploitable reste traitable: les documents sont
    transformés mais aucun manifest n'est modifié.
    """
    content = members.get(CONTAINER_PATH)
    if content is None:
        logger.warning("No %s in archive; treating as manifest-less", CONTAINER_PATH)
        return None

    try:
        path = parse_container(content)
    except ManifestMissing as e:
        logger.warning("%s; treating as manifest-less", e)
        return None

    logger.info("Package document: %s", path)
    return path


def manifest_dir(manifest_path: Optional[str]) -> str:
    """Dossier de l'OPF dans l'archive ('' pour la racine)."""
    if not manifest_path:
        return ""
    return posixpath.dirname(manifest_path)


def asset_dir_for(manifest_path: Optional[str], dir_name: str = EMOJI_DIR_NAME) -> str:
    """Dossier des images dans l'archive: à côté de l'OPF, sinon à la racine."""
    base = manifest_dir(manifest_path)
    return posixpath.join(base, dir_name) if base else dir_name


def resolve_href(base_dir: str, href: str) -> str:
    """Résout un href du manifest en chemin d'archive normalisé."""
    href = unquote(href.split("#", 1)[0]).replace("\\", "/")
    path = posixpath.normpath(posixpath.join(base_dir, href)) if base_dir else posixpath.normpath(href)
    return path.lstrip("/")


def navigation_documents(manifest_content: bytes, base_dir: str) -> Set[str]:
    """
    Chemins des documents marqués comme navigation (properties="nav").

    Args:
        manifest_content: Contenu de l'OPF
        base_dir: Dossier de l'OPF dans l'archive

    Returns:
        Ensemble de chemins d'archive (séparateurs '/'); vide si l'OPF
        est illisible
    """
    try:
        root = _parse_xml(manifest_content)
    except etree.XMLSyntaxError as e:
        logger.warning("Cannot scan navigation documents: %s", e)
        return set()

    nav_paths = set()
    for item in root.iter("{*}item"):
        properties = (item.get("properties") or "").split()
        href = item.get("href")
        if NAV_PROPERTY in properties and href:
            nav_paths.add(resolve_href(base_dir, href))

    if nav_paths:
        logger.debug("Navigation documents excluded: %s", sorted(nav_paths))
    return nav_paths
