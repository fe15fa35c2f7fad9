# epub_emoji_x/src/epub_emoji_x/core/epub/manifest.py
"""
Module de mise à jour du manifest OPF.

Responsabilité unique: retirer les items périmés du dossier d'images et
ajouter un item par image requise, sans doublon.

Le manifest est traité comme une liste de nœuds: on filtre ses enfants
(items conservés), on ajoute les nouveaux, puis on resérialise. Tout le
reste du document (déclaration XML, commentaires, instructions de
traitement, metadata, spine...) est conservé tel quel.
"""

import logging
import re
from typing import Iterable, List, Set, Tuple

from lxml import etree

from ...config import PNG_MEDIA_TYPE
from ..emoji.classifier import asset_filename, manifest_item_id
from ..errors import ManifestPatchError

logger = logging.getLogger(__name__)

_XML_DECL_RE = re.compile(rb"^\s*<\?xml[^>]*\?>\s*")
_DEFAULT_CHILD_INDENT = "\n    "
_DEFAULT_CLOSE_INDENT = "\n  "


def _is_under(href: str, asset_dir: str) -> bool:
    href = href.replace("\\", "/")
    while href.startswith("./"):
        href = href[2:]
    prefix = asset_dir.strip("/")
    return href == prefix or href.startswith(prefix + "/")


def _find_manifest(root: etree._Element) -> etree._Element:
    for el in root.iter("{*}manifest"):
        return el
    raise ManifestPatchError("No <manifest> element in package document")


def _drop(el: etree._Element):
    """Retire un élément en conservant l'indentation de ses voisins."""
    parent = el.getparent()
    prev = el.getprevious()
    if prev is not None:
        prev.tail = el.tail
    else:
        parent.text = el.tail
    parent.remove(el)


def _unique_id(base: str, used: Set[str]) -> str:
    candidate = base
    n = 2
    while candidate in used:
        candidate = f"{base}_{n}"
        n += 1
    return candidate


def _patch_tree(root: etree._Element, keys: Iterable[str], asset_dir: str) -> Tuple[int, int]:
    """Filtre puis complète le manifest; retourne (items retirés, items ajoutés)."""
    manifest = _find_manifest(root)

    # 1. Indentation observée sur les items existants (avant tout retrait)
    child_indent = manifest.text if manifest.text and not manifest.text.strip() else None
    close_indent = manifest[-1].tail if len(manifest) else None
    child_indent = child_indent or _DEFAULT_CHILD_INDENT
    close_indent = close_indent if close_indent is not None else _DEFAULT_CLOSE_INDENT

    # 2. Items conservés / items périmés
    stale: List[etree._Element] = []
    for child in manifest:
        if not isinstance(child.tag, str):
            continue  # commentaires, PI
        if etree.QName(child).localname == "item" and _is_under(child.get("href") or "", asset_dir):
            stale.append(child)
    for el in stale:
        _drop(el)
    if stale:
        logger.debug("Removed %d stale item(s) under %s", len(stale), asset_dir)

    used_ids = {el.get("id") for el in manifest.iter("{*}item") if el.get("id")}

    # 3. Ajout des nouveaux items (ordre trié = sortie déterministe)
    namespace = etree.QName(manifest).namespace
    item_tag = f"{{{namespace}}}item" if namespace else "item"
    appended_ids: Set[str] = set()
    added = 0
    for key in sorted(set(keys)):
        base_id = manifest_item_id(key)
        if base_id in appended_ids:
            continue
        item_id = _unique_id(base_id, used_ids)

        if len(manifest):
            manifest[-1].tail = child_indent
        else:
            manifest.text = child_indent
        item = etree.SubElement(manifest, item_tag)
        item.set("id", item_id)
        item.set("href", f"{asset_dir.strip('/')}/{asset_filename(key)}")
        item.set("media-type", PNG_MEDIA_TYPE)
        item.tail = close_indent

        appended_ids.add(base_id)
        used_ids.add(item_id)
        added += 1
    return len(stale), added


def patch_manifest(manifest_content: bytes, keys: Iterable[str], asset_dir: str) -> bytes:
    """
    Met à jour le manifest de l'OPF pour les images emoji.

    Args:
        manifest_content: Contenu brut de l'OPF
        keys: Clés emoji requises
        asset_dir: Dossier des images, relatif au dossier de l'OPF

    Returns:
        Nouveau contenu de l'OPF, ou le contenu d'origine si le XML est
        invalide (le traitement continue sans mise à jour du manifest)
    """
    try:
        return _patch(manifest_content, keys, asset_dir)
    except ManifestPatchError as e:
        logger.warning("Manifest left unchanged: %s", e)
        return manifest_content


def _patch(manifest_content: bytes, keys: Iterable[str], asset_dir: str) -> bytes:
    parser = etree.XMLParser(resolve_entities=False, no_network=True, strip_cdata=False)
    try:
        root = etree.fromstring(manifest_content, parser=parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ManifestPatchError(f"Malformed package document: {e}") from e

    dropped, added = _patch_tree(root, keys, asset_dir)
    if not dropped and not added:
        logger.debug("Manifest already up to date")
        return manifest_content
    logger.info(
        "Manifest patched: -%d/+%d emoji item(s) under %s", dropped, added, asset_dir
    )

    tree = root.getroottree()
    encoding = tree.docinfo.encoding or "utf-8"
    body = etree.tostring(tree, encoding=encoding, xml_declaration=False)

    decl = _XML_DECL_RE.match(manifest_content)
    if decl:
        return decl.group(0) + body.lstrip()
    return body
