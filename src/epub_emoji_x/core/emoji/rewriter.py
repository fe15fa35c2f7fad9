# epub_emoji_x/src/epub_emoji_x/core/emoji/rewriter.py
"""
Remplacement des emoji d'un document (X)HTML par des balises <img>.

Seul le texte est modifié: balises, commentaires, sections CDATA et
contenu de <head>/<title>/<script>/<style> sont recopiés tels quels.
"""

import base64
import html
import logging
import posixpath
import re
from typing import TYPE_CHECKING, List, Set, Tuple

from ...config import IMG_STYLE, PNG_MEDIA_TYPE
from ..models import AssetDelivery
from .classifier import asset_filename, classify, emoji_key

if TYPE_CHECKING:
    from .resolver import AssetResolver

logger = logging.getLogger(__name__)

# Découpe le document en balises / commentaires / CDATA (capturés) et texte.
# Un ">" entre guillemets fait partie de la valeur d'attribut, pas de la fin de balise.
_MARKUP_RE = re.compile(
    r"""(<!--.*?-->|<!\[CDATA\[.*?\]\]>|<(?:[^>"']|"[^"]*"|'[^']*')*>)""", re.DOTALL
)
_OPEN_TAG_RE = re.compile(r"<\s*([A-Za-z][\w:.-]*)")
_CLOSE_TAG_RE = re.compile(r"<\s*/\s*([A-Za-z][\w:.-]*)")
_IMG_SRC_RE = re.compile(r"""<\s*img\b[^>]*?\bsrc\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_KEY_FILENAME_RE = re.compile(r"^([0-9a-f]+(?:-[0-9a-f]+)*)\.png$")

# Éléments dont le contenu ne doit jamais être transformé
_SKIPPED_ELEMENTS = {"head", "title", "script", "style"}


def _local_name(tag: str) -> str:
    return tag.rsplit(":", 1)[-1].lower()


def _img_tag(cluster: str, src: str) -> str:
    alt = html.escape(cluster, quote=True)
    return f'<img alt="{alt}" src="{src}" style="{IMG_STYLE}"/>'


def _data_uri(data: bytes) -> str:
    return f"data:{PNG_MEDIA_TYPE};base64," + base64.b64encode(data).decode("ascii")


def _rewrite_text(
    text: str,
    img_dir: str,
    resolver: "AssetResolver",
    delivery: AssetDelivery,
    keys: Set[str],
) -> Tuple[str, int]:
    """Remplace les emoji d'un segment de texte pur; retourne (texte, nb de remplacements)."""
    out: List[str] = []
    replaced = 0
    for cluster, is_emoji in classify(text):
        if not is_emoji:
            out.append(cluster)
            continue

        key = emoji_key(cluster)
        if not resolver.resolve(key):
            out.append(cluster)
            continue

        if delivery is AssetDelivery.EMBEDDED_DATA_URI:
            data = resolver.read_bytes(key)
            if data is None:
                out.append(cluster)
                continue
            src = _data_uri(data)
        else:
            src = posixpath.join(img_dir, asset_filename(key)) if img_dir else asset_filename(key)

        out.append(_img_tag(cluster, src))
        keys.add(key)
        replaced += 1
    return "".join(out), replaced


def _iter_segments(text: str):
    """
    Itère sur (segment, est_du_texte_à_traiter).

    Suit la pile des éléments ignorés pour ne pas toucher à leur contenu.
    En HTML, </head> est facultatif: un <body> ferme implicitement <head>.
    """
    skipped: List[str] = []
    for i, part in enumerate(_MARKUP_RE.split(text)):
        if not part:
            continue
        if i % 2 == 0:
            yield part, not skipped
            continue

        yield part, False
        if part.startswith("<!"):
            continue
        close = _CLOSE_TAG_RE.match(part)
        if close:
            name = _local_name(close.group(1))
            if name in skipped:
                del skipped[skipped.index(name):]
            continue
        opening = _OPEN_TAG_RE.match(part)
        if not opening:
            continue
        name = _local_name(opening.group(1))
        if name == "body" and "head" in skipped and skipped[-1] not in ("script", "style"):
            logger.debug("Implicit </head> before <body>")
            skipped.clear()
        elif name in _SKIPPED_ELEMENTS and not part.rstrip().endswith("/>"):
            skipped.append(name)


def rewrite_document(
    text: str,
    img_dir: str,
    resolver: "AssetResolver",
    delivery: AssetDelivery = AssetDelivery.REFERENCED_FILE,
) -> Tuple[str, Set[str]]:
    """
    Remplace chaque emoji du document par une image en ligne.

    Args:
        text: Contenu du document
        img_dir: Chemin relatif (depuis le document) vers le dossier d'images
        resolver: Résolveur garantissant la présence des PNG
        delivery: Fichier référencé ou URI data: embarquée

    Returns:
        (nouveau texte, ensemble des clés résolues avec succès)

    Note:
        Un emoji dont l'image est introuvable reste en texte; le document
        n'est jamais abandonné pour autant.
    """
    new_text, keys, _ = rewrite_document_counted(text, img_dir, resolver, delivery)
    return new_text, keys


def rewrite_document_counted(
    text: str,
    img_dir: str,
    resolver: "AssetResolver",
    delivery: AssetDelivery = AssetDelivery.REFERENCED_FILE,
) -> Tuple[str, Set[str], int]:
    """Comme `rewrite_document`, avec en plus le nombre d'emoji remplacés."""
    keys: Set[str] = set()
    out: List[str] = []
    replaced = 0
    for segment, is_text in _iter_segments(text):
        if not is_text:
            out.append(segment)
            continue
        new_segment, count = _rewrite_text(segment, img_dir, resolver, delivery, keys)
        out.append(new_segment)
        replaced += count
    return "".join(out), keys, replaced


def scan_emoji_keys(text: str) -> Set[str]:
    """Clés de tous les emoji présents dans le texte transformable (sans résolution)."""
    return {
        emoji_key(cluster)
        for segment, is_text in _iter_segments(text)
        if is_text
        for cluster, is_emoji in classify(segment)
        if is_emoji
    }


def _iter_references(text: str, img_dir: str):
    for m in _IMG_SRC_RE.finditer(text):
        src = html.unescape(m.group(2))
        if posixpath.dirname(src) != img_dir:
            continue
        name = _KEY_FILENAME_RE.match(posixpath.basename(src))
        if name:
            yield name.group(1)


def find_existing_references(text: str, img_dir: str) -> Set[str]:
    """
    Clés déjà référencées par <img src="<img_dir>/<clé>.png">.

    Permet de retraiter un EPUB déjà transformé sans perdre ses images.
    """
    return set(_iter_references(text, img_dir))
