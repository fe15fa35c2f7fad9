# tests/conftest.py
"""
Configuration globale pour pytest.

Fournit des fixtures réutilisables pour tous les tests: EPUB d'exemple,
PNG réels, cache d'images pré-rempli. Aucun test n'accède au réseau.
"""

import zipfile
from io import BytesIO
from typing import Dict, Optional
from unittest.mock import patch

import pytest
import requests
from PIL import Image

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

CONTENT_OPF = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="3.0" unique-identifier="uid">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:identifier id="uid">urn:uuid:12345678</dc:identifier>
    <dc:title>Test Book</dc:title>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    <item id="nav" href="nav.xhtml" media-type="application/xhtml+xml" properties="nav"/>
    <item id="ch1" href="Text/ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="Text/ch2.xhtml" media-type="application/xhtml+xml"/>
    <item id="css" href="styles.css" media-type="text/css"/>
  </manifest>
  <spine>
    <itemref idref="ch1"/>
    <itemref idref="ch2"/>
  </spine>
</package>
"""

CHAPTER_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter \U0001F600</title></head>
<body>
<p>{body}</p>
</body>
</html>
"""

NAV_XHTML = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<body><nav epub:type="toc"><ol><li><a href="Text/ch1.xhtml">Smile \U0001F600</a></li></ol></nav></body>
</html>
"""


def chapter(body: str) -> str:
    return CHAPTER_TEMPLATE.format(body=body)


def _png(color) -> bytes:
    buf = BytesIO()
    Image.new("RGBA", (4, 4), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def container_xml() -> bytes:
    return CONTAINER_XML.encode("utf-8")


@pytest.fixture
def content_opf() -> bytes:
    return CONTENT_OPF.encode("utf-8")


@pytest.fixture
def png_bytes() -> bytes:
    """PNG valide (4x4) pour le cache et les réponses HTTP simulées."""
    return _png((255, 200, 0, 255))


@pytest.fixture
def other_png_bytes() -> bytes:
    return _png((200, 0, 0, 255))


@pytest.fixture(autouse=True)
def no_network():
    """Tout téléchargement échoue, sauf si un test le simule explicitement."""
    with patch(
        "epub_emoji_x.core.emoji.resolver.http_download_bytes",
        side_effect=requests.ConnectionError("offline"),
    ) as mock_download:
        yield mock_download


@pytest.fixture
def cache_dir(tmp_path, png_bytes, other_png_bytes):
    """Cache d'images contenant 1f600 (😀) et 2764 (❤ sans VS16)."""
    d = tmp_path / "emoji_cache"
    d.mkdir()
    (d / "1f600.png").write_bytes(png_bytes)
    (d / "2764.png").write_bytes(other_png_bytes)
    return d


@pytest.fixture
def settings(cache_dir):
    from epub_emoji_x.core.models import EmojiSettings

    return EmojiSettings(cache_dir=str(cache_dir), cdn_base="https://cdn.test/72x72")


@pytest.fixture
def make_epub(tmp_path):
    """
    Fabrique un EPUB de test.

    `files` remplace ou complète les membres par défaut; une valeur None
    retire le membre correspondant.
    """

    def _make(
        files: Optional[Dict[str, Optional[object]]] = None,
        name: str = "book.epub",
        ch1: str = "Hi \U0001F600 there",
        ch2: str = "Nothing to see",
    ):
        members: Dict[str, Optional[object]] = {
            "mimetype": "application/epub+zip",
            "META-INF/container.xml": CONTAINER_XML,
            "OEBPS/content.opf": CONTENT_OPF,
            "OEBPS/nav.xhtml": NAV_XHTML,
            "OEBPS/Text/ch1.xhtml": chapter(ch1),
            "OEBPS/Text/ch2.xhtml": chapter(ch2),
            "OEBPS/styles.css": "p { margin: 0; } /* \U0001F600 */",
            "OEBPS/images/cover.jpg": b"\xff\xd8\xff\xe0 not really a jpeg",
        }
        members.update(files or {})

        path = tmp_path / name
        with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
            for member, content in members.items():
                if content is None:
                    continue
                data = content.encode("utf-8") if isinstance(content, str) else content
                compress = zipfile.ZIP_STORED if member == "mimetype" else zipfile.ZIP_DEFLATED
                zf.writestr(member, data, compress_type=compress)
        return path

    return _make

