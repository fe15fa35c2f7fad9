# tests/core/test_rewriter.py
"""
Tests pour le module core.emoji.rewriter.
"""

import base64

from epub_emoji_x.core.emoji.rewriter import (
    find_existing_references,
    rewrite_document,
    rewrite_document_counted,
    scan_emoji_keys,
)
from epub_emoji_x.core.models import AssetDelivery

GRIN = "\U0001F600"
PARTY = "\U0001F389"
FAMILY = "\U0001F468\u200d\U0001F469\u200d\U0001F467"
STYLE = 'style="height:1em;vertical-align:-0.1em"'


class FakeResolver:
    """Résolveur en mémoire: seules les clés de `available` existent."""

    def __init__(self, available):
        self.available = dict(available)
        self.calls = []

    def resolve(self, key):
        self.calls.append(key)
        return key in self.available

    def read_bytes(self, key):
        return self.available.get(key)


class TestRewriteDocument:
    """Tests pour rewrite_document."""

    def test_basic_substitution(self):
        """« Hi 😀 there » -> texte, une image, texte."""
        resolver = FakeResolver({"1f600": b"png"})

        text, keys = rewrite_document(f"Hi {GRIN} there", "../emoji_img", resolver)

        assert text == (
            f'Hi <img alt="{GRIN}" src="../emoji_img/1f600.png" {STYLE}/> there'
        )
        assert keys == {"1f600"}

    def test_unresolved_emoji_left_as_text(self):
        """Une image introuvable laisse l'emoji en texte, sans erreur."""
        resolver = FakeResolver({"1f600": b"png"})

        text, keys = rewrite_document(f"{PARTY} and {GRIN}", "emoji_img", resolver)

        assert text.startswith(f"{PARTY} and <img")
        assert keys == {"1f600"}

    def test_repeated_emoji_counted_once(self):
        """Trois occurrences: trois balises, une seule clé."""
        resolver = FakeResolver({"1f600": b"png"})

        text, keys, replaced = rewrite_document_counted(
            f"{GRIN}{GRIN} x {GRIN}", "emoji_img", resolver
        )

        assert text.count("<img ") == 3
        assert keys == {"1f600"}
        assert replaced == 3

    def test_zwj_sequence_single_image(self):
        """Une séquence ZWJ produit une seule balise."""
        key = "1f468-200d-1f469-200d-1f467"
        resolver = FakeResolver({key: b"png"})

        text, keys = rewrite_document(f"<p>{FAMILY}</p>", "emoji_img", resolver)

        assert text.count("<img ") == 1
        assert f'src="emoji_img/{key}.png"' in text
        assert keys == {key}

    def test_markup_is_not_touched(self):
        """Attributs, commentaires, <head>, <script> et <style> restent intacts."""
        resolver = FakeResolver({"1f600": b"png"})
        doc = (
            f"<html><head><title>{GRIN}</title><style>/* {GRIN} */</style></head>"
            f'<body><p title="{GRIN}">{GRIN}</p><!-- {GRIN} -->'
            f"<script>var s = '{GRIN}';</script></body></html>"
        )

        text, keys = rewrite_document(doc, "emoji_img", resolver)

        assert text.count("<img ") == 1
        assert f"<title>{GRIN}</title>" in text
        assert f'<p title="{GRIN}"><img ' in text
        assert f"<!-- {GRIN} -->" in text
        assert f"var s = '{GRIN}';" in text
        assert keys == {"1f600"}

    def test_gt_inside_quoted_attribute(self):
        """Un « > » dans une valeur d'attribut ne termine pas la balise."""
        resolver = FakeResolver({"1f600": b"png"})
        doc = f"<p><span title=\"a > {GRIN}\">x</span><b data-x='1 > 0 {GRIN}'>y</b></p>"

        text, keys = rewrite_document(doc, "emoji_img", resolver)

        assert text == doc
        assert keys == set()
        assert resolver.calls == []

    def test_gt_in_attribute_then_text_emoji(self):
        resolver = FakeResolver({"1f600": b"png"})

        text, _ = rewrite_document(f'<a title="x>y">{GRIN}</a>', "emoji_img", resolver)

        assert text.startswith('<a title="x>y"><img alt=')
        assert text.endswith("/></a>")

    def test_head_without_closing_tag(self):
        """HTML sans </head>: le <body> rouvre la substitution."""
        resolver = FakeResolver({"1f600": b"png"})
        doc = f"<html><head><title>{GRIN}</title><body><p>Hi {GRIN}</p></body></html>"

        text, keys = rewrite_document(doc, "emoji_img", resolver)

        assert text.count("<img ") == 1
        assert f"<title>{GRIN}</title>" in text
        assert keys == {"1f600"}

    def test_body_literal_inside_script_keeps_skipping(self):
        resolver = FakeResolver({"1f600": b"png"})
        doc = f"<head><script>var s = '<body>{GRIN}';</script></head><p>{GRIN}</p>"

        text, _ = rewrite_document(doc, "emoji_img", resolver)

        assert text.count("<img ") == 1
        assert f"'<body>{GRIN}';" in text

    def test_self_closing_skipped_element(self):
        """<script/> auto-fermant ne désactive pas la suite du document."""
        resolver = FakeResolver({"1f600": b"png"})

        text, _ = rewrite_document(f'<script src="a.js"/><p>{GRIN}</p>', "emoji_img", resolver)

        assert "<img " in text

    def test_document_without_emoji_unchanged(self):
        resolver = FakeResolver({})
        doc = "<p>Plain text, café &amp; ©</p>"

        text, keys = rewrite_document(doc, "emoji_img", resolver)

        assert text == doc
        assert keys == set()
        assert resolver.calls == []

    def test_embedded_data_uri(self):
        """Mode URI data: le PNG est embarqué dans l'attribut src."""
        resolver = FakeResolver({"1f600": b"\x89PNGdata"})

        text, keys = rewrite_document(
            f"<p>{GRIN}</p>", "ignored", resolver, AssetDelivery.EMBEDDED_DATA_URI
        )

        encoded = base64.b64encode(b"\x89PNGdata").decode("ascii")
        assert f'src="data:image/png;base64,{encoded}"' in text
        assert "ignored" not in text
        assert keys == {"1f600"}

    def test_rewrite_is_idempotent_on_output(self):
        """Retraiter une sortie ne change plus rien (l'emoji est dans alt)."""
        resolver = FakeResolver({"1f600": b"png"})
        first, _ = rewrite_document(f"<p>Hi {GRIN}</p>", "emoji_img", resolver)

        second, keys = rewrite_document(first, "emoji_img", resolver)

        assert second == first
        assert keys == set()


class TestScanAndReferences:
    """Tests pour scan_emoji_keys et find_existing_references."""

    def test_scan_emoji_keys(self):
        doc = f"<head><title>{PARTY}</title></head><p>{GRIN} {FAMILY} {GRIN}</p>"

        assert scan_emoji_keys(doc) == {"1f600", "1f468-200d-1f469-200d-1f467"}

    def test_find_existing_references(self):
        doc = (
            '<img alt="x" src="../emoji_img/1f600.png" style="a"/>'
            "<img src='../emoji_img/2764-fe0f.png'/>"
            '<img src="../images/cover.png"/>'
            '<img src="../emoji_img/not-a-key.png"/>'
        )

        assert find_existing_references(doc, "../emoji_img") == {"1f600", "2764-fe0f"}

    def test_find_existing_references_other_dir(self):
        doc = '<img src="emoji_img/1f600.png"/>'

        assert find_existing_references(doc, "../emoji_img") == set()
