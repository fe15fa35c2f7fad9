# epub_emoji_x/src/epub_emoji_x/core/emoji/resolver.py
"""
Résolution des images emoji (cache local + CDN).

Responsabilité unique: garantir qu'un PNG existe dans le cache local pour
une clé donnée avant qu'une balise <img> ne le référence.

Politique de repli, dans l'ordre:
1. le PNG est déjà dans le cache;
2. la clé finit par '-fe0f' et la forme de base est en cache: copie;
3. téléchargement de <cdn>/<clé>.png;
4. téléchargement de la forme de base, puis copie sous la clé demandée;
5. échec (non fatal: l'emoji reste en texte).
"""

import logging
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Dict, Iterable, Optional

import requests
from PIL import Image, UnidentifiedImageError

from ...config import API_TIMEOUT, EMOJI_CACHE_DIR, EMOJI_CDN_BASE, MAX_FETCH_WORKERS
from ..errors import AssetFetchError, AssetWriteError
from ..models import AssetSource
from ..network_utils import http_download_bytes
from .classifier import asset_filename, strip_presentation_suffix

logger = logging.getLogger(__name__)


def _check_png(data: bytes, url: str):
    """Refuse tout contenu qui n'est pas un PNG valide (page d'erreur, etc.)."""
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
            img.verify()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise AssetFetchError(f"Invalid image data from {url}: {e}") from e
    if fmt != "PNG":
        raise AssetFetchError(f"Expected PNG from {url}, got {fmt}")


class AssetResolver:
    """
    Cache d'images emoji adossé à un dossier local.

    Le cache est partagé entre exécutions et n'est jamais purgé ici.
    Chaque clé n'est résolue qu'une fois par instance (mémoïsation),
    ce qui permet de paralléliser les téléchargements via `prefetch`.
    """

    def __init__(
        self,
        cache_dir: str = EMOJI_CACHE_DIR,
        cdn_base: str = EMOJI_CDN_BASE,
        source: AssetSource = AssetSource.REMOTE_WITH_CACHE,
        timeout: float = API_TIMEOUT,
        max_workers: int = MAX_FETCH_WORKERS,
    ):
        self.cache_dir = cache_dir
        self.cdn_base = cdn_base.rstrip("/")
        self.source = source
        self.timeout = timeout
        self.max_workers = max_workers

        self._results: Dict[str, bool] = {}
        self._key_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        logger.debug(
            "AssetResolver initialized (cache=%s, source=%s)", cache_dir, source.value
        )

    @classmethod
    def from_settings(cls, settings) -> "AssetResolver":
        return cls(
            cache_dir=settings.cache_dir,
            cdn_base=settings.cdn_base,
            source=settings.source,
            timeout=settings.timeout,
            max_workers=settings.max_workers,
        )

    # --- Accès au cache ---

    def cache_path(self, key: str) -> str:
        return os.path.join(self.cache_dir, asset_filename(key))

    def is_cached(self, key: str) -> bool:
        return os.path.isfile(self.cache_path(key))

    def read_bytes(self, key: str) -> Optional[bytes]:
        """Octets PNG en cache pour `key`, ou None."""
        try:
            with open(self.cache_path(key), "rb") as f:
                return f.read()
        except OSError:
            return None

    def url_for(self, key: str) -> str:
        return f"{self.cdn_base}/{asset_filename(key)}"

    def _write_atomic(self, key: str, data: bytes):
        """Écrit dans un fichier temporaire puis renomme: jamais de PNG à moitié écrit."""
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{key}.", suffix=".tmp", dir=self.cache_dir
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_path, self.cache_path(key))
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise AssetWriteError(f"Cannot write {key} to cache {self.cache_dir}: {e}") from e

    def _copy_cached(self, src_key: str, dst_key: str):
        data = self.read_bytes(src_key)
        if data is None:
            raise AssetWriteError(f"Cached file for {src_key} disappeared")
        self._write_atomic(dst_key, data)

    def _fetch_to_cache(self, key: str):
        url = self.url_for(key)
        try:
            data = http_download_bytes(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise AssetFetchError(f"Download failed for {url}: {e}") from e
        _check_png(data, url)
        self._write_atomic(key, data)
        logger.info("Downloaded emoji image %s -> %s", url, self.cache_path(key))

    # --- Résolution ---

    def _resolve_uncached(self, key: str):
        """Étapes 1 à 4; lève AssetFetchError (étape 5) en cas d'échec."""
        if self.is_cached(key):
            return

        base = strip_presentation_suffix(key)
        if base and self.is_cached(base):
            self._copy_cached(base, key)
            logger.info("Using cached base form %s for %s", base, key)
            return

        if self.source is AssetSource.LOCAL_ONLY:
            raise AssetFetchError(f"{key} not in local cache {self.cache_dir}")

        try:
            self._fetch_to_cache(key)
            return
        except AssetFetchError as e:
            if not base:
                raise
            logger.info("Fetch failed for %s (%s), trying base form %s", key, e, base)

        self._fetch_to_cache(base)
        self._copy_cached(base, key)
        logger.info("Downloaded base form %s for %s", base, key)

    def resolve(self, key: str) -> bool:
        """
        Garantit la présence du PNG de `key` dans le cache.

        Returns:
            True si l'image est disponible, False sinon (l'appelant laisse
            alors l'emoji sous forme de texte)
        """
        with self._lock:
            if key in self._results:
                return self._results[key]
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            if key in self._results:
                return self._results[key]
            try:
                self._resolve_uncached(key)
                ok = True
            except AssetFetchError as e:
                logger.warning("Emoji image unavailable for %s: %s", key, e)
                ok = False
            with self._lock:
                self._results[key] = ok
            return ok

    def prefetch(self, keys: Iterable[str]) -> Dict[str, bool]:
        """Résout plusieurs clés distinctes en parallèle."""
        distinct = sorted(set(keys))
        if not distinct:
            return {}
        workers = max(1, min(self.max_workers, len(distinct)))
        logger.debug("Prefetching %d emoji image(s) with %d worker(s)", len(distinct), workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.resolve, distinct))
        return dict(zip(distinct, results))
