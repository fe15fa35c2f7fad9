import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..config import (
    API_TIMEOUT,
    CACHE_DIR_ENV_VAR,
    CDN_BASE_ENV_VAR,
    EMOJI_CACHE_DIR,
    EMOJI_CDN_BASE,
    EMOJI_DIR_NAME,
    MAX_FETCH_WORKERS,
    OFFLINE_ENV_VAR,
)


class AssetDelivery(str, Enum):
    """Manière dont l'image est référencée dans le document."""

    REFERENCED_FILE = "file"
    EMBEDDED_DATA_URI = "data-uri"


class AssetSource(str, Enum):
    """Provenance autorisée pour les octets PNG."""

    LOCAL_ONLY = "local"
    REMOTE_WITH_CACHE = "remote"


@dataclass
class EmojiSettings:
    """Paramètres explicites d'une transformation (aucun état global)."""

    cache_dir: str = EMOJI_CACHE_DIR
    cdn_base: str = EMOJI_CDN_BASE
    emoji_dir_name: str = EMOJI_DIR_NAME
    delivery: AssetDelivery = AssetDelivery.REFERENCED_FILE
    source: AssetSource = AssetSource.REMOTE_WITH_CACHE
    timeout: float = API_TIMEOUT
    max_workers: int = MAX_FETCH_WORKERS

    @classmethod
    def from_env(cls, cache_dir: Optional[str] = None) -> "EmojiSettings":
        """Construit les paramètres depuis l'environnement, `cache_dir` prioritaire."""
        settings = cls()
        settings.cache_dir = cache_dir or os.getenv(CACHE_DIR_ENV_VAR) or EMOJI_CACHE_DIR
        settings.cdn_base = os.getenv(CDN_BASE_ENV_VAR) or EMOJI_CDN_BASE
        if os.getenv(OFFLINE_ENV_VAR) == "1":
            settings.source = AssetSource.LOCAL_ONLY
        return settings


@dataclass
class ArchiveMember:
    """Un membre de l'archive: chemin interne + octets."""

    path: str
    data: bytes
    compress_type: int | None = None


@dataclass
class TransformReport:
    """Résultat d'une transformation EPUB (ou d'un document isolé)."""

    input_path: str
    output_path: str

    manifest_path: str | None = None
    asset_dir: str | None = None
    manifest_patched: bool = False

    documents_rewritten: int = 0
    emoji_replaced: int = 0
    assets: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    # Statut (utilisé par le mode batch)
    success: bool = False
    note: str = ""
