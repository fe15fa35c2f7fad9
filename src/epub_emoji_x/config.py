# epub_emoji_x/src/epub_emoji_x/config.py
"""
Configuration et constantes pour EPUB Emoji X
"""

import os

# ---------- Configuration réseau ----------
API_TIMEOUT = 10
EMOJI_CDN_BASE = "https://gcore.jsdelivr.net/gh/twitter/twemoji@14.0.2/assets/72x72"
MAX_FETCH_WORKERS = 4

# ---------- Dossiers ----------
EMOJI_DIR_NAME = "emoji_img"  # dans l'archive, à côté de l'OPF
EMOJI_CACHE_DIR = "emoji_img"  # hors archive, relatif au dossier de travail
LOG_DIR = "logs"

# ---------- Conventions EPUB ----------
CONTAINER_PATH = "META-INF/container.xml"
MIMETYPE_MEMBER = "mimetype"
HTML_EXTENSIONS = (".xhtml", ".html", ".htm")
SUPPORTED_EXT = (".epub",)
PNG_MEDIA_TYPE = "image/png"
NAV_PROPERTY = "nav"
OUTPUT_SUFFIX = "_emoji"

# ---------- Rendu des images ----------
IMG_STYLE = "height:1em;vertical-align:-0.1em"

# ---------- Configuration retry/backoff ----------
MAX_RETRIES = 3
INITIAL_BACKOFF = 0.5  # seconds
MAX_BACKOFF = 8.0
JITTER = 0.3  # fraction for jitter

# ---------- Configuration logging ----------
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 5
LOG_ENCODING = "utf-8"

# ---------- Variables d'environnement ----------
CACHE_DIR_ENV_VAR = "EPUB_EMOJI_X_CACHE_DIR"
CDN_BASE_ENV_VAR = "EPUB_EMOJI_X_CDN_BASE"
OFFLINE_ENV_VAR = "EPUB_EMOJI_X_OFFLINE"


# ---------- Initialisation des dossiers ----------
def ensure_directories():
    """Crée les dossiers nécessaires s'ils n'existent pas."""
    os.makedirs(LOG_DIR, exist_ok=True)
