# epub_emoji_x/src/epub_emoji_x/main.py
"""
Point d'entrée principal pour EPUB Emoji X
Analyse les arguments et choisit le mode (EPUB unique, HTML isolé, lot)
"""

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from .config import (
    EMOJI_DIR_NAME,
    LOG_BACKUP_COUNT,
    LOG_DIR,
    LOG_ENCODING,
    LOG_MAX_BYTES,
    ensure_directories,
)
from .core.errors import EmojiEpubError
from .core.models import AssetDelivery, AssetSource, EmojiSettings


def setup_logging():
    """Configure le système de logging."""
    ensure_directories()
    logger = logging.getLogger("epub_emoji_x")
    logger.setLevel(logging.DEBUG)
    if logger.handlers:
        return logger

    # Handler pour fichier avec rotation
    logfile = os.path.join(LOG_DIR, "epub_emoji_x.log")
    handler = RotatingFileHandler(
        logfile, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding=LOG_ENCODING
    )
    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(threadName)s] %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Handler pour console
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epub_emoji_x",
        description="Remplace les emoji des EPUB par des images PNG en ligne.",
    )
    parser.add_argument("inputs", nargs="*", help="EPUB, dossiers ou motifs glob")
    parser.add_argument("-i", "--input", action="append", default=[], help="fichier d'entrée")
    parser.add_argument("-o", "--output", help="fichier de sortie (une seule entrée)")
    parser.add_argument("--output-dir", help="dossier de sortie (mode lot)")
    parser.add_argument("--emoji-dir", help="dossier du cache d'images emoji")
    parser.add_argument(
        "--html",
        action="store_true",
        help="traite un fichier HTML/XHTML isolé au lieu d'une archive",
    )
    parser.add_argument(
        "--img-dir",
        default=EMOJI_DIR_NAME,
        help="valeur écrite dans les src en mode --html",
    )
    parser.add_argument(
        "--delivery",
        choices=[d.value for d in AssetDelivery],
        default=AssetDelivery.REFERENCED_FILE.value,
        help="fichier référencé ou URI data: embarquée",
    )
    parser.add_argument(
        "--offline", action="store_true", help="n'utilise que le cache local"
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> EmojiSettings:
    settings = EmojiSettings.from_env(cache_dir=args.emoji_dir)
    settings.delivery = AssetDelivery(args.delivery)
    if args.offline:
        settings.source = AssetSource.LOCAL_ONLY
    return settings


def run_cli(argv: Optional[List[str]] = None) -> int:
    """Lance le mode ligne de commande."""
    logger = logging.getLogger("epub_emoji_x")
    parser = build_parser()
    args = parser.parse_args(argv)

    inputs = list(args.input) + list(args.inputs)
    if not inputs:
        parser.print_usage()
        print("Error: no input file given")
        return 1
    if (args.output or args.html) and len(inputs) != 1:
        print("Error: --output and --html accept exactly one input")
        return 1

    settings = settings_from_args(args)

    try:
        from .cli import cli_process_batch, cli_process_epub, cli_process_html, print_summary

        if args.html:
            output = args.output or inputs[0]
            reports = cli_process_html(inputs[0], output, args.img_dir, settings)
        elif args.output:
            reports = cli_process_epub(inputs[0], args.output, settings)
        else:
            reports = cli_process_batch(inputs, args.output_dir, settings)

        print_summary(reports)
        return 0 if reports and all(r.success for r in reports) else 1
    except EmojiEpubError as e:
        logger.error("Processing failed: %s", e)
        print(f"Error: {e}")
        return 1
    except Exception as e:
        logger.exception("Error in CLI mode")
        print(f"Error: {e}")
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Point d'entrée principal."""
    setup_logging()
    logging.getLogger("epub_emoji_x").info("Starting EPUB Emoji X")
    return run_cli(argv)


if __name__ == "__main__":
    raise SystemExit(main())
