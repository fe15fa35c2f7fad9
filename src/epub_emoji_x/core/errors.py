# epub_emoji_x/src/epub_emoji_x/core/errors.py
"""
Exceptions du moteur de transformation.

Les erreurs fatales (ouverture de l'archive, lecture d'un membre, écriture
du résultat) remontent jusqu'à l'appelant. Les autres sont attrapées au plus
près et dégradent le traitement (emoji laissé en texte, OPF inchangé...).
"""


class EmojiEpubError(Exception):
    """Classe de base pour toutes les erreurs du moteur."""


class ArchiveOpenError(EmojiEpubError):
    """Le fichier d'entrée n'est pas une archive ZIP lisible."""


class MemberReadError(EmojiEpubError):
    """Un membre précis de l'archive est illisible."""


class ManifestMissing(EmojiEpubError):
    """container.xml absent ou sans rootfile exploitable."""


class AssetFetchError(EmojiEpubError):
    """Image introuvable localement et non téléchargeable."""


class AssetWriteError(AssetFetchError):
    """Écriture dans le cache local impossible."""


class ManifestPatchError(EmojiEpubError):
    """OPF malformé: le manifest ne peut pas être modifié."""


class OutputWriteError(EmojiEpubError):
    """Création ou écriture de l'archive de sortie impossible."""
