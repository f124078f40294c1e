"""
Localazy language catalog and utilities.

Localazy identifies a project's source language by a numeric id; this
static catalog resolves such ids to Localazy locales and display names.
Locales use Localazy's own notation (``pt_BR``, ``zh_Hans``, ``sr_Latn``).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LocalazyLanguage:
    """A language known to Localazy."""

    localazy_id: int
    locale: str
    name: str


LOCALAZY_LANGUAGES: list[LocalazyLanguage] = [
    # === Major world languages ===
    LocalazyLanguage(1033, "en", "English"),
    LocalazyLanguage(2057, "en_GB", "English (United Kingdom)"),
    LocalazyLanguage(3081, "en_AU", "English (Australia)"),
    LocalazyLanguage(4105, "en_CA", "English (Canada)"),
    LocalazyLanguage(1034, "es", "Spanish"),
    LocalazyLanguage(2058, "es_MX", "Spanish (Mexico)"),
    LocalazyLanguage(1036, "fr", "French"),
    LocalazyLanguage(3084, "fr_CA", "French (Canada)"),
    LocalazyLanguage(1031, "de", "German"),
    LocalazyLanguage(2055, "de_CH", "German (Switzerland)"),
    LocalazyLanguage(3079, "de_AT", "German (Austria)"),
    LocalazyLanguage(1040, "it", "Italian"),
    LocalazyLanguage(2070, "pt", "Portuguese"),
    LocalazyLanguage(1046, "pt_BR", "Portuguese (Brazil)"),
    LocalazyLanguage(1049, "ru", "Russian"),
    LocalazyLanguage(1041, "ja", "Japanese"),
    LocalazyLanguage(1042, "ko", "Korean"),
    LocalazyLanguage(2052, "zh_Hans", "Chinese Simplified"),
    LocalazyLanguage(1028, "zh_Hant", "Chinese Traditional"),

    # === European languages ===
    LocalazyLanguage(1043, "nl", "Dutch"),
    LocalazyLanguage(2067, "nl_BE", "Dutch (Belgium)"),
    LocalazyLanguage(1045, "pl", "Polish"),
    LocalazyLanguage(1029, "cs", "Czech"),
    LocalazyLanguage(1051, "sk", "Slovak"),
    LocalazyLanguage(1038, "hu", "Hungarian"),
    LocalazyLanguage(1048, "ro", "Romanian"),
    LocalazyLanguage(1026, "bg", "Bulgarian"),
    LocalazyLanguage(1050, "hr", "Croatian"),
    LocalazyLanguage(3098, "sr", "Serbian"),
    LocalazyLanguage(2074, "sr_Latn", "Serbian (Latin)"),
    LocalazyLanguage(1060, "sl", "Slovenian"),
    LocalazyLanguage(1058, "uk", "Ukrainian"),
    LocalazyLanguage(1053, "sv", "Swedish"),
    LocalazyLanguage(1044, "nb", "Norwegian Bokmål"),
    LocalazyLanguage(1030, "da", "Danish"),
    LocalazyLanguage(1035, "fi", "Finnish"),
    LocalazyLanguage(1032, "el", "Greek"),
    LocalazyLanguage(1063, "lt", "Lithuanian"),
    LocalazyLanguage(1062, "lv", "Latvian"),
    LocalazyLanguage(1061, "et", "Estonian"),
    LocalazyLanguage(1027, "ca", "Catalan"),
    LocalazyLanguage(1069, "eu", "Basque"),
    LocalazyLanguage(1110, "gl", "Galician"),
    LocalazyLanguage(1039, "is", "Icelandic"),
    LocalazyLanguage(2108, "ga", "Irish"),

    # === Asian languages ===
    LocalazyLanguage(1081, "hi", "Hindi"),
    LocalazyLanguage(1093, "bn", "Bengali"),
    LocalazyLanguage(1097, "ta", "Tamil"),
    LocalazyLanguage(1098, "te", "Telugu"),
    LocalazyLanguage(1054, "th", "Thai"),
    LocalazyLanguage(1066, "vi", "Vietnamese"),
    LocalazyLanguage(1057, "id", "Indonesian"),
    LocalazyLanguage(1086, "ms", "Malay"),
    LocalazyLanguage(1124, "fil", "Filipino"),
    LocalazyLanguage(1055, "tr", "Turkish"),

    # === RTL languages ===
    LocalazyLanguage(1025, "ar", "Arabic"),
    LocalazyLanguage(1037, "he", "Hebrew"),
    LocalazyLanguage(1065, "fa", "Persian"),
    LocalazyLanguage(1056, "ur", "Urdu"),

    # === African languages ===
    LocalazyLanguage(1089, "sw", "Swahili"),
    LocalazyLanguage(1078, "af", "Afrikaans"),
    LocalazyLanguage(1077, "zu", "Zulu"),
]


_BY_ID: dict[int, LocalazyLanguage] = {lang.localazy_id: lang for lang in LOCALAZY_LANGUAGES}
_BY_LOCALE: dict[str, LocalazyLanguage] = {lang.locale: lang for lang in LOCALAZY_LANGUAGES}


# =============================================================================
# Utilities
# =============================================================================


def get_localazy_languages() -> list[LocalazyLanguage]:
    """All languages in the catalog."""
    return list(LOCALAZY_LANGUAGES)


def find_by_id(localazy_id: int | None) -> LocalazyLanguage | None:
    """Resolve a Localazy numeric language id."""
    if localazy_id is None:
        return None
    return _BY_ID.get(localazy_id)


def find_by_locale(locale: str) -> LocalazyLanguage | None:
    """Resolve a Localazy locale such as ``pt_BR``."""
    return _BY_LOCALE.get(locale)


def get_language_name(locale: str) -> str:
    """Get human-readable language name, falling back to the locale."""
    language = find_by_locale(locale)
    return language.name if language else locale
