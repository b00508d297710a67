"""IETF language tag to locale lookup for onboarding prompts."""

from __future__ import annotations

# Primary language subtag -> ISO 3166 country used to build lang_country locales.
LANGUAGE_COUNTRIES: dict[str, str] = {
    "af": "za",
    "am": "et",
    "ar": "sa",
    "arn": "cl",
    "ary": "ma",
    "as": "in",
    "az": "az",
    "ba": "ru",
    "be": "by",
    "bg": "bg",
    "bn": "bd",
    "bo": "cn",
    "br": "fr",
    "bs": "ba",
    "ca": "es",
    "ckb": "iq",
    "co": "fr",
    "cs": "cz",
    "cy": "gb",
    "da": "dk",
    "de": "de",
    "dsb": "de",
    "dv": "mv",
    "el": "gr",
    "en": "gb",
    "es": "es",
    "et": "ee",
    "eu": "es",
    "fa": "ir",
    "fi": "fi",
    "fil": "ph",
    "fo": "fo",
    "fr": "fr",
    "fy": "nl",
    "ga": "ie",
    "gd": "gb",
    "gil": "ki",
    "gl": "es",
    "gsw": "ch",
    "gu": "in",
    "ha": "ng",
    "he": "il",
    "hi": "in",
    "hr": "hr",
    "sh": "rs",
    "hsb": "de",
    "hu": "hu",
    "hy": "am",
    "id": "id",
    "ig": "ng",
    "ii": "cn",
    "is": "is",
    "it": "it",
    "iu": "ca",
    "ja": "jp",
    "ka": "ge",
    "kk": "kz",
    "kl": "gl",
    "km": "kh",
    "kn": "in",
    "ko": "kr",
    "kok": "in",
    "ku": "iq",
    "ky": "kg",
    "lb": "lu",
    "lo": "la",
    "lt": "lt",
    "lv": "lv",
    "mi": "nz",
    "mk": "mk",
    "ml": "in",
    "mn": "mn",
    "moh": "ca",
    "mr": "in",
    "ms": "my",
    "mt": "mt",
    "my": "mm",
    "nb": "no",
    "ne": "np",
    "nl": "nl",
    "nn": "no",
    "no": "no",
    "oc": "fr",
    "or": "in",
    "pap": "an",
    "pa": "in",
    "pl": "pl",
    "prs": "af",
    "ps": "af",
    "pt": "pt",
    "quc": "gt",
    "qu": "pe",
    "rm": "ch",
    "ro": "ro",
    "ru": "ru",
    "rw": "rw",
    "sa": "in",
    "sah": "ru",
    "se": "no",
    "si": "lk",
    "sk": "sk",
    "sl": "si",
    "sma": "se",
    "smj": "se",
    "smn": "fi",
    "sms": "fi",
    "sq": "al",
    "sr": "rs",
    "st": "za",
    "sv": "se",
    "sw": "ke",
    "syc": "sy",
    "ta": "in",
    "te": "in",
    "tg": "tj",
    "th": "th",
    "tk": "tm",
    "tn": "bw",
    "tr": "tr",
    "tt": "ru",
    "tzm": "ma",
    "ug": "cn",
    "uk": "ua",
    "ur": "pk",
    "uz": "uz",
    "vi": "vn",
    "wo": "sn",
    "xh": "za",
    "yo": "ng",
    "zh": "cn",
    "zu": "za",
}


def convert_language_code(ietf_code: str | None) -> str | None:
    """Return ``lang_country`` for an IETF tag such as ``en-US``; None if the language is unknown."""
    if not ietf_code:
        return None
    language = ietf_code.strip().replace("_", "-").split("-")[0].lower()
    country = LANGUAGE_COUNTRIES.get(language)
    if country is None:
        return None
    return f"{language}_{country}"
