import re
import unicodedata

ARABIC_INDIC_DIGITS = str.maketrans("٠١٢٣٤٥٦٧٨٩", "0123456789")
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)]+)\)")
SITE_URL_RE = re.compile(r"https://oclaria\.com/")


def to_latin_digits(text: str) -> str:
    """Purpose: Replace Arabic-Indic digits with their Latin equivalents.
    Inputs/Outputs: Input is a raw string; output is the same string with 0-9 digits.
    Side Effects / State: None; pure function.
    Dependencies: Uses ARABIC_INDIC_DIGITS translation table.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Quantities typed as "٥٠" are never matched to a pack size.
    Testing Notes: Validate "٥٠" -> "50" and mixed text keeps non-digit characters.
    """
    if not text:
        return ""
    return text.translate(ARABIC_INDIC_DIGITS)


def normalize_message(text: str) -> str:
    """Purpose: Normalize a customer message for keyword and quantity matching.
    Inputs/Outputs: Input is a raw string; output is NFC-composed, lowercase text
        with Latin digits and collapsed whitespace.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and to_latin_digits; called by the fact detector.
    Failure Modes: Returns an empty string when input is falsy. Arabic script and
        accents are kept, unlike ASCII folding, because keywords rely on them.
    If Removed: "Écouteurs" or decomposed accents stop matching the keyword lists.
    Testing Notes: Ensure "ÉCOUTEURS" becomes "écouteurs" and "كروشي ٥٠" keeps the
        Arabic word with "50".
    """
    # Compose accents so "é" matches regardless of how the client encoded it.
    if not text:
        return ""
    composed = unicodedata.normalize("NFC", text).lower()
    return re.sub(r"\s+", " ", to_latin_digits(composed)).strip()


def rewrite_markdown_links(text: str) -> str:
    """Purpose: Turn markdown links into readable plain-text links.
    Inputs/Outputs: Input is reply text; output replaces "[title](url)" with "title: url".
    Side Effects / State: None; pure function.
    Dependencies: Uses MARKDOWN_LINK_RE.
    Failure Modes: Links with non-http targets are left untouched.
    If Removed: Chat surfaces without rich links show raw markdown syntax.
    Testing Notes: "See it [here](https://oclaria.com/x)" -> "See it here: https://oclaria.com/x".
    """
    if not text:
        return ""
    return MARKDOWN_LINK_RE.sub(r"\1: \2", text)


def normalize_site_urls(text: str) -> str:
    # Canonical shop URL; currently an identity rewrite.
    return SITE_URL_RE.sub("https://oclaria.com/", text or "")


def mask_secret(value: object) -> str:
    """Purpose: Mask a credential for safe logging.
    Inputs/Outputs: Input is any value; output keeps a short prefix plus the length.
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Short or empty values yield a generic mask.
    If Removed: Startup logs may expose the API key.
    Testing Notes: Verify a long key shows only its first 4 characters.
    """
    text = str(value or "").strip()
    if len(text) < 8:
        return "***"
    return f"{text[:4]}*** (len={len(text)})"
