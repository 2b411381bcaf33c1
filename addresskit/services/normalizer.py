# addresskit/services/normalizer.py
import re
import unicodedata
from typing import Optional

# Administrative-level tokens dropped before comparing names
ADMIN_PREFIXES = ["Thành phố", "Thị trấn", "Tỉnh", "Phường", "Xã"]

_PREFIX_RE = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(p) for p in ADMIN_PREFIXES) + r")(?!\w)",
    re.IGNORECASE,
)
_SPACES_RE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    # đ has no combining decomposition
    return stripped.replace("đ", "d").replace("Đ", "D")


def normalize_name(name: Optional[str]) -> str:
    """
    Reduces an administrative name to a comparable form:
    "Tỉnh Hà Nội" -> "ha noi", "Phường Hàng Trống" -> "hang trong".
    """
    if not name:
        return ""
    text = unicodedata.normalize("NFC", str(name))
    text = _PREFIX_RE.sub(" ", text)
    text = strip_diacritics(text)
    return _SPACES_RE.sub(" ", text).strip().lower()


def name_matches(query: Optional[str], candidate: Optional[str]) -> bool:
    """Normalised substring match. An empty query matches nothing."""
    needle = normalize_name(query)
    if not needle:
        return False
    return needle in normalize_name(candidate)
