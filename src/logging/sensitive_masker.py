"""
LOT 2: Logging - Sensitive Masker

Invariant:
    LOG_005: Headers et paramètres sensibles JAMAIS en clair (masqués)
"""

from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .interfaces import ISensitiveMasker


class SensitiveMasker(ISensitiveMasker):
    """
    Masque headers, corps JSON et query strings avant qu'ils atteignent les
    logs de la file et de la gateway.

    Une clé est sensible si son nom contient un des patterns (insensible à
    la casse). Les structures imbriquées sont parcourues; l'entrée n'est
    jamais modifiée.

    Example:
        masker = SensitiveMasker()
        masker.mask({"headers": {"Authorization": "Bearer abc"}})
        # {"headers": {"Authorization": "***MASKED***"}}
        masker.mask_url("/api/files?token=abc&page=2")
        # "/api/files?token=%2A%2A%2AMASKED%2A%2A%2A&page=2"
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        self._patterns: List[str] = list(self.SENSITIVE_PATTERNS)
        for pattern in additional_patterns or []:
            if pattern.strip():
                self.add_pattern(pattern)

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """LOG_005: Copie masquée; une entrée non-dict est retournée telle quelle."""
        if not isinstance(data, dict):
            return data
        return {
            key: self.MASK_VALUE if self.is_sensitive_key(str(key)) else self._mask_value(value)
            for key, value in data.items()
        }

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.mask(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value

    def mask_url(self, url: str) -> str:
        """
        LOG_005: Masque les paramètres sensibles de la query string.

        Args:
            url: URL absolue ou chemin relatif (cible d'une requête)

        Returns:
            URL inchangée si pas de query
        """
        parts = urlsplit(url)
        if not parts.query:
            return url
        query = [
            (name, self.MASK_VALUE if self.is_sensitive_key(name) else value)
            for name, value in parse_qsl(parts.query, keep_blank_values=True)
        ]
        return urlunsplit(parts._replace(query=urlencode(query)))

    def is_sensitive_key(self, key: str) -> bool:
        lowered = key.lower()
        return bool(lowered) and any(pattern in lowered for pattern in self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """
        Raises:
            ValueError: Si pattern vide
        """
        normalized = (pattern or "").strip().lower()
        if not normalized:
            raise ValueError("Pattern cannot be empty")
        if normalized not in self._patterns:
            self._patterns.append(normalized)
