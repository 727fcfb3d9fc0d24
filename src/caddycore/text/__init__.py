from caddycore.text.normalize import (
    Modification,
    ModificationType,
    NormalizeResult,
    normalize_text,
)

__all__ = ["Modification", "ModificationType", "NormalizeResult", "normalize_text"]
