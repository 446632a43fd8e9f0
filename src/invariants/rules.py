"""
Resilience Core - Invariants
Ces règles sont IMMUABLES et ne peuvent être modifiées par configuration.
Total: 37 règles
"""

from enum import Enum
from typing import Dict, Final


class Severity(Enum):
    """Criticité d'un invariant."""

    BLOCKING = "blocking"
    WARNING = "warning"


class Invariant:
    """Définition d'un invariant du noyau de résilience."""

    def __init__(self, id: str, rule: str, severity: Severity = Severity.BLOCKING):
        self.id = id
        self.rule = rule
        self.severity = severity

    def __repr__(self) -> str:
        return f"Invariant({self.id})"


# ══════════════════════════════════════════════════════════════════════════════
# STATUS (STATUS_001-006) - 6 règles
# ══════════════════════════════════════════════════════════════════════════════

STATUS_001 = Invariant("STATUS_001", "Status publié aux abonnés uniquement sur changement effectif")
STATUS_002 = Invariant("STATUS_002", "Échec de sonde (erreur ou timeout) converti en offline, jamais propagé")
STATUS_003 = Invariant("STATUS_003", "Sonde OK sous degraded_threshold = online, au-delà = degraded")
STATUS_004 = Invariant("STATUS_004", "close() arrête le timer et vide les abonnés, idempotent")
STATUS_005 = Invariant("STATUS_005", "Échec d'un abonné ne bloque pas la livraison aux autres")
STATUS_006 = Invariant("STATUS_006", "Signal plateforme déconnecté = offline sans sonde réseau")

# ══════════════════════════════════════════════════════════════════════════════
# QUEUE (QUEUE_001-007) - 7 règles
# ══════════════════════════════════════════════════════════════════════════════

QUEUE_001 = Invariant("QUEUE_001", "Taille de la file toujours <= max_queue_size")
QUEUE_002 = Invariant("QUEUE_002", "Débordement évince d'abord la plus ancienne requête low")
QUEUE_003 = Invariant("QUEUE_003", "Requêtes en cours toujours <= max_concurrent_requests")
QUEUE_004 = Invariant("QUEUE_004", "Chaque requête quitte l'ensemble en cours une seule fois par tentative")
QUEUE_005 = Invariant("QUEUE_005", "retry_count ne dépasse jamais max_retries, puis abandon définitif")
QUEUE_006 = Invariant("QUEUE_006", "Priorité high insérée en tête, normal/low en queue (FIFO par bande)")
QUEUE_007 = Invariant("QUEUE_007", "Vidage de la file uniquement si status online ou degraded")

# ══════════════════════════════════════════════════════════════════════════════
# RETRY (RETRY_001-005) - 5 règles
# ══════════════════════════════════════════════════════════════════════════════

RETRY_001 = Invariant("RETRY_001", "Délai = min(base_delay * multiplier^n, max_delay)")
RETRY_002 = Invariant("RETRY_002", "Délai monotone croissant et borné par max_delay (sans jitter)")
RETRY_003 = Invariant("RETRY_003", "Retry uniquement sur status code ou signature d'erreur retryable")
RETRY_004 = Invariant("RETRY_004", "Nombre total de tentatives <= max_retries + 1")
RETRY_005 = Invariant("RETRY_005", "Signature d'erreur comparée en sous-chaîne insensible à la casse")

# ══════════════════════════════════════════════════════════════════════════════
# GATEWAY (GATE_001-004) - 4 règles
# ══════════════════════════════════════════════════════════════════════════════

GATE_001 = Invariant("GATE_001", "Offline = mise en file immédiate avec id, zéro appel réseau")
GATE_002 = Invariant("GATE_002", "Passage offline pendant les retries = abandon immédiat")
GATE_003 = Invariant("GATE_003", "Échec définitif toujours remonté à l'appelant, jamais avalé")
GATE_004 = Invariant(
    "GATE_004",
    "Aucune déduplication des appels concurrents identiques",
    Severity.WARNING,
)

# ══════════════════════════════════════════════════════════════════════════════
# LOGGING (LOG_001-005) - 5 règles
# ══════════════════════════════════════════════════════════════════════════════

LOG_001 = Invariant("LOG_001", "Format JSON structuré obligatoire")
LOG_002 = Invariant("LOG_002", "Champs obligatoires: timestamp, level, correlation_id, component, message")
LOG_003 = Invariant("LOG_003", "Timestamp format ISO 8601 avec timezone UTC")
LOG_004 = Invariant("LOG_004", "Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL")
LOG_005 = Invariant("LOG_005", "Headers et paramètres sensibles JAMAIS en clair (masqués)")

# ══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION (CFG_001-010) - 10 règles
# ══════════════════════════════════════════════════════════════════════════════

CFG_001 = Invariant("CFG_001", "max_retries doit être >= 0")
CFG_002 = Invariant("CFG_002", "base_delay strictement positif et <= max_delay")
CFG_003 = Invariant("CFG_003", "backoff_multiplier >= 1 (backoff monotone)")
CFG_004 = Invariant("CFG_004", "max_queue_size doit être >= 1")
CFG_005 = Invariant("CFG_005", "max_concurrent_requests doit être >= 1")
CFG_006 = Invariant("CFG_006", "0 < degraded_threshold < timeout_threshold")
CFG_007 = Invariant("CFG_007", "flush_interval et check_interval strictement positifs")
CFG_008 = Invariant("CFG_008", "Status codes retryables compris entre 100 et 599")
CFG_009 = Invariant("CFG_009", "jitter compris entre 0 et 1")
CFG_010 = Invariant(
    "CFG_010",
    "check_interval supérieur à timeout_threshold (pas de sondes superposées)",
    Severity.WARNING,
)

# ══════════════════════════════════════════════════════════════════════════════
# REGISTRE
# ══════════════════════════════════════════════════════════════════════════════

ALL_INVARIANTS: Final[Dict[str, Invariant]] = {
    # STATUS (6)
    "STATUS_001": STATUS_001,
    "STATUS_002": STATUS_002,
    "STATUS_003": STATUS_003,
    "STATUS_004": STATUS_004,
    "STATUS_005": STATUS_005,
    "STATUS_006": STATUS_006,
    # QUEUE (7)
    "QUEUE_001": QUEUE_001,
    "QUEUE_002": QUEUE_002,
    "QUEUE_003": QUEUE_003,
    "QUEUE_004": QUEUE_004,
    "QUEUE_005": QUEUE_005,
    "QUEUE_006": QUEUE_006,
    "QUEUE_007": QUEUE_007,
    # RETRY (5)
    "RETRY_001": RETRY_001,
    "RETRY_002": RETRY_002,
    "RETRY_003": RETRY_003,
    "RETRY_004": RETRY_004,
    "RETRY_005": RETRY_005,
    # GATE (4)
    "GATE_001": GATE_001,
    "GATE_002": GATE_002,
    "GATE_003": GATE_003,
    "GATE_004": GATE_004,
    # LOG (5)
    "LOG_001": LOG_001,
    "LOG_002": LOG_002,
    "LOG_003": LOG_003,
    "LOG_004": LOG_004,
    "LOG_005": LOG_005,
    # CFG (10)
    "CFG_001": CFG_001,
    "CFG_002": CFG_002,
    "CFG_003": CFG_003,
    "CFG_004": CFG_004,
    "CFG_005": CFG_005,
    "CFG_006": CFG_006,
    "CFG_007": CFG_007,
    "CFG_008": CFG_008,
    "CFG_009": CFG_009,
    "CFG_010": CFG_010,
}


# Comptage attendu par section
EXPECTED_COUNTS: Final[Dict[str, int]] = {
    "STATUS": 6,
    "QUEUE": 7,
    "RETRY": 5,
    "GATE": 4,
    "LOG": 5,
    "CFG": 10,
}

TOTAL_INVARIANTS: Final[int] = len(ALL_INVARIANTS)

