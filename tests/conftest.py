"""
Resilience Core - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from pathlib import Path
from typing import Callable, List

import pytest

from src.connectivity import NetworkStatus, ProbeConfig, StatusTracker
from src.logging import LogConfig, LogLevel, StructuredLogger
from tests.fakes import FakeClock, FakeSignal


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def valid_minimal_config(fixtures_path: Path) -> dict:
    """Charge la configuration minimale valide."""
    import yaml
    config_path = fixtures_path / "configs" / "valid_minimal.yaml"
    with open(config_path) as f:
        return yaml.safe_load(f)


@pytest.fixture
def all_invariants() -> dict:
    """Retourne tous les invariants."""
    from src.invariants.rules import ALL_INVARIANTS
    return ALL_INVARIANTS


@pytest.fixture
def clock() -> FakeClock:
    """Horloge virtuelle."""
    return FakeClock()


@pytest.fixture
def captured_lines() -> List[str]:
    """Lignes JSON émises par les loggers de test."""
    return []


@pytest.fixture
def make_logger(captured_lines: List[str]) -> Callable[[str], StructuredLogger]:
    """Fabrique de loggers silencieux (DEBUG, sortie capturée)."""

    def factory(name: str) -> StructuredLogger:
        return StructuredLogger(
            name,
            LogConfig(min_level=LogLevel.DEBUG),
            output_handler=captured_lines.append,
        )

    return factory


@pytest.fixture
def signal() -> FakeSignal:
    return FakeSignal(connected=True)


@pytest.fixture
def tracker(clock: FakeClock, signal: FakeSignal, make_logger) -> StatusTracker:
    """Tracker online (signal connecté), sans sonde."""
    tracker = StatusTracker(
        ProbeConfig(),
        probe=None,
        signal=signal,
        clock=clock,
        logger=make_logger("status-tracker"),
    )
    assert tracker.current() == NetworkStatus.ONLINE
    return tracker
