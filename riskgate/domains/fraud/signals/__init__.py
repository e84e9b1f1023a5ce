"""Risk signal extractors.

Exports ALL_SIGNALS (one instance per signal, in evaluation order) and
SIGNAL_WEIGHTS, the fixed aggregation weights (they sum to 1.0).
"""

from .amount import AmountSignal
from .base import SignalExtractor
from .behavioral import BehavioralSignal
from .device import DeviceSignal, is_automated_user_agent
from .frequency import FrequencySignal
from .geo import GeographicSignal

ALL_SIGNALS: list[SignalExtractor] = [
    AmountSignal(),
    FrequencySignal(),
    GeographicSignal(),
    DeviceSignal(),
    BehavioralSignal(),
]

SIGNAL_WEIGHTS: dict[str, float] = {signal.name: signal.weight for signal in ALL_SIGNALS}

__all__ = [
    "ALL_SIGNALS",
    "SIGNAL_WEIGHTS",
    "AmountSignal",
    "BehavioralSignal",
    "DeviceSignal",
    "FrequencySignal",
    "GeographicSignal",
    "SignalExtractor",
    "is_automated_user_agent",
]
