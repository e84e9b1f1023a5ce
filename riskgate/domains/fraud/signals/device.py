"""Device signal: fingerprint sharing, device sprawl and request anomalies."""

from ..config import FraudConfig
from ..models import (
    DeviceFingerprint,
    NetworkClass,
    RiskFactor,
    SignalResult,
    SignalSnapshot,
    TransactionContext,
    UserContext,
)
from .base import SignalExtractor

AUTOMATION_MARKERS = (
    "bot",
    "crawler",
    "spider",
    "curl",
    "wget",
    "python-requests",
    "python-httpx",
    "python-urllib",
    "aiohttp",
    "go-http-client",
    "headless",
    "phantomjs",
    "selenium",
    "scrapy",
)

_NETWORK_FACTORS = {
    NetworkClass.NON_ROUTABLE: (0.3, RiskFactor.NON_ROUTABLE_ADDRESS),
    NetworkClass.ANONYMIZING: (0.5, RiskFactor.ANONYMIZING_NETWORK),
    NetworkClass.MISSING: (0.2, RiskFactor.MISSING_ADDRESS),
}


def is_automated_user_agent(user_agent: str) -> bool:
    ua = user_agent.lower()
    return any(marker in ua for marker in AUTOMATION_MARKERS)


class DeviceSignal(SignalExtractor):
    name = "device"
    weight = 0.20

    def extract(
        self,
        transaction: TransactionContext,
        user: UserContext,
        device: DeviceFingerprint,
        snapshot: SignalSnapshot,
        config: FraudConfig,
    ) -> SignalResult:
        associations = snapshot.devices
        score = 0.0
        factors: list[str] = []

        if associations.identities_on_device > config.device.max_identities_per_device:
            score += 0.6
            factors.append(RiskFactor.SHARED_DEVICE)

        if associations.devices_for_identity > config.max_devices_per_identity:
            score += 0.5
            factors.append(RiskFactor.TOO_MANY_DEVICES)
        elif associations.is_new_device and associations.devices_for_identity > 1:
            score += 0.2
            factors.append(RiskFactor.NEW_DEVICE)

        if not device.user_agent:
            score += 0.4
            factors.append(RiskFactor.MISSING_USER_AGENT)
        elif is_automated_user_agent(device.user_agent):
            score += 0.6
            factors.append(RiskFactor.AUTOMATED_USER_AGENT)

        if device.network in _NETWORK_FACTORS:
            points, factor = _NETWORK_FACTORS[device.network]
            score += points
            factors.append(factor)

        return self._result(score, factors)
