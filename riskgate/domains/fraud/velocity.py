"""Rolling-window velocity counters and device associations in Redis.

Every counter lives in a hash keyed by (identity, window, bucket), where the
bucket is the fixed window the current time falls into. Mutation happens only
inside a MULTI/EXEC transaction of atomic increments, and the key gets an
expiry equal to the window length on first creation (``EXPIRE ... NX``).

Redis is ephemeral: if its state is lost, every identity's velocity restarts
at zero. That is fail-open for the velocity axis only; the other signals are
unaffected.
"""

import time

import structlog
from redis.asyncio import Redis

from .models import DeviceAssociation, VelocityCounter, VelocityWindow

logger = structlog.get_logger()

VELOCITY_PREFIX = "velocity"
DEVICE_IDENTITIES_PREFIX = "device_identities"
IDENTITY_DEVICES_PREFIX = "identity_devices"


class VelocityTracker:
    """Per-identity counters over hour/day/week windows."""

    def __init__(self, redis: Redis, clock=time.time) -> None:
        self._redis = redis
        self._clock = clock

    def key_for(self, identity_id: str, window: VelocityWindow, now: float | None = None) -> str:
        now = self._clock() if now is None else now
        bucket = int(now // window.seconds)
        return f"{VELOCITY_PREFIX}:{identity_id}:{window.value}:{bucket}"

    async def update(
        self,
        identity_id: str,
        window: VelocityWindow,
        amount: float = 0.0,
        now: float | None = None,
    ) -> VelocityCounter:
        """Count one operation of ``amount`` and return the post-increment counter."""
        key = self.key_for(identity_id, window, now)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hincrby(key, "count", 1)
            pipe.hincrbyfloat(key, "amount", amount)
            pipe.expire(key, window.seconds, nx=True)
            pipe.ttl(key)
            count, total, _, ttl = await pipe.execute()

        return VelocityCounter(
            identity_id=identity_id,
            window=window,
            count=int(count),
            amount=round(float(total), 2),
            ttl_seconds=int(ttl) if ttl is not None and int(ttl) >= 0 else None,
        )

    async def snapshot(
        self,
        identity_id: str,
        window: VelocityWindow,
        now: float | None = None,
    ) -> VelocityCounter:
        """Read the current window's counter without touching it."""
        key = self.key_for(identity_id, window, now)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hgetall(key)
            pipe.ttl(key)
            raw, ttl = await pipe.execute()

        if not raw:
            return VelocityCounter(identity_id=identity_id, window=window)

        return VelocityCounter(
            identity_id=identity_id,
            window=window,
            count=int(_field(raw, "count") or 0),
            amount=round(float(_field(raw, "amount") or 0.0), 2),
            ttl_seconds=int(ttl) if ttl is not None and int(ttl) >= 0 else None,
        )

    async def associate_device(
        self,
        identity_id: str,
        fingerprint: str,
        ttl_seconds: int,
    ) -> DeviceAssociation:
        """Link a fingerprint and an identity both ways and return the set sizes."""
        device_key = f"{DEVICE_IDENTITIES_PREFIX}:{fingerprint}"
        identity_key = f"{IDENTITY_DEVICES_PREFIX}:{identity_id}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.sadd(device_key, identity_id)
            pipe.sadd(identity_key, fingerprint)
            pipe.expire(device_key, ttl_seconds, nx=True)
            pipe.expire(identity_key, ttl_seconds, nx=True)
            pipe.scard(device_key)
            pipe.scard(identity_key)
            _, added_device, _, _, identities, devices = await pipe.execute()

        return DeviceAssociation(
            identities_on_device=int(identities),
            devices_for_identity=int(devices),
            is_new_device=bool(added_device),
        )


def _field(raw: dict, name: str):
    # decode_responses may be off on a caller-supplied client
    if name in raw:
        return raw[name]
    return raw.get(name.encode())
