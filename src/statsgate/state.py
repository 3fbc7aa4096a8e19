from dataclasses import dataclass


@dataclass
class RotationState:
    active_index: int = 0
    # Only set while a backup is active
    primary_cooldown_until: float | None = None
    switches: int = 0

    def cooldown_expired(self, now: float) -> bool:
        return self.primary_cooldown_until is not None and now > self.primary_cooldown_until


@dataclass
class BucketState:
    tokens: float
    last_refill: float

    def refill(self, now: float, max_tokens: float, refill_rate: float) -> None:
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(max_tokens, self.tokens + elapsed * refill_rate)
        self.last_refill = now
