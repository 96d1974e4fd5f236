"""Counter state model shared by all store backends."""

from dataclasses import dataclass


@dataclass
class WindowCounter:
    count: int
    ttl: int  # seconds until the window expires; -1 = no expiry set
