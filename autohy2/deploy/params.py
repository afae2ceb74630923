"""Deployment parameters dataclass."""

from dataclasses import dataclass

DEFAULT_BANDWIDTH = "100 mbps"


@dataclass(frozen=True)
class DeploymentParameters:
    """Everything the pipeline needs from its caller. Never mutated after construction."""

    port: int
    password: str
    fake_domain: str  # TLS subject and SNI value
    bandwidth_up: str = DEFAULT_BANDWIDTH
    bandwidth_down: str = DEFAULT_BANDWIDTH

    def __post_init__(self):
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"port must be an integer, got {self.port!r}")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if not self.password:
            raise ValueError("password must not be empty")
        if not self.fake_domain or any(c.isspace() or c == "/" for c in self.fake_domain):
            raise ValueError(f"fake_domain must be a hostname, got {self.fake_domain!r}")

    def masked_password(self) -> str:
        return "*" * len(self.password)
