class ConfigError(ValueError):
    """Bad startup configuration (empty backend list, unusable address)."""


class ProbeFailed(Exception):
    def __init__(self, address: str, reason: str):
        super().__init__(f"health probe to {address} failed: {reason}")
        self.address = address
        self.reason = reason


class BackendUnavailable(Exception):
    def __init__(self, address: str, reason: str):
        super().__init__(f"backend {address} unavailable: {reason}")
        self.address = address
        self.reason = reason
