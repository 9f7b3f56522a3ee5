"""
Staker error taxonomy.

Startup errors (configuration, unknown protocol) end the process. Session
errors (wrong network, insufficient balance) abort one session. Protocol
errors fail one protocol's outcome and the session moves on.
"""


class StakerError(Exception):
    """Base class for every error raised by the staker."""


class ConfigurationError(StakerError):
    pass


class UnknownProtocol(ConfigurationError):
    def __init__(self, protocol: str, available: list[str]):
        self.protocol = protocol
        self.available = available
        super().__init__(
            f"Unknown protocol '{protocol}'. Available: {', '.join(available)}"
        )


class WrongNetwork(StakerError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Wrong network: expected chain id {expected}, got {actual}")


class InsufficientBalance(StakerError):
    def __init__(self, required: int, available: int, protocols: int):
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient balance for {protocols} protocol(s): "
            f"required {required}, available {available}, shortfall {self.shortfall} (wei)"
        )


class ProtocolUnavailable(StakerError):
    pass


class EstimationFailed(StakerError):
    def __init__(self, attempts: int, last_error: BaseException | None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gas estimation failed after {attempts} attempt(s): {last_error}")


class GasPriceTooHigh(StakerError):
    def __init__(self, max_fee: int, ceiling: int):
        self.max_fee = max_fee
        self.ceiling = ceiling
        super().__init__(f"Max fee {max_fee} wei exceeds configured ceiling {ceiling} wei")


class TransactionFailed(StakerError):
    def __init__(self, tx_hash: str, status: int):
        self.tx_hash = tx_hash
        self.status = status
        super().__init__(f"Transaction {tx_hash} reverted (status {status})")


class BalanceQueryFailed(StakerError):
    pass
