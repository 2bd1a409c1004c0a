"""Exceptions for fems-exporter: connect and register-read failures, decoder misuse."""


class FemsExporterError(Exception):
    """Base exception for recoverable fems-exporter errors."""

    pass


class ConnectError(FemsExporterError):
    """Raised when a Modbus/TCP session to a FEMS device cannot be established."""

    def __init__(self, address: object, cause: BaseException | str | None = None) -> None:
        self.address = address
        self.cause = cause
        self.reason = str(cause) if cause is not None else "connection failed"
        super().__init__(f"{address}: {self.reason}")


class ReadError(FemsExporterError):
    """Raised when an input-register read fails on an established session."""

    def __init__(
        self,
        message: str,
        *,
        address: int | None = None,
        count: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.address = address
        self.count = count
        self.cause = cause
        super().__init__(message)


class DecodeContractError(AssertionError):
    """Raised when the decoder is handed the wrong number of words (internal bug)."""

    def __init__(self, value_type: object, expected: int, got: int) -> None:
        self.value_type = value_type
        self.expected = expected
        self.got = got
        super().__init__(f"{value_type} needs {expected} word(s), got {got}")
