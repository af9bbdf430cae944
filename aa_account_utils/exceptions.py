from dataclasses import dataclass
from enum import Enum
from typing import Any


class ValidationExceptionCode(Enum):
    InvalidFields = -32602
    MissingField = -32610
    ConflictingFields = -32611
    IncompleteOperation = -32612


@dataclass
class ValidationException(Exception):
    exception_code: ValidationExceptionCode
    message: str
    field: str | None = None


class GasEstimationExceptionCode(Enum):
    GasCalculationError = -32620
    ProviderUnavailable = -32621


@dataclass
class GasEstimationException(Exception):
    exception_code: GasEstimationExceptionCode
    message: str


class BundlerExceptionCode(Enum):
    BundlerFieldMissing = -32630
    RelayError = -32631


@dataclass
class BundlerException(Exception):
    exception_code: BundlerExceptionCode
    message: str
    data: Any = None


class ExecutionExceptionCode(Enum):
    RpcError = -32603
    UnexpectedSenderAddressResult = -32640


@dataclass
class ExecutionException(Exception):
    exception_code: ExecutionExceptionCode
    message: str
    data: Any = None


class ConfigurationExceptionCode(Enum):
    SignerUnavailable = -32650
    BundlerUnavailable = -32651


@dataclass
class ConfigurationException(Exception):
    exception_code: ConfigurationExceptionCode
    message: str
