"""
Exception hierarchy for the token deployer scripts

Every error raised on purpose by the deploy, post-deploy and verify
workflows derives from TokenDeployerError, so the CLI can report it and
exit with a non-zero status without printing a traceback.
"""

from typing import Any, Dict, Optional


class ErrorCodes:
    """Numeric error codes grouped by concern"""
    # Configuration (1xxx)
    CONFIG_MISSING_VALUE = 1001
    CONFIG_FILE_NOT_FOUND = 1002
    CONFIG_VALIDATION_FAILED = 1003

    # Compilation (2xxx)
    COMPILATION_FAILED = 2001
    CONTRACT_NOT_IN_OUTPUT = 2002

    # Transactions (3xxx)
    TRANSACTION_FAILED = 3001
    TRANSACTION_REVERTED = 3002
    TRANSACTION_TIMEOUT = 3003

    # Contracts (4xxx)
    CONTRACT_DEPLOY_FAILED = 4001
    CONTRACT_CALL_FAILED = 4002
    NOT_CONTRACT_OWNER = 4003

    # Explorer (5xxx)
    EXPLORER_REQUEST_FAILED = 5001
    EXPLORER_BAD_RESPONSE = 5002

    # Deployment records (6xxx)
    DEPLOYMENT_NOT_FOUND = 6001
    SOURCE_NOT_FOUND = 6002
    DEPLOYMENT_INVALID = 6003


class TokenDeployerError(Exception):
    """Base exception class for the token deployer"""

    default_code = 1000

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        cause: Optional[BaseException] = None,
        **details: Any
    ):
        self.message = message
        self.code = code if code is not None else self.default_code
        self.cause = cause
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ConfigurationError(TokenDeployerError):
    """Missing or invalid configuration"""
    default_code = ErrorCodes.CONFIG_MISSING_VALUE

    def __init__(self, message: str, config_file: Optional[str] = None, **kwargs):
        super().__init__(message, config_file=config_file, **kwargs)


class CompilationError(TokenDeployerError):
    """solc reported errors or produced no artifact for the contract"""
    default_code = ErrorCodes.COMPILATION_FAILED

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, errors=errors, **kwargs)


class TransactionError(TokenDeployerError):
    """Transaction could not be built, sent or mined successfully"""
    default_code = ErrorCodes.TRANSACTION_FAILED

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        value: Optional[int] = None,
        **kwargs
    ):
        super().__init__(
            message,
            tx_hash=tx_hash,
            from_address=from_address,
            to_address=to_address,
            value=value,
            **kwargs
        )

    @property
    def tx_hash(self) -> Optional[str]:
        return self.details.get("tx_hash")


class ContractError(TokenDeployerError):
    """Contract deployment or call error"""
    default_code = ErrorCodes.CONTRACT_CALL_FAILED

    def __init__(self, message: str, contract_name: Optional[str] = None, **kwargs):
        super().__init__(message, contract_name=contract_name, **kwargs)


class ExplorerError(TokenDeployerError):
    """Block explorer API error"""
    default_code = ErrorCodes.EXPLORER_REQUEST_FAILED

    def __init__(self, message: str, status: Optional[int] = None, **kwargs):
        super().__init__(message, status=status, **kwargs)


class DeploymentNotFoundError(TokenDeployerError):
    """A deployment record or its source file is missing"""
    default_code = ErrorCodes.DEPLOYMENT_NOT_FOUND

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, path=path, **kwargs)
