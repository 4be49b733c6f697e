import logging

from eth_account import Account
from web3 import Web3

from ..config.network import Settings
from ..utils.exceptions import ConfigurationError, ErrorCodes
from ..utils.transaction_builder import TransactionBuilder

LOG = logging.getLogger(__name__)


def connect_wallet(settings: Settings, request_timeout: int = 120) -> TransactionBuilder:
    """
    Web3 provider for the selected network plus the signing account.

    Raises:
        ConfigurationError: If the RPC URL or private key is unset, or the
            key cannot be parsed
    """
    settings.require("private_key", "rpc_url")

    web3 = Web3(Web3.HTTPProvider(
        settings.rpc_url,
        request_kwargs={"timeout": request_timeout},
    ))
    try:
        account = Account.from_key(settings.private_key)
    except ValueError as e:
        raise ConfigurationError(
            "MAIN_PRIVATE_KEY is not a valid private key",
            code=ErrorCodes.CONFIG_VALIDATION_FAILED,
            cause=e
        )

    LOG.debug(f"Connected to {settings.network.name} as {account.address}")
    return TransactionBuilder(web3, account)
