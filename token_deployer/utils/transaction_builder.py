"""
Transaction builder for the token deployer scripts

Builds, signs and sends the handful of transaction shapes the scripts need:
plain ETH transfers, contract function calls and contract creation.

Design Notes:
- Supports both EIP-1559 and legacy transaction types
- Explicit gas limits are honoured as given, otherwise gas is estimated
- Synchronous Web3 calls run in a thread pool so the event loop stays free
- RPC reads go through AsyncRetry for transient connection errors
"""

import asyncio
import functools
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.types import TxParams, TxReceipt, Wei

from .async_retry import AsyncRetry
from .exceptions import ErrorCodes, TransactionError

LOG = logging.getLogger(__name__)

T = TypeVar('T')

# Shared thread pool for Web3 sync calls
_web3_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="web3_sync_")

MIN_GAS_LIMIT = 21000


async def run_sync(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a synchronous function in a thread pool to avoid blocking the event loop.
    """
    loop = asyncio.get_running_loop()
    partial_func = functools.partial(func, *args, **kwargs)
    return await loop.run_in_executor(_web3_executor, partial_func)


def to_hex_hash(tx_hash: Any) -> str:
    """Normalise a tx hash (HexBytes/bytes/str) to a 0x-prefixed string"""
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash
    return Web3.to_hex(tx_hash)


@dataclass
class TransactionOptions:
    """Options for transaction construction"""
    gas_limit: Optional[int] = None
    max_fee_per_gas: Optional[int] = None  # For EIP-1559
    max_priority_fee_per_gas: Optional[int] = None  # For EIP-1559
    gas_price: Optional[int] = None  # For legacy transactions
    nonce: Optional[int] = None
    value: int = 0
    chain_id: Optional[int] = None
    tx_type: Optional[int] = None  # 0 for legacy, 2 for EIP-1559


@dataclass
class TransactionResult:
    """Result of a transaction"""
    tx_hash: str
    tx_receipt: Optional[TxReceipt] = None
    success: bool = False
    error: Optional[str] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    block_number: Optional[int] = None
    contract_address: Optional[str] = None
    timestamp: Optional[datetime] = None


class TransactionBuilder:
    """
    Builds, signs and sends transactions for a single local account.
    """

    def __init__(
        self,
        web3: Web3,
        account: LocalAccount,
        default_options: Optional[TransactionOptions] = None,
        retry_config: Optional[AsyncRetry] = None
    ):
        """
        Initialize transaction builder.

        Args:
            web3: Web3 instance for blockchain interaction
            account: Account to sign transactions with
            default_options: Default transaction options
            retry_config: Retry configuration for RPC reads
        """
        self.web3 = web3
        self.account = account
        self.default_options = default_options or TransactionOptions()
        self.retry = retry_config or AsyncRetry(
            max_retries=3,
            base_delay=1.0,
            max_delay=30.0
        )

        # nonce after the last transaction this builder sent
        self._next_nonce: Optional[int] = None

    @property
    def address(self) -> str:
        return self.account.address

    async def _read(self, func: Callable[..., T], *args) -> T:
        return await self.retry.execute(run_sync, func, *args)

    async def get_nonce(self, refresh: bool = False) -> int:
        """
        Next nonce for the signing account.

        The node's pending count is combined with the nonce after the last
        send, so the admin calls sent back to back never reuse a nonce while
        the node lags behind. `refresh` trusts the node alone.
        """
        try:
            pending = await self._read(self.web3.eth.get_transaction_count, self.address, 'pending')
        except Exception as e:
            raise TransactionError(
                f"Failed to get nonce for {self.address}",
                from_address=self.address,
                cause=e
            )

        if refresh or self._next_nonce is None:
            return pending
        return max(pending, self._next_nonce)

    async def get_balance(self, address: Optional[str] = None) -> int:
        """Balance in wei, defaulting to the signing account"""
        return await self._read(self.web3.eth.get_balance, address or self.account.address)

    async def get_gas_price(self) -> int:
        return await self._read(lambda: self.web3.eth.gas_price)

    async def get_chain_id(self) -> int:
        return await self._read(lambda: self.web3.eth.chain_id)

    async def estimate_gas(
        self,
        transaction: TxParams,
        padding: float = 1.2
    ) -> int:
        """
        Estimate gas required for a transaction.

        Args:
            transaction: Transaction to estimate gas for
            padding: Multiplier applied to the raw estimate

        Returns:
            Estimated gas limit with padding
        """
        tx_copy = dict(transaction)
        tx_copy.setdefault('from', self.account.address)
        for key in ('gas', 'gasLimit', 'maxFeePerGas', 'maxPriorityFeePerGas', 'gasPrice', 'nonce'):
            tx_copy.pop(key, None)

        try:
            gas_estimate = await run_sync(self.web3.eth.estimate_gas, tx_copy)
        except Exception as e:
            raise TransactionError(
                f"Gas estimation failed: {e}",
                from_address=self.account.address,
                to_address=transaction.get('to'),
                cause=e
            )

        gas_limit = max(int(gas_estimate * padding), MIN_GAS_LIMIT)
        LOG.debug(f"Gas estimate: {gas_estimate} -> {gas_limit} (with padding)")
        return gas_limit

    def _merge_options(self, options: Optional[TransactionOptions]) -> TransactionOptions:
        opts = self.default_options
        if not options:
            return opts
        return TransactionOptions(
            gas_limit=options.gas_limit or opts.gas_limit,
            max_fee_per_gas=options.max_fee_per_gas or opts.max_fee_per_gas,
            max_priority_fee_per_gas=options.max_priority_fee_per_gas or opts.max_priority_fee_per_gas,
            gas_price=options.gas_price or opts.gas_price,
            nonce=options.nonce if options.nonce is not None else opts.nonce,
            value=options.value or opts.value,
            chain_id=options.chain_id or opts.chain_id,
            tx_type=options.tx_type if options.tx_type is not None else opts.tx_type
        )

    async def build_transaction(
        self,
        to: Optional[str],
        data: Optional[str] = None,
        options: Optional[TransactionOptions] = None,
        **kwargs
    ) -> TxParams:
        """
        Build a transaction with proper defaults.

        Args:
            to: Recipient address, None for contract creation
            data: Transaction data (calldata or init code)
            options: Transaction options to override defaults
            **kwargs: Additional transaction parameters

        Returns:
            Complete transaction dictionary
        """
        opts = self._merge_options(options)

        tx: TxParams = {
            'from': self.account.address,
            'value': Wei(opts.value),
            'data': data or '0x'
        }
        if to is not None:
            tx['to'] = to

        if opts.chain_id:
            tx['chainId'] = opts.chain_id
        else:
            tx['chainId'] = await self.get_chain_id()

        if opts.nonce is not None:
            tx['nonce'] = opts.nonce
        else:
            tx['nonce'] = await self.get_nonce()

        if opts.tx_type == 2 or (opts.tx_type is None and opts.max_fee_per_gas):
            if opts.max_fee_per_gas:
                tx['maxFeePerGas'] = Wei(opts.max_fee_per_gas)
            if opts.max_priority_fee_per_gas:
                tx['maxPriorityFeePerGas'] = Wei(opts.max_priority_fee_per_gas)
        else:
            if opts.gas_price:
                tx['gasPrice'] = Wei(opts.gas_price)
            else:
                tx['gasPrice'] = Wei(await self.get_gas_price())

        if opts.gas_limit:
            tx['gas'] = opts.gas_limit
        else:
            tx['gas'] = await self.estimate_gas(tx)

        tx.update(kwargs)
        return tx

    def sign_transaction(self, transaction: TxParams) -> Tuple[str, bytes]:
        """
        Sign a transaction with the account's private key.

        Returns:
            Tuple of (raw transaction hex, raw transaction bytes)
        """
        if 'from' in transaction and transaction['from'] != self.account.address:
            raise TransactionError(
                f"Transaction from address {transaction['from']} does not match "
                f"account address {self.account.address}"
            )

        unsigned = {k: v for k, v in transaction.items() if k != 'from'}
        try:
            signed_tx = self.account.sign_transaction(unsigned)
        except Exception as e:
            raise TransactionError(
                f"Failed to sign transaction: {e}",
                from_address=self.account.address,
                cause=e
            )

        # web3 v6 names it rawTransaction, v7 raw_transaction
        raw_tx = getattr(signed_tx, 'raw_transaction', None) or getattr(signed_tx, 'rawTransaction', None)
        return Web3.to_hex(raw_tx), bytes(raw_tx)

    async def send_transaction(
        self,
        transaction: TxParams,
        wait_for_receipt: bool = True,
        timeout: float = 300.0,
        poll_latency: float = 1.0
    ) -> TransactionResult:
        """
        Sign and send a transaction, optionally waiting for its receipt.

        A mined-but-reverted transaction is returned with success=False;
        callers decide whether that is fatal.
        """
        raw_tx_hex, _ = self.sign_transaction(transaction)

        try:
            tx_hash = await run_sync(self.web3.eth.send_raw_transaction, raw_tx_hex)
        except Exception as e:
            raise TransactionError(
                f"Failed to send transaction: {e}",
                from_address=self.account.address,
                to_address=transaction.get('to'),
                value=transaction.get('value'),
                cause=e
            )

        tx_hash_hex = to_hex_hash(tx_hash)
        result = TransactionResult(tx_hash=tx_hash_hex, timestamp=datetime.now())

        if 'nonce' in transaction:
            self._next_nonce = transaction['nonce'] + 1

        if not wait_for_receipt:
            return result

        LOG.debug(f"Waiting for transaction receipt: {tx_hash_hex}")
        receipt = await self.wait_for_receipt(tx_hash_hex, timeout=timeout, poll_latency=poll_latency)

        result.tx_receipt = receipt
        result.success = receipt['status'] == 1
        result.gas_used = receipt['gasUsed']
        result.effective_gas_price = receipt.get('effectiveGasPrice')
        result.block_number = receipt['blockNumber']
        result.contract_address = receipt.get('contractAddress')
        if not result.success:
            result.error = "Transaction reverted"
            LOG.error(f"Transaction failed: {tx_hash_hex}")
        else:
            LOG.debug(f"Transaction successful: {tx_hash_hex}")

        return result

    async def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: float = 300.0,
        poll_latency: float = 1.0
    ) -> TxReceipt:
        """Poll for a transaction receipt until mined or `timeout` elapses"""
        start_time = time.time()

        while True:
            try:
                receipt = await run_sync(self.web3.eth.get_transaction_receipt, tx_hash)
                if receipt is not None:
                    return receipt
            except TransactionNotFound:
                pass
            except OSError as e:
                LOG.warning(f"Receipt lookup failed, will retry: {e}")

            if time.time() - start_time > timeout:
                raise TransactionError(
                    f"Transaction receipt timeout after {timeout}s",
                    tx_hash=tx_hash,
                    code=ErrorCodes.TRANSACTION_TIMEOUT
                )

            await asyncio.sleep(poll_latency)

    async def build_and_send_tx(
        self,
        to: Optional[str],
        data: Optional[str] = None,
        options: Optional[TransactionOptions] = None,
        wait_for_receipt: bool = True,
        **kwargs
    ) -> TransactionResult:
        """Build and send a transaction in one call"""
        tx = await self.build_transaction(to=to, data=data, options=options, **kwargs)
        return await self.send_transaction(tx, wait_for_receipt=wait_for_receipt)

    async def send_ether(
        self,
        to: str,
        amount_wei: int,
        gas_limit: Optional[int] = None,
        gas_price: Optional[int] = None
    ) -> TransactionResult:
        """Send ether to an address"""
        options = TransactionOptions(value=amount_wei, gas_limit=gas_limit, gas_price=gas_price)
        return await self.build_and_send_tx(to=to, options=options)

    async def call(self, contract_function) -> Any:
        """Read-only call of a bound contract function"""
        return await self.retry.execute(run_sync, contract_function.call, {'from': self.account.address})

    async def estimate_function_gas(self, contract_function) -> int:
        """Raw gas estimate for a bound contract function (no padding)"""
        try:
            return await run_sync(contract_function.estimate_gas, {'from': self.account.address})
        except Exception as e:
            raise TransactionError(
                f"Gas estimation failed: {e}",
                from_address=self.account.address,
                cause=e
            )

    async def transact(
        self,
        contract_function,
        options: Optional[TransactionOptions] = None,
        wait_for_receipt: bool = True
    ) -> TransactionResult:
        """
        Send a state-changing call of a bound contract function.

        Args:
            contract_function: e.g. contract.functions.removeLimit()
            options: gas limit / price overrides
        """
        to = contract_function.address
        data = contract_function._encode_transaction_data()
        return await self.build_and_send_tx(
            to=to,
            data=data,
            options=options,
            wait_for_receipt=wait_for_receipt
        )

    async def deploy_contract(
        self,
        bytecode: str,
        abi: List[Dict],
        args: Optional[List] = None,
        options: Optional[TransactionOptions] = None,
        wait_for_receipt: bool = True
    ) -> TransactionResult:
        """
        Send a contract-creation transaction.

        Returns:
            TransactionResult with contract_address taken from the receipt
        """
        contract = self.web3.eth.contract(abi=abi, bytecode=bytecode)
        data = contract.constructor(*(args or [])).data_in_transaction

        return await self.build_and_send_tx(
            to=None,
            data=data,
            options=options,
            wait_for_receipt=wait_for_receipt
        )
