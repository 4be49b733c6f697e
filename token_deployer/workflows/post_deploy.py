"""
Post-deployment launch sequence

Runs the fixed list of administrative transactions against a deployed
token, in order:

1. send LIQUIDITY_AMOUNT ETH to the contract (failure tolerated)
2. transfer the wallet's whole token balance to the contract
3. openTrading() (reverts tolerated)
4. removeLimit()
5. removeTransferTax()
6. renounceOwnership()
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from web3 import Web3
from web3.exceptions import ContractLogicError

from ..config.network import Settings
from ..helpers import console
from ..helpers.deployment_store import DeploymentStore
from ..utils.common import format_ether, format_gwei, format_tokens, parse_ether
from ..utils.exceptions import (
    ConfigurationError,
    ContractError,
    DeploymentNotFoundError,
    ErrorCodes,
    TransactionError,
)
from ..utils.transaction_builder import TransactionBuilder, TransactionOptions, TransactionResult

LOG = logging.getLogger(__name__)

ETH_TRANSFER_GAS_LIMIT = 50_000
ADMIN_CALL_GAS_LIMIT = 100_000
OPEN_TRADING_GAS_LIMIT = 5_000_000
MIN_CONTRACT_LIQUIDITY = parse_ether("0.001")

REVERT_REASONS = (
    "Trading is already open",
    "Insufficient ETH for minimum liquidity",
    "Token balance issue",
    "Uniswap router/factory issue",
)


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED_CONTINUED = "failed-continued"


@dataclass
class StepOutcome:
    """Result of one launch step"""
    name: str
    status: StepStatus
    tx_hashes: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "tx_hashes": self.tx_hashes,
            "error": self.error,
        }


@dataclass
class PostDeployReport:
    """Outcomes of every step that ran"""
    symbol: str
    address: str
    steps: List[StepOutcome] = field(default_factory=list)

    def add(self, outcome: StepOutcome) -> StepOutcome:
        self.steps.append(outcome)
        return outcome

    def get(self, name: str) -> Optional[StepOutcome]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    @property
    def degraded(self) -> bool:
        """True if a tolerated step failed"""
        return any(s.status == StepStatus.FAILED_CONTINUED for s in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "address": self.address,
            "steps": [s.to_dict() for s in self.steps],
        }


def is_revert(error: BaseException) -> bool:
    """Whether `error` means the chain rejected the call rather than the client failing"""
    if isinstance(error, ContractLogicError):
        return True
    if isinstance(error, TransactionError):
        return error.code == ErrorCodes.TRANSACTION_REVERTED or isinstance(error.cause, ContractLogicError)
    return False


class PostDeployRunner:
    """Executes the launch sequence for one deployed token"""

    def __init__(self, tx_builder: TransactionBuilder, deployment: Dict[str, Any], liquidity_wei: int):
        self.tx_builder = tx_builder
        self.web3: Web3 = tx_builder.web3
        self.address = Web3.to_checksum_address(deployment["address"])
        self.symbol = deployment.get("symbol", "")
        self.contract = self.web3.eth.contract(address=self.address, abi=deployment["abi"])
        self.liquidity_wei = liquidity_wei

    @property
    def wallet(self) -> str:
        return self.tx_builder.address

    async def _call(self, contract_function) -> Any:
        return await self.tx_builder.call(contract_function)

    def _check(self, result: TransactionResult, action: str) -> TransactionResult:
        if not result.success:
            raise TransactionError(
                f"{action} transaction failed",
                tx_hash=result.tx_hash,
                from_address=self.wallet,
                to_address=self.address,
                code=ErrorCodes.TRANSACTION_REVERTED
            )
        return result

    async def _admin_call(self, name: str, title: str, contract_function, done_message: str) -> StepOutcome:
        console.section(title)
        result = await self.tx_builder.transact(
            contract_function,
            options=TransactionOptions(gas_limit=ADMIN_CALL_GAS_LIMIT),
            wait_for_receipt=False
        )
        LOG.info(f"{name} TX: {result.tx_hash}")
        receipt_result = await self._wait(result)
        self._check(receipt_result, name)
        LOG.info(done_message)
        return StepOutcome(name, StepStatus.OK, [result.tx_hash])

    async def _wait(self, sent: TransactionResult) -> TransactionResult:
        receipt = await self.tx_builder.wait_for_receipt(sent.tx_hash)
        sent.tx_receipt = receipt
        sent.success = receipt['status'] == 1
        sent.gas_used = receipt['gasUsed']
        sent.block_number = receipt['blockNumber']
        return sent

    async def send_liquidity(self) -> StepOutcome:
        console.section("STEP 1: Sending ETH to Contract")
        try:
            gas_price = await self.tx_builder.get_gas_price()
            LOG.info(f"Current gas price: {format_gwei(gas_price)} gwei")

            result = await self.tx_builder.send_ether(
                self.address,
                self.liquidity_wei,
                gas_limit=ETH_TRANSFER_GAS_LIMIT,
                gas_price=gas_price
            )
            LOG.info(f"Send ETH TX: {result.tx_hash}")
            self._check(result, "Send ETH")

            LOG.info("ETH sent successfully")
            contract_balance = await self.tx_builder.get_balance(self.address)
            LOG.info(f"Contract Balance: {format_ether(contract_balance)} ETH")
            return StepOutcome("send_eth", StepStatus.OK, [result.tx_hash])

        except Exception as e:
            LOG.error(f"Failed to send ETH to contract: {e}")
            LOG.info("This might be normal - some contracts reject ETH before trading opens")
            LOG.info("The openTrading() function will handle liquidity provision")
            tx_hashes = [e.tx_hash] if isinstance(e, TransactionError) and e.tx_hash else []
            return StepOutcome("send_eth", StepStatus.FAILED_CONTINUED, tx_hashes, str(e))

    async def transfer_tokens(self) -> StepOutcome:
        console.section("STEP 2: Transferring Tokens to Contract")
        functions = self.contract.functions
        try:
            total_supply = await self._call(functions.totalSupply())
            LOG.info(f"Total Supply: {format_tokens(total_supply)}")

            wallet_balance = await self._call(functions.balanceOf(self.wallet))
            LOG.info(f"Wallet Token Balance: {format_tokens(wallet_balance)}")

            if wallet_balance <= 0:
                LOG.info("No tokens in wallet to transfer")
                return StepOutcome("transfer_tokens", StepStatus.SKIPPED)

            LOG.info("Transferring all tokens to contract...")
            result = await self.tx_builder.transact(
                functions.transfer(self.address, wallet_balance),
                options=TransactionOptions(gas_limit=ADMIN_CALL_GAS_LIMIT)
            )
            LOG.info(f"Transfer TX: {result.tx_hash}")
            self._check(result, "Token transfer")
            LOG.info("All tokens transferred to contract")

            contract_balance = await self._call(functions.balanceOf(self.address))
            LOG.info(f"Contract Token Balance: {format_tokens(contract_balance)}")
            return StepOutcome("transfer_tokens", StepStatus.OK, [result.tx_hash])

        except Exception as e:
            LOG.error(f"Failed to transfer tokens: {e}")
            raise

    async def _trading_open(self) -> bool:
        try:
            trading_open = await self._call(self.contract.functions.tradingOpen())
        except Exception:
            LOG.info("Could not read trading status, assuming closed")
            return False
        LOG.info(f"Trading status: {'OPEN' if trading_open else 'CLOSED'}")
        return bool(trading_open)

    async def open_trading(self) -> StepOutcome:
        console.section("STEP 3: Opening Trading")
        functions = self.contract.functions
        tx_hashes: List[str] = []
        try:
            LOG.info("Checking contract state...")
            contract_balance = await self.tx_builder.get_balance(self.address)
            LOG.info(f"Contract Balance: {format_ether(contract_balance)} ETH")

            owner = await self._call(functions.owner())
            LOG.info(f"Contract owner: {owner}")
            LOG.info(f"Wallet address: {self.wallet}")
            if owner.lower() != self.wallet.lower():
                raise ContractError(
                    "Wallet is not the contract owner!",
                    contract_name=self.symbol,
                    code=ErrorCodes.NOT_CONTRACT_OWNER
                )

            token_balance = await self._call(functions.balanceOf(self.address))
            LOG.info(f"Contract token balance: {format_tokens(token_balance)}")
            total_supply = await self._call(functions.totalSupply())
            LOG.info(f"Total supply: {format_tokens(total_supply)}")

            if await self._trading_open():
                LOG.info("Trading is already open, skipping openTrading()")
                return StepOutcome("open_trading", StepStatus.SKIPPED)

            if contract_balance < MIN_CONTRACT_LIQUIDITY:
                LOG.info(f"Need at least {format_ether(MIN_CONTRACT_LIQUIDITY)} ETH for liquidity")
                additional = MIN_CONTRACT_LIQUIDITY - contract_balance
                LOG.info(f"Sending additional {format_ether(additional)} ETH...")
                top_up = await self.tx_builder.send_ether(
                    self.address, additional, gas_limit=ETH_TRANSFER_GAS_LIMIT
                )
                LOG.info(f"Additional ETH TX: {top_up.tx_hash}")
                tx_hashes.append(top_up.tx_hash)
                self._check(top_up, "Additional ETH")
                LOG.info("Additional ETH sent successfully")
                new_balance = await self.tx_builder.get_balance(self.address)
                LOG.info(f"New contract balance: {format_ether(new_balance)} ETH")

            LOG.info("Attempting to open trading...")
            try:
                estimate = await self.tx_builder.estimate_function_gas(functions.openTrading())
                LOG.info(f"Estimated gas: {estimate}")
            except TransactionError as gas_error:
                LOG.info(f"Gas estimation failed: {gas_error.message}")

            result = await self.tx_builder.transact(
                functions.openTrading(),
                options=TransactionOptions(gas_limit=OPEN_TRADING_GAS_LIMIT),
                wait_for_receipt=False
            )
            LOG.info(f"Open Trading TX: {result.tx_hash}")
            LOG.info("Waiting for confirmation...")
            tx_hashes.append(result.tx_hash)
            self._check(await self._wait(result), "openTrading")
            LOG.info("Trading opened successfully")
            return StepOutcome("open_trading", StepStatus.OK, tx_hashes)

        except Exception as e:
            LOG.error(f"Failed to open trading: {e}")
            if not is_revert(e):
                raise
            LOG.info("Transaction reverted. Possible reasons:")
            for i, reason in enumerate(REVERT_REASONS, 1):
                LOG.info(f"{i}. {reason}")
            LOG.info("Attempting to continue with remaining steps...")
            return StepOutcome("open_trading", StepStatus.FAILED_CONTINUED, tx_hashes, str(e))

    async def remove_limit(self) -> StepOutcome:
        return await self._admin_call(
            "removeLimit", "STEP 4: Removing Limits",
            self.contract.functions.removeLimit(), "Limits removed successfully"
        )

    async def remove_transfer_tax(self) -> StepOutcome:
        return await self._admin_call(
            "removeTransferTax", "STEP 5: Removing Transfer Tax",
            self.contract.functions.removeTransferTax(), "Transfer tax removed successfully"
        )

    async def renounce_ownership(self) -> StepOutcome:
        return await self._admin_call(
            "renounceOwnership", "STEP 6: Renouncing Ownership",
            self.contract.functions.renounceOwnership(), "Ownership renounced successfully"
        )

    async def run(self) -> PostDeployReport:
        """
        Execute all steps in order.

        Raises:
            TokenDeployerError: On the first non-tolerated failure
        """
        report = PostDeployReport(symbol=self.symbol, address=self.address)

        LOG.info(f"Wallet Address: {self.wallet}")
        balance = await self.tx_builder.get_balance()
        LOG.info(f"Wallet Balance: {format_ether(balance)} ETH")

        for step in (
            self.send_liquidity,
            self.transfer_tokens,
            self.open_trading,
            self.remove_limit,
            self.remove_transfer_tax,
            self.renounce_ownership,
        ):
            report.add(await step())

        console.banner("ALL STEPS COMPLETED", "Token is now fully launched and decentralized!")
        if report.degraded:
            failed = [s.name for s in report.steps if s.status == StepStatus.FAILED_CONTINUED]
            LOG.warning(f"Completed with tolerated failures: {', '.join(failed)}")
        return report


def load_target(store: DeploymentStore, symbol: str) -> Dict[str, Any]:
    """Deployment record for `symbol`; logs the available tokens when missing"""
    try:
        return store.load_deployment(symbol)
    except DeploymentNotFoundError:
        LOG.error(f"Deployment file not found: {store.deployment_path(symbol)}")
        LOG.error("Available tokens:")
        store.log_available_tokens()
        raise


async def run_post_deploy(
    symbol: str,
    settings: Settings,
    store: DeploymentStore,
    tx_builder: TransactionBuilder
) -> PostDeployReport:
    deployment = load_target(store, symbol)

    try:
        liquidity_wei = parse_ether(settings.liquidity_amount)
    except ValueError as e:
        raise ConfigurationError(
            str(e),
            code=ErrorCodes.CONFIG_VALIDATION_FAILED,
            field="LIQUIDITY_AMOUNT"
        )

    console.banner("POST-DEPLOY", f"{settings.network.name}")
    LOG.info(f"Token Symbol: {symbol}")
    LOG.info(f"Contract Address: {deployment['address']}")
    LOG.info(f"Liquidity Amount: {settings.liquidity_amount} ETH")

    runner = PostDeployRunner(tx_builder, deployment, liquidity_wei)
    report = await runner.run()
    store.save_post_deploy_report(symbol, report.to_dict())
    return report
