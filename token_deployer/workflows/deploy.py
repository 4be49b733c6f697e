"""
Token deployment workflow

Generates the token source, compiles it, deploys it and records the result
under contracts/<SYMBOL>/ (plus the root deployment.json).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from web3 import Web3

from ..config.network import Settings
from ..contract.compiler import CompiledContract, compile_contract
from ..contract.template import generate_contract, validate_symbol
from ..core.explorer_client import EthPrice, ExplorerClient
from ..helpers import console
from ..helpers.deployment_store import DeploymentStore
from ..utils.common import format_ether, format_gwei, format_tokens, parse_ether, wei_to_eth
from ..utils.contract_deployer import ContractData, ContractDeployer, DeploymentOptions, DeploymentResult
from ..utils.exceptions import TransactionError
from ..utils.transaction_builder import TransactionBuilder

LOG = logging.getLogger(__name__)

DEPLOY_GAS_LIMIT = 3_500_000
DEPLOY_GAS_PRICE = Web3.to_wei(20, "gwei")
LOW_BALANCE_THRESHOLD = parse_ether("0.01")

NEXT_STEPS = (
    "Verify Token on network",
    "Send ETH to contract for liquidity",
    "Call openTrading() function",
    "Burn LP tokens",
    "Remove trading limits",
    "Renounce ownership",
)


@dataclass
class TokenInfo:
    """User-supplied token parameters"""
    name: str
    symbol: str
    website: str = ""
    telegram: str = ""
    twitter: str = ""

    def __post_init__(self):
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("Token name must not be empty")
        self.symbol = validate_symbol(self.symbol)
        self.website = (self.website or "").strip()
        self.telegram = (self.telegram or "").strip()
        self.twitter = (self.twitter or "").strip()


def prompt_token_info(
    name: Optional[str] = None,
    symbol: Optional[str] = None,
    website: Optional[str] = None,
    telegram: Optional[str] = None,
    twitter: Optional[str] = None,
    input_func: Callable[[str], str] = input
) -> TokenInfo:
    """Fill every value not given on the command line from interactive input"""
    console.section("TOKEN INFORMATION")
    if name is None:
        name = console.ask("Token Name: ", input_func)
    if symbol is None:
        symbol = console.ask("Token Symbol: ", input_func)
    if website is None:
        website = console.ask("Website (optional): ", input_func)
    if telegram is None:
        telegram = console.ask("Telegram (optional): ", input_func)
    if twitter is None:
        twitter = console.ask("Twitter (optional): ", input_func)
    return TokenInfo(name=name, symbol=symbol, website=website, telegram=telegram, twitter=twitter)


@dataclass
class GasReport:
    """Cost of the deployment transaction"""
    gas_used: int
    gas_price: int
    total_cost: int
    eth_price: EthPrice

    @property
    def gas_fee(self) -> int:
        return self.gas_used * self.gas_price

    @property
    def usd_cost(self) -> float:
        return wei_to_eth(self.total_cost) * self.eth_price.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gasUsed": str(self.gas_used),
            "gasPrice": str(self.gas_price),
            "gasFee": str(self.gas_fee),
            "totalCost": str(self.total_cost),
            "gasUsedFormatted": f"{self.gas_used:,}",
            "gasPriceFormatted": f"{format_gwei(self.gas_price)} gwei",
            "gasFeeFormatted": f"{format_ether(self.gas_fee)} ETH",
            "totalCostFormatted": f"{format_ether(self.total_cost)} ETH",
            "ethPrice": self.eth_price.price,
            "ethPriceSource": self.eth_price.source,
            "ethPriceTimestamp": self.eth_price.timestamp,
            "ethBtcRatio": self.eth_price.ethbtc,
            "usdCost": self.usd_cost,
            "usdCostFormatted": f"${self.usd_cost:.2f}",
        }

    def log(self):
        console.section("GAS USAGE DETAILS")
        LOG.info(f"   Gas Used: {self.gas_used:,} units")
        LOG.info(f"   Gas Price: {format_gwei(self.gas_price)} gwei")
        LOG.info(f"   Gas Fee: {format_ether(self.gas_fee)} ETH")
        LOG.info(f"   Total Cost: {format_ether(self.total_cost)} ETH")
        LOG.info(f"   USD Cost: ~${self.usd_cost:.2f} (at ${self.eth_price.price:.2f}/ETH)")
        LOG.info(f"   Price Source: {self.eth_price.source}")
        if self.eth_price.timestamp and self.eth_price.ethbtc and self.eth_price.ethbtc != "N/A":
            updated = datetime.fromtimestamp(int(self.eth_price.timestamp))
            LOG.info(f"   Last Updated: {updated}")
            LOG.info(f"   ETH/BTC: {self.eth_price.ethbtc}")


def build_record(
    token: TokenInfo,
    result: DeploymentResult,
    compiled: CompiledContract,
    deployer: str,
    network_name: str,
    gas_report: GasReport
) -> Dict[str, Any]:
    """The deployment.json record"""
    return {
        "name": token.name,
        "symbol": token.symbol,
        "website": token.website,
        "telegram": token.telegram,
        "twitter": token.twitter,
        "address": result.contract_address,
        "txHash": result.transaction_hash,
        "deployer": deployer,
        "network": network_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "gasUsage": gas_report.to_dict(),
        "bytecode": compiled.bytecode,
        "abi": compiled.abi,
    }


class TokenDeployment:
    """One run of the deployment script"""

    def __init__(
        self,
        settings: Settings,
        tx_builder: TransactionBuilder,
        store: DeploymentStore,
        compiler: Callable[[str, str], CompiledContract] = compile_contract,
        input_func: Callable[[str], str] = input
    ):
        self.settings = settings
        self.tx_builder = tx_builder
        self.store = store
        self.compiler = compiler
        self.input_func = input_func
        self.deployer = ContractDeployer(tx_builder)

    async def check_balance(self) -> int:
        network = self.settings.network
        console.section("NETWORK CONFIGURATION")
        LOG.info(f"Network: {network.name}")
        LOG.info(f"Deployer: {self.tx_builder.address}")

        balance = await self.tx_builder.get_balance()
        LOG.info(f"Balance: {format_ether(balance)} ETH")
        if balance < LOW_BALANCE_THRESHOLD:
            LOG.warning("Low balance detected! Make sure you have enough ETH for deployment.")
        return balance

    def confirm(self, token: TokenInfo, assume_yes: bool = False) -> bool:
        console.summary("DEPLOYMENT SUMMARY", [
            ("Name", token.name),
            ("Symbol", token.symbol),
            ("Website", token.website),
            ("Telegram", token.telegram),
            ("Twitter", token.twitter),
            ("Network", self.settings.network.name),
        ])
        LOG.warning("WARNING: This action will deploy a smart contract and cannot be undone!")
        return console.confirm("Deploy contract?", assume_yes, self.input_func)

    async def deploy(self, compiled: CompiledContract) -> DeploymentResult:
        console.section("DEPLOYMENT PROCESS")
        LOG.info("Sending deployment transaction...")

        def on_sent(tx_hash: str):
            LOG.info(f"Transaction hash: {tx_hash}")
            LOG.info("Waiting for confirmation...")

        result = await self.deployer.deploy(
            ContractData(bytecode=compiled.bytecode, abi=compiled.abi, name=compiled.name),
            options=DeploymentOptions(gas_limit=DEPLOY_GAS_LIMIT, gas_price=DEPLOY_GAS_PRICE),
            on_sent=on_sent
        )
        if not result.success:
            raise TransactionError(
                f"Deployment transaction failed: {result.error}",
                tx_hash=result.transaction_hash,
                from_address=self.tx_builder.address
            )
        return result

    async def fetch_eth_price(self) -> EthPrice:
        network = self.settings.network
        async with ExplorerClient(
            self.settings.etherscan_api_key,
            chain_id=network.chain_id,
            api_url=network.api_url
        ) as explorer:
            return await explorer.get_eth_price()

    async def read_back(self, result: DeploymentResult):
        """Query the new contract; failures are reported, not raised"""
        console.section("VERIFICATION")
        functions = result.contract.functions
        try:
            name = await self.tx_builder.call(functions.name())
            symbol = await self.tx_builder.call(functions.symbol())
            total_supply = await self.tx_builder.call(functions.totalSupply())
            owner_balance = await self.tx_builder.call(functions.balanceOf(self.tx_builder.address))
        except Exception as e:
            LOG.error(f"Verification failed: {e}")
            return

        LOG.info(f"   Name: {name}")
        LOG.info(f"   Symbol: {symbol}")
        LOG.info(f"   Total Supply: {format_tokens(total_supply)}")
        LOG.info(f"   Owner Balance: {format_tokens(owner_balance)}")

    async def run(
        self,
        token: Optional[TokenInfo] = None,
        assume_yes: bool = False,
        **token_args: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        """
        Deploy `token`.

        Without `token` the token parameters are prompted for once the
        network and deployer balance have been shown; `token_args` holds the
        values already given on the command line.

        Returns:
            The saved deployment record, or None if the user cancelled
        """
        console.banner("TOKEN DEPLOYMENT", self.settings.network.name)
        await self.check_balance()

        if token is None:
            token = prompt_token_info(input_func=self.input_func, **token_args)

        if not self.confirm(token, assume_yes):
            LOG.warning("Deployment cancelled by user")
            return None

        source = generate_contract(token.name, token.symbol, token.website, token.telegram, token.twitter)
        self.store.save_source(token.symbol, source)

        compiled = self.compiler(source, token.symbol)

        balance_before = await self.tx_builder.get_balance()
        result = await self.deploy(compiled)
        balance_after = await self.tx_builder.get_balance()

        network = self.settings.network
        console.banner("DEPLOYMENT SUCCESSFUL!")
        LOG.info(f"   Contract Address: {result.contract_address}")
        LOG.info(f"   Explorer: {network.address_url(result.contract_address)}")
        LOG.info(f"   Transaction: {network.tx_url(result.transaction_hash)}")

        gas_report = GasReport(
            gas_used=result.gas_used,
            gas_price=result.effective_gas_price or DEPLOY_GAS_PRICE,
            total_cost=balance_before - balance_after,
            eth_price=await self.fetch_eth_price()
        )
        gas_report.log()

        await self.read_back(result)

        record = build_record(token, result, compiled, self.tx_builder.address, network.name, gas_report)
        self.store.save_deployment(record)

        console.section("NEXT STEPS")
        for i, step in enumerate(NEXT_STEPS, 1):
            LOG.info(f"   {i}. {step}")
        return record
