"""
Contract deployment utility

Sends the contract-creation transaction for a compiled contract, waits for
it to be mined and checks that code landed at the new address.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from web3 import Web3
from web3.contract import Contract

from .exceptions import ContractError, ErrorCodes
from .transaction_builder import TransactionBuilder, TransactionOptions, run_sync

LOG = logging.getLogger(__name__)


@dataclass
class ContractData:
    """Contract bytecode and ABI data"""
    bytecode: str
    abi: List[Dict[str, Any]]
    name: Optional[str] = None


@dataclass
class DeploymentOptions:
    """Options for contract deployment"""
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    value: int = 0
    timeout: float = 300.0
    verify: bool = True


@dataclass
class DeploymentResult:
    """Result of contract deployment"""
    success: bool
    contract_address: Optional[str] = None
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    effective_gas_price: Optional[int] = None
    deploy_time: Optional[float] = None
    error: Optional[str] = None
    contract: Optional[Contract] = None


class ContractDeployer:
    """
    Deploys compiled contracts through a TransactionBuilder.
    """

    def __init__(self, tx_builder: TransactionBuilder):
        self.tx_builder = tx_builder
        self.web3: Web3 = tx_builder.web3

    async def deploy(
        self,
        contract_data: ContractData,
        constructor_args: Optional[List] = None,
        options: Optional[DeploymentOptions] = None,
        on_sent=None
    ) -> DeploymentResult:
        """
        Deploy a contract from ContractData.

        Args:
            contract_data: Contract bytecode and ABI
            constructor_args: Constructor arguments
            options: Deployment options
            on_sent: Optional callback receiving the tx hash once broadcast

        Returns:
            DeploymentResult with deployment details

        Raises:
            ContractError: If the transaction could not be sent or mined
        """
        opts = options or DeploymentOptions()
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        tx_options = TransactionOptions(
            gas_limit=opts.gas_limit,
            gas_price=opts.gas_price,
            max_fee_per_gas=opts.max_fee_per_gas,
            max_priority_fee_per_gas=opts.max_priority_fee_per_gas,
            value=opts.value
        )

        try:
            sent = await self.tx_builder.deploy_contract(
                bytecode=contract_data.bytecode,
                abi=contract_data.abi,
                args=constructor_args,
                options=tx_options,
                wait_for_receipt=False
            )
            if on_sent:
                on_sent(sent.tx_hash)

            receipt = await self.tx_builder.wait_for_receipt(sent.tx_hash, timeout=opts.timeout)
        except Exception as e:
            raise ContractError(
                f"Contract deployment failed: {e}",
                contract_name=contract_data.name,
                code=ErrorCodes.CONTRACT_DEPLOY_FAILED,
                cause=e
            )

        deploy_time = loop.time() - start_time

        if receipt['status'] != 1:
            return DeploymentResult(
                success=False,
                transaction_hash=sent.tx_hash,
                block_number=receipt['blockNumber'],
                gas_used=receipt['gasUsed'],
                effective_gas_price=receipt.get('effectiveGasPrice'),
                deploy_time=deploy_time,
                error="Deployment transaction reverted"
            )

        contract_address = receipt['contractAddress']
        deployed_contract = self.web3.eth.contract(
            address=contract_address,
            abi=contract_data.abi
        )

        is_verified = True
        if opts.verify:
            is_verified = await self._verify_deployment(contract_address)

        return DeploymentResult(
            success=is_verified,
            contract_address=contract_address,
            transaction_hash=sent.tx_hash,
            block_number=receipt['blockNumber'],
            gas_used=receipt['gasUsed'],
            effective_gas_price=receipt.get('effectiveGasPrice'),
            deploy_time=deploy_time,
            error=None if is_verified else f"No contract code at {contract_address}",
            contract=deployed_contract
        )

    async def _verify_deployment(self, address: str) -> bool:
        """Check that code exists at the deployed address"""
        try:
            code = await self.tx_builder.retry.execute(run_sync, self.web3.eth.get_code, address)
        except Exception as e:
            LOG.warning(f"Could not read code at {address}: {e}")
            return False
        return bool(code) and code not in ('0x', b'')
