"""
Pytest configuration and fixtures for token deployer tests.

Everything here works offline: the signing account is a fixed test key,
the Web3 instance has no reachable provider and every chain interaction
goes through an AsyncMock'd TransactionBuilder.

Usage:
    @pytest.mark.asyncio
    async def test_something(tx_builder, deployment_record, store):
        tx_builder.call.side_effect = call_router({"owner": tx_builder.address})
        ...
"""

import json
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from web3 import Web3

from ..config.network import BUILTIN_NETWORKS, Settings
from ..helpers.deployment_store import DeploymentStore

TEST_PRIVATE_KEY = "0x" + "11" * 32
CONTRACT_ADDRESS = "0x" + "ab" * 20
TX_HASH = "0x" + "cd" * 32


def _fn(name, inputs=(), outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
        "stateMutability": mutability,
    }


TOKEN_ABI = [
    _fn("name", outputs=["string"], mutability="pure"),
    _fn("symbol", outputs=["string"], mutability="pure"),
    _fn("decimals", outputs=["uint8"], mutability="pure"),
    _fn("totalSupply", outputs=["uint256"], mutability="pure"),
    _fn("balanceOf", inputs=[("account", "address")], outputs=["uint256"], mutability="view"),
    _fn("transfer", inputs=[("recipient", "address"), ("amount", "uint256")], outputs=["bool"]),
    _fn("owner", outputs=["address"], mutability="view"),
    _fn("openTrading"),
    _fn("removeLimit"),
    _fn("removeTransferTax"),
    _fn("renounceOwnership"),
]


def call_router(values: Dict[str, Any]):
    """
    side_effect for tx_builder.call answering by contract function name.

    A value may be an exception to raise or a callable receiving the bound
    contract function.
    """
    def route(contract_function):
        value = values[contract_function.fn_name]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(contract_function)
        return value
    return route


def receipt(status: int = 1, gas_used: int = 50_000, **extra) -> Dict[str, Any]:
    data = {"status": status, "gasUsed": gas_used, "blockNumber": 100}
    data.update(extra)
    return data


@pytest.fixture
def account():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def settings():
    return Settings(
        network=BUILTIN_NETWORKS["testnet"],
        rpc_url="http://127.0.0.1:8545",
        private_key=TEST_PRIVATE_KEY,
        etherscan_api_key="ABCDEFGH12345678",
        liquidity_amount="0.01",
    )


@pytest.fixture
def store(tmp_path):
    return DeploymentStore(tmp_path)


@pytest.fixture
def deployment_record(account):
    return {
        "name": "Test Token",
        "symbol": "TEST",
        "website": "",
        "telegram": "",
        "twitter": "",
        "address": Web3.to_checksum_address(CONTRACT_ADDRESS),
        "txHash": TX_HASH,
        "deployer": account.address,
        "network": "Sepolia Testnet",
        "timestamp": "2024-01-01T00:00:00+00:00",
        "gasUsage": {},
        "bytecode": "0x6080",
        "abi": TOKEN_ABI,
    }


@pytest.fixture
def saved_deployment(store, deployment_record):
    """deployment_record written to contracts/TEST/ with its source"""
    store.save_source("TEST", "// SPDX-License-Identifier: UNLICENSE\ncontract TEST {}\n")
    token_dir = store.token_dir("TEST")
    (token_dir / "deployment.json").write_text(json.dumps(deployment_record))
    return deployment_record


@pytest.fixture
def tx_builder(account):
    """TransactionBuilder stand-in with async chain methods"""
    builder = MagicMock()
    builder.address = account.address
    builder.account = account
    builder.web3 = Web3()
    builder.get_balance = AsyncMock(return_value=Web3.to_wei(1, "ether"))
    builder.get_gas_price = AsyncMock(return_value=Web3.to_wei(10, "gwei"))
    builder.call = AsyncMock()
    builder.transact = AsyncMock()
    builder.send_ether = AsyncMock()
    builder.wait_for_receipt = AsyncMock(return_value=receipt())
    builder.estimate_function_gas = AsyncMock(return_value=250_000)
    return builder
