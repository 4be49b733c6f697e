"""
Unit tests for TransactionBuilder and ContractDeployer
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound

from token_deployer.utils.contract_deployer import (
    ContractData,
    ContractDeployer,
    DeploymentOptions,
)
from token_deployer.utils.exceptions import ContractError, ErrorCodes, TransactionError
from token_deployer.utils.transaction_builder import (
    TransactionBuilder,
    TransactionOptions,
    TransactionResult,
    to_hex_hash,
)

RECIPIENT = Web3.to_checksum_address("0x742d35cc6634c0532925a3b8d4c9db96c4b4db45")
TX_HASH = HexBytes("0x" + "12" * 32)


@pytest.fixture
def mock_web3():
    web3 = Mock()
    web3.eth.chain_id = 11155111
    web3.eth.gas_price = 20_000_000_000
    web3.eth.get_transaction_count = Mock(return_value=7)
    web3.eth.estimate_gas = Mock(return_value=21000)
    web3.eth.send_raw_transaction = Mock(return_value=TX_HASH)
    web3.eth.get_transaction_receipt = Mock(return_value={
        "status": 1,
        "gasUsed": 21000,
        "effectiveGasPrice": 20_000_000_000,
        "blockNumber": 42,
        "contractAddress": None,
    })
    return web3


@pytest.fixture
def test_account():
    return Account.create()


def signed_ready_tx(account, **overrides):
    tx = {
        "from": account.address,
        "to": RECIPIENT,
        "value": 1,
        "data": "0x",
        "gas": 21000,
        "gasPrice": 20_000_000_000,
        "nonce": 0,
        "chainId": 11155111,
    }
    tx.update(overrides)
    return tx


class TestTransactionBuilder:
    """Test transaction building"""

    @pytest.mark.asyncio
    async def test_build_legacy_transaction(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        tx = await builder.build_transaction(to=RECIPIENT, options=TransactionOptions(value=10**18))

        assert tx["to"] == RECIPIENT
        assert tx["from"] == test_account.address
        assert tx["value"] == 10**18
        assert tx["nonce"] == 7
        assert tx["chainId"] == 11155111
        assert tx["gasPrice"] == 20_000_000_000
        # 21000 * 1.2 padding
        assert tx["gas"] == 25200
        mock_web3.eth.get_transaction_count.assert_called_once_with(test_account.address, "pending")

    @pytest.mark.asyncio
    async def test_explicit_options_are_honoured(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        tx = await builder.build_transaction(
            to=RECIPIENT,
            options=TransactionOptions(gas_limit=50_000, gas_price=30_000_000_000, nonce=3, chain_id=1)
        )

        assert tx["gas"] == 50_000
        assert tx["gasPrice"] == 30_000_000_000
        assert tx["nonce"] == 3
        assert tx["chainId"] == 1
        mock_web3.eth.estimate_gas.assert_not_called()

    @pytest.mark.asyncio
    async def test_contract_creation_has_no_to(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        tx = await builder.build_transaction(to=None, data="0x6080", options=TransactionOptions(gas_limit=3_500_000))

        assert "to" not in tx
        assert tx["data"] == "0x6080"

    @pytest.mark.asyncio
    async def test_eip1559_fields(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        tx = await builder.build_transaction(
            to=RECIPIENT,
            options=TransactionOptions(gas_limit=21000, max_fee_per_gas=50, max_priority_fee_per_gas=2)
        )

        assert tx["maxFeePerGas"] == 50
        assert tx["maxPriorityFeePerGas"] == 2
        assert "gasPrice" not in tx

    @pytest.mark.asyncio
    async def test_estimate_gas_failure(self, mock_web3, test_account):
        mock_web3.eth.estimate_gas = Mock(side_effect=ValueError("execution reverted"))
        builder = TransactionBuilder(mock_web3, test_account)

        with pytest.raises(TransactionError) as exc_info:
            await builder.build_transaction(to=RECIPIENT)

        assert "Gas estimation failed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_nonce_from_pending_count(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        assert await builder.get_nonce() == 7
        mock_web3.eth.get_transaction_count.assert_called_with(test_account.address, "pending")

    @pytest.mark.asyncio
    async def test_nonce_never_goes_backwards(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        await builder.send_transaction(signed_ready_tx(test_account, nonce=7), poll_latency=0)

        # node has not seen the pending transaction yet
        assert await builder.get_nonce() == 8
        assert await builder.get_nonce(refresh=True) == 7

        mock_web3.eth.get_transaction_count.return_value = 9
        assert await builder.get_nonce() == 9

    def test_sign_rejects_foreign_sender(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        with pytest.raises(TransactionError):
            builder.sign_transaction(signed_ready_tx(test_account, **{"from": RECIPIENT}))

    def test_sign_transaction(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        raw_hex, raw_bytes = builder.sign_transaction(signed_ready_tx(test_account))

        assert raw_hex.startswith("0x")
        assert len(raw_bytes) > 0

    @pytest.mark.asyncio
    async def test_send_transaction_success(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        result = await builder.send_transaction(signed_ready_tx(test_account), poll_latency=0)

        assert result.success
        assert result.tx_hash == "0x" + "12" * 32
        assert result.gas_used == 21000
        assert result.block_number == 42
        # nonce advanced locally after a send
        assert builder._next_nonce == 1

    @pytest.mark.asyncio
    async def test_send_transaction_reverted(self, mock_web3, test_account):
        mock_web3.eth.get_transaction_receipt.return_value = {
            "status": 0, "gasUsed": 30000, "blockNumber": 43
        }
        builder = TransactionBuilder(mock_web3, test_account)

        result = await builder.send_transaction(signed_ready_tx(test_account), poll_latency=0)

        assert not result.success
        assert result.error == "Transaction reverted"

    @pytest.mark.asyncio
    async def test_send_failure_raises(self, mock_web3, test_account):
        mock_web3.eth.send_raw_transaction = Mock(side_effect=ValueError("insufficient funds"))
        builder = TransactionBuilder(mock_web3, test_account)

        with pytest.raises(TransactionError) as exc_info:
            await builder.send_transaction(signed_ready_tx(test_account))

        assert exc_info.value.details["to_address"] == RECIPIENT

    @pytest.mark.asyncio
    async def test_wait_for_receipt_timeout(self, mock_web3, test_account):
        mock_web3.eth.get_transaction_receipt = Mock(side_effect=TransactionNotFound("pending"))
        builder = TransactionBuilder(mock_web3, test_account)

        with pytest.raises(TransactionError) as exc_info:
            await builder.wait_for_receipt("0xabc", timeout=0.01, poll_latency=0.005)

        assert exc_info.value.code == ErrorCodes.TRANSACTION_TIMEOUT
        assert exc_info.value.tx_hash == "0xabc"

    @pytest.mark.asyncio
    async def test_send_ether(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)

        with patch.object(builder, "build_and_send_tx", new=AsyncMock()) as send:
            await builder.send_ether(RECIPIENT, 10**16, gas_limit=50_000, gas_price=1)

        options = send.call_args.kwargs["options"]
        assert options.value == 10**16
        assert options.gas_limit == 50_000
        assert options.gas_price == 1

    def test_to_hex_hash(self):
        assert to_hex_hash("abcd") == "0xabcd"
        assert to_hex_hash("0xabcd") == "0xabcd"
        assert to_hex_hash(HexBytes("0xabcd")) == "0xabcd"


class TestContractDeployer:
    """Test contract deployment"""

    @pytest.fixture
    def builder(self, mock_web3, test_account):
        builder = TransactionBuilder(mock_web3, test_account)
        builder.deploy_contract = AsyncMock(return_value=TransactionResult(tx_hash="0xdeploy"))
        return builder

    @pytest.mark.asyncio
    async def test_deploy_success(self, builder, mock_web3):
        mock_web3.eth.get_transaction_receipt.return_value = {
            "status": 1,
            "gasUsed": 2_000_000,
            "blockNumber": 50,
            "contractAddress": RECIPIENT,
        }
        mock_web3.eth.get_code = Mock(return_value=HexBytes("0x6080"))
        sent = []

        deployer = ContractDeployer(builder)
        result = await deployer.deploy(
            ContractData(bytecode="0x6080", abi=[], name="TEST"),
            options=DeploymentOptions(gas_limit=3_500_000, gas_price=20_000_000_000),
            on_sent=sent.append
        )

        assert result.success
        assert result.contract_address == RECIPIENT
        assert result.transaction_hash == "0xdeploy"
        assert result.gas_used == 2_000_000
        assert sent == ["0xdeploy"]

        options = builder.deploy_contract.call_args.kwargs["options"]
        assert options.gas_limit == 3_500_000
        assert options.gas_price == 20_000_000_000

    @pytest.mark.asyncio
    async def test_deploy_reverted(self, builder, mock_web3):
        mock_web3.eth.get_transaction_receipt.return_value = {
            "status": 0, "gasUsed": 3_500_000, "blockNumber": 50, "contractAddress": None
        }

        result = await ContractDeployer(builder).deploy(ContractData(bytecode="0x6080", abi=[]))

        assert not result.success
        assert result.error == "Deployment transaction reverted"

    @pytest.mark.asyncio
    async def test_deploy_without_code(self, builder, mock_web3):
        mock_web3.eth.get_transaction_receipt.return_value = {
            "status": 1, "gasUsed": 1, "blockNumber": 50, "contractAddress": RECIPIENT
        }
        mock_web3.eth.get_code = Mock(return_value=HexBytes(b""))

        result = await ContractDeployer(builder).deploy(ContractData(bytecode="0x6080", abi=[]))

        assert not result.success
        assert "No contract code" in result.error

    @pytest.mark.asyncio
    async def test_send_failure_wrapped(self, builder):
        builder.deploy_contract = AsyncMock(side_effect=TransactionError("Failed to send transaction"))

        with pytest.raises(ContractError) as exc_info:
            await ContractDeployer(builder).deploy(ContractData(bytecode="0x6080", abi=[], name="TEST"))

        assert exc_info.value.code == ErrorCodes.CONTRACT_DEPLOY_FAILED
        assert exc_info.value.details["contract_name"] == "TEST"
