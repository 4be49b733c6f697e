"""
Explorer source verification workflow
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..config.network import NetworkConfig, Settings
from ..contract.compiler import COMPILER_VERSION, EVM_VERSION, OPTIMIZER_RUNS
from ..core.explorer_client import (
    ALREADY_VERIFIED_RESULT,
    ExplorerClient,
    PollResult,
    VerificationStatus,
)
from ..helpers import console
from ..helpers.deployment_store import DeploymentStore
from ..utils.exceptions import DeploymentNotFoundError, ErrorCodes, ExplorerError

LOG = logging.getLogger(__name__)

API_KEY_URL = "https://etherscan.io/apis"

COMMON_FIXES = (
    "Check compiler version matches deployment",
    f"Verify optimization settings ({OPTIMIZER_RUNS} runs)",
    "Ensure contract name matches file",
    f"Confirm EVM version ({EVM_VERSION})",
)


def contract_links(network: NetworkConfig, address: str) -> Dict[str, str]:
    base = network.address_url(address)
    return {
        "Contract": base,
        "Source Code": f"{base}#code",
        "Read Contract": f"{base}#readContract",
        "Write Contract": f"{base}#writeContract",
    }


def log_contract_links(network: NetworkConfig, address: str):
    for label, url in contract_links(network, address).items():
        LOG.info(f"   {label}: {url}")
    LOG.info("Contract is now publicly verifiable!")


def resolve_target(store: DeploymentStore, symbol: Optional[str] = None) -> Tuple[Dict[str, Any], Path, Path]:
    """
    Deployment record, record path and source path to verify.

    Without `symbol` the root deployment.json is used.

    Raises:
        DeploymentNotFoundError: If the record or the source is missing
    """
    deployment_path = store.deployment_path(symbol)
    try:
        deployment = store.load_deployment(symbol)
    except DeploymentNotFoundError as e:
        if e.code != ErrorCodes.DEPLOYMENT_NOT_FOUND:
            raise
        if symbol:
            LOG.error(f"{deployment_path} not found")
        else:
            LOG.error("deployment.json not found in root directory")
            LOG.info("Usage Options:")
            LOG.info("   1. Deploy a new token first: token-deploy")
            LOG.info("   2. Verify a specific token: token-verify TOKEN_SYMBOL")
        LOG.warning("Available tokens:")
        store.log_available_tokens()
        raise

    source_path = store.resolve_source(symbol or deployment["symbol"])
    return deployment, deployment_path, source_path


def report_poll_result(result: PollResult, network: NetworkConfig, address: str):
    if result.status == VerificationStatus.VERIFIED:
        console.banner("VERIFICATION SUCCESSFUL!")
        log_contract_links(network, address)
    elif result.status == VerificationStatus.ALREADY_VERIFIED:
        console.banner("CONTRACT ALREADY VERIFIED!")
        log_contract_links(network, address)
    elif result.status == VerificationStatus.FAILED:
        LOG.error(f"Verification failed: {result.message}")
        LOG.info("Common fixes:")
        for fix in COMMON_FIXES:
            LOG.info(f"   - {fix}")
    elif result.status == VerificationStatus.TIMEOUT:
        LOG.warning("Verification timeout - check manually")
        LOG.info(f"   Check status: {network.address_url(address)}#code")


async def run_verify(
    settings: Settings,
    store: DeploymentStore,
    symbol: Optional[str] = None,
    max_attempts: int = 15,
    poll_interval: float = 8.0
) -> VerificationStatus:
    """
    Submit the token source for verification and wait for the outcome.

    Raises:
        DeploymentNotFoundError: If the record or source file is missing
    """
    console.banner("CONTRACT VERIFICATION")
    network = settings.network

    if not settings.etherscan_api_key:
        LOG.error("Missing ETHERSCAN_API_KEY in .env file")
        LOG.info(f"   Get your API key from: {API_KEY_URL}")
        return VerificationStatus.ERROR

    console.section("NETWORK CONFIGURATION")
    LOG.info(f"Network: {network.name}")
    LOG.info(f"API Endpoint: {network.api_url}")
    LOG.debug(f"API Key: {settings.masked_api_key}")

    console.section("TARGET CONTRACT")
    if symbol:
        LOG.info(f"Verifying specific token: {symbol}")
    else:
        LOG.info("Verifying current deployment from root directory")
    deployment, deployment_path, source_path = resolve_target(store, symbol)

    address = deployment["address"]
    contract_name = deployment["symbol"]
    LOG.info(f"   Contract: {deployment.get('name')} ({contract_name})")
    LOG.info(f"   Address: {address}")
    LOG.info(f"   Deployment: {deployment_path}")
    LOG.info(f"   Source: {source_path}")

    source_code = source_path.read_text(encoding="utf-8")

    console.section("VERIFICATION PARAMETERS")
    LOG.info(f"   Compiler: {COMPILER_VERSION}")
    LOG.info(f"   EVM Version: {EVM_VERSION}")
    LOG.info(f"   Optimization: {OPTIMIZER_RUNS} runs")
    LOG.info("   License: Unlicense")

    async with ExplorerClient(
        settings.etherscan_api_key,
        chain_id=network.chain_id,
        api_url=network.api_url
    ) as explorer:
        console.section("SUBMITTING VERIFICATION")
        try:
            response = await explorer.submit_verification(address, source_code, contract_name)
        except ExplorerError as e:
            LOG.error("Verification failed")
            LOG.error(f"   Error: {e.message}")
            return VerificationStatus.ERROR

        LOG.info("Server Response:")
        LOG.info(f"   Status: {response.get('status')}")
        LOG.info(f"   Result: {response.get('result')}")

        if response.get("status") == "1":
            guid = response["result"]
            LOG.info(f"Verification submitted! GUID: {guid}")
            console.section("CHECKING VERIFICATION STATUS")
            result = await explorer.poll_verification(guid, max_attempts=max_attempts, interval=poll_interval)
            report_poll_result(result, network, address)
            return result.status

    if response.get("result") == ALREADY_VERIFIED_RESULT:
        console.banner("CONTRACT ALREADY VERIFIED!")
        log_contract_links(network, address)
        return VerificationStatus.ALREADY_VERIFIED

    LOG.error(f"Verification submission failed: {response.get('result')}")
    if response.get("message"):
        LOG.error(f"   Details: {response['message']}")
    return VerificationStatus.FAILED
