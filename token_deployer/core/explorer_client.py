"""
Block explorer HTTP API client
For ETH price lookups and source code verification (Etherscan API v2)
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import aiohttp

from ..contract.compiler import COMPILER_VERSION, EVM_VERSION, OPTIMIZER_RUNS
from ..utils.exceptions import ErrorCodes, ExplorerError

LOG = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.etherscan.io/v2/api"
PRICE_CHAIN_ID = 1
FALLBACK_ETH_PRICE = 2300.0

ALREADY_VERIFIED_RESULT = "Contract source code already verified"
STATUS_PASS = "Pass - Verified"
STATUS_ALREADY = "Already Verified"

UNLICENSE_LICENSE_TYPE = "1"


class VerificationStatus(str, Enum):
    """Terminal outcome of a verification job"""
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    FAILED = "failed"
    TIMEOUT = "timeout"
    ERROR = "error"

    @property
    def ok(self) -> bool:
        return self in (VerificationStatus.VERIFIED, VerificationStatus.ALREADY_VERIFIED)


@dataclass
class EthPrice:
    """ETH/USD quote and where it came from"""
    price: float
    source: str
    timestamp: Optional[str] = None
    ethbtc: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.source == "Etherscan API"


@dataclass
class PollResult:
    """Outcome of polling a verification GUID"""
    status: VerificationStatus
    message: str
    attempts: int


def classify_status(result: str) -> Optional[VerificationStatus]:
    """Map a checkverifystatus result string to a terminal status, None if still pending"""
    if result == STATUS_PASS:
        return VerificationStatus.VERIFIED
    if result == STATUS_ALREADY:
        return VerificationStatus.ALREADY_VERIFIED
    if "Fail" in result:
        return VerificationStatus.FAILED
    return None


class ExplorerClient:
    """Etherscan-compatible explorer API client"""

    def __init__(
        self,
        api_key: Optional[str],
        chain_id: int,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0
    ):
        """
        Initialize explorer client

        Args:
            api_key: Explorer API key
            chain_id: Chain the contracts live on, sent as `chainid`
            api_url: Explorer API endpoint
            timeout: Default request timeout (seconds)
        """
        self.api_key = api_key
        self.chain_id = chain_id
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    def _require_session(self) -> aiohttp.ClientSession:
        if not self.session:
            raise RuntimeError("Client not initialized. Use 'async with' statement.")
        return self.session

    async def _read_json(self, resp: aiohttp.ClientResponse) -> Dict[str, Any]:
        if resp.status != 200:
            text = await resp.text()
            raise ExplorerError(f"HTTP {resp.status}: {text}", status=resp.status)
        try:
            return await resp.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
            raise ExplorerError(
                f"Invalid JSON response: {e}",
                status=resp.status,
                code=ErrorCodes.EXPLORER_BAD_RESPONSE
            )

    def _request_timeout(self, timeout: Optional[float]) -> aiohttp.ClientTimeout:
        # an explicit timeout=None disables aiohttp's session default
        return aiohttp.ClientTimeout(total=timeout if timeout is not None else self.timeout)

    async def _get(self, params: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        session = self._require_session()
        request_timeout = self._request_timeout(timeout)
        try:
            async with session.get(self.api_url, params=params, timeout=request_timeout) as resp:
                return await self._read_json(resp)
        except asyncio.TimeoutError:
            raise ExplorerError(f"Request timeout after {request_timeout.total}s")
        except aiohttp.ClientError as e:
            raise ExplorerError(f"Connection error: {e}")

    async def _post(self, form: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        session = self._require_session()
        request_timeout = self._request_timeout(timeout)
        try:
            # a dict body is sent as application/x-www-form-urlencoded
            async with session.post(
                self.api_url,
                params={"chainid": self.chain_id},
                data=form,
                timeout=request_timeout
            ) as resp:
                return await self._read_json(resp)
        except asyncio.TimeoutError:
            raise ExplorerError(f"Request timeout after {request_timeout.total}s")
        except aiohttp.ClientError as e:
            raise ExplorerError(f"Connection error: {e}")

    async def get_eth_price(self) -> EthPrice:
        """
        Current ETH/USD price from the mainnet stats endpoint.

        Never raises: without an API key or on any failure an estimated
        price is returned instead.
        """
        if not self.api_key:
            LOG.warning("No Etherscan API key found, using estimated price")
            return EthPrice(price=FALLBACK_ETH_PRICE, source="estimated (no API key)")

        LOG.info("Fetching current ETH price...")
        LOG.debug(f"   API URL: {self.api_url}")
        LOG.debug(f"   Using API key: {self.api_key[:8]}...")

        try:
            data = await self._get(
                {
                    "chainid": PRICE_CHAIN_ID,
                    "module": "stats",
                    "action": "ethprice",
                    "apikey": self.api_key,
                },
                timeout=10.0
            )
            LOG.debug(f"   API Response Data: {data}")

            if data.get("status") != "1" or not data.get("result"):
                raise ExplorerError(
                    f"API Error - Status: {data.get('status')}, "
                    f"Message: {data.get('message') or 'Unknown error'}",
                    code=ErrorCodes.EXPLORER_BAD_RESPONSE
                )

            result = data["result"]
            try:
                price = float(result.get("ethusd"))
            except (TypeError, ValueError):
                price = float("nan")
            if not price > 0:
                raise ExplorerError(
                    f"Invalid price value: {result.get('ethusd')}",
                    code=ErrorCodes.EXPLORER_BAD_RESPONSE
                )

            timestamp = result.get("ethusd_timestamp")
            if timestamp:
                updated = time.strftime("%H:%M:%S", time.localtime(int(timestamp)))
                LOG.info(f"Current ETH price: ${price:.2f} (updated: {updated})")
            else:
                LOG.info(f"Current ETH price: ${price:.2f}")

            return EthPrice(
                price=price,
                source="Etherscan API",
                timestamp=timestamp,
                ethbtc=result.get("ethbtc")
            )

        except ExplorerError as e:
            LOG.error(f"Failed to fetch ETH price: {e.message}")
            LOG.warning(f"Using estimated price of ${FALLBACK_ETH_PRICE:.0f}")
            return EthPrice(
                price=FALLBACK_ETH_PRICE,
                source="estimated (API failed)",
                timestamp=str(int(time.time())),
                ethbtc="N/A",
                error=e.message
            )

    def verification_form(
        self,
        contract_address: str,
        source_code: str,
        contract_name: str
    ) -> Dict[str, str]:
        """Form fields for a single-file verifysourcecode submission"""
        return {
            "apikey": self.api_key or "",
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": contract_address,
            "sourceCode": source_code,
            "codeformat": "solidity-single-file",
            "contractname": contract_name,
            "compilerversion": COMPILER_VERSION,
            "optimizationUsed": "1",
            "runs": str(OPTIMIZER_RUNS),
            # sic, the API's field name
            "constructorArguements": "",
            "evmversion": EVM_VERSION,
            "licenseType": UNLICENSE_LICENSE_TYPE,
        }

    async def submit_verification(
        self,
        contract_address: str,
        source_code: str,
        contract_name: str
    ) -> Dict[str, Any]:
        """
        Submit source code for verification.

        Returns:
            Raw API response: {"status": "1", "message": "OK", "result": "<guid>"}
            on acceptance
        """
        LOG.info("Sending verification request...")
        return await self._post(
            self.verification_form(contract_address, source_code, contract_name),
            timeout=30.0
        )

    async def check_verification_status(self, guid: str) -> str:
        """Current status string of a verification job"""
        data = await self._get({
            "chainid": self.chain_id,
            "apikey": self.api_key,
            "module": "contract",
            "action": "checkverifystatus",
            "guid": guid,
        })
        return str(data.get("result", ""))

    async def poll_verification(
        self,
        guid: str,
        max_attempts: int = 15,
        interval: float = 8.0
    ) -> PollResult:
        """
        Poll a verification job until it passes, fails or `max_attempts`
        checks have been made. Waits `interval` seconds before every check.
        """
        LOG.info("Monitoring verification progress...")

        status = ""
        for attempt in range(1, max_attempts + 1):
            await asyncio.sleep(interval)

            try:
                status = await self.check_verification_status(guid)
            except ExplorerError as e:
                LOG.error(f"Status check failed: {e.message}")
                return PollResult(VerificationStatus.ERROR, e.message, attempt)

            LOG.info(f"   [{attempt}/{max_attempts}] {status}")

            outcome = classify_status(status)
            if outcome is not None:
                return PollResult(outcome, status, attempt)

        return PollResult(VerificationStatus.TIMEOUT, status, max_attempts)
