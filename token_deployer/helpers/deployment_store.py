"""
On-disk layout of generated sources and deployment records

    contracts/<SYMBOL>/token.sol         generated source
    contracts/<SYMBOL>/deployment.json   deployment record
    contracts/<SYMBOL>/post-deploy.json  outcome of the last post-deploy run
    deployment.json                      copy of the latest deployment
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..utils.exceptions import DeploymentNotFoundError, ErrorCodes

LOG = logging.getLogger(__name__)

CONTRACTS_DIR = "contracts"
SOURCE_FILE = "token.sol"
DEPLOYMENT_FILE = "deployment.json"
POST_DEPLOY_FILE = "post-deploy.json"
ROOT_LABEL = "[ROOT]"


@dataclass
class TokenListing:
    """One entry of the available-token listing"""
    label: str
    address: Optional[str] = None
    name: Optional[str] = None
    valid: bool = True

    @property
    def is_root(self) -> bool:
        return self.label == ROOT_LABEL

    def describe(self) -> str:
        if not self.valid:
            return f"{self.label}: Invalid {DEPLOYMENT_FILE}"
        return f"{self.label}: {self.address} ({self.name})"


class DeploymentStore:
    """Reads and writes token sources and deployment records under `base_dir`"""

    def __init__(self, base_dir: Union[str, Path] = "."):
        self.base_dir = Path(base_dir)

    @property
    def contracts_dir(self) -> Path:
        return self.base_dir / CONTRACTS_DIR

    @property
    def root_deployment_path(self) -> Path:
        return self.base_dir / DEPLOYMENT_FILE

    def token_dir(self, symbol: str) -> Path:
        return self.contracts_dir / symbol

    def source_path(self, symbol: str) -> Path:
        return self.token_dir(symbol) / SOURCE_FILE

    def legacy_source_path(self, symbol: str) -> Path:
        return self.contracts_dir / f"{symbol}.sol"

    def deployment_path(self, symbol: Optional[str] = None) -> Path:
        """Record path for `symbol`, or the root record when None"""
        if symbol is None:
            return self.root_deployment_path
        return self.token_dir(symbol) / DEPLOYMENT_FILE

    def save_source(self, symbol: str, source_code: str) -> Path:
        path = self.source_path(symbol)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source_code, encoding="utf-8")
        LOG.info(f"Contract source saved: {path}")
        return path

    def save_deployment(self, record: Dict[str, Any]) -> List[Path]:
        """
        Write `record` to the token directory and to the root record.

        Returns:
            Paths written, token record first
        """
        payload = json.dumps(record, indent=2)
        written = []
        for path in (self.deployment_path(record["symbol"]), self.root_deployment_path):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(payload, encoding="utf-8")
            written.append(path)
        LOG.info(f"Deployment data saved: {', '.join(str(p) for p in written)}")
        return written

    def post_deploy_path(self, symbol: str) -> Path:
        return self.token_dir(symbol) / POST_DEPLOY_FILE

    def save_post_deploy_report(self, symbol: str, report: Dict[str, Any]) -> Path:
        path = self.post_deploy_path(symbol)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        LOG.info(f"Post-deploy report saved: {path}")
        return path

    def load_deployment(self, symbol: Optional[str] = None) -> Dict[str, Any]:
        """
        Load the record for `symbol`, or the root record when None.

        Raises:
            DeploymentNotFoundError: If the file is missing or not valid JSON
        """
        path = self.deployment_path(symbol)
        if not path.is_file():
            raise DeploymentNotFoundError(f"Deployment file not found: {path}", path=str(path))
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise DeploymentNotFoundError(
                f"Invalid deployment file {path}: {e}",
                path=str(path),
                code=ErrorCodes.DEPLOYMENT_INVALID
            )

    def resolve_source(self, symbol: str) -> Path:
        """
        Source file for `symbol`, falling back to contracts/<SYMBOL>.sol.

        Raises:
            DeploymentNotFoundError: If neither file exists
        """
        for path in (self.source_path(symbol), self.legacy_source_path(symbol)):
            if path.is_file():
                return path
        path = self.source_path(symbol)
        raise DeploymentNotFoundError(
            f"{path} not found",
            path=str(path),
            code=ErrorCodes.SOURCE_NOT_FOUND
        )

    def list_available_tokens(self) -> List[TokenListing]:
        """Token directories holding a record, then the root record if present"""
        listings = []
        if self.contracts_dir.is_dir():
            for token_dir in sorted(p for p in self.contracts_dir.iterdir() if p.is_dir()):
                record_path = token_dir / DEPLOYMENT_FILE
                if record_path.is_file():
                    listings.append(self._listing(token_dir.name, record_path))
        if self.root_deployment_path.is_file():
            listings.append(self._listing(ROOT_LABEL, self.root_deployment_path))
        return listings

    def _listing(self, label: str, path: Path) -> TokenListing:
        try:
            with open(path, 'r') as f:
                record = json.load(f)
            return TokenListing(label=label, address=record.get("address"), name=record.get("name"))
        except (json.JSONDecodeError, AttributeError):
            return TokenListing(label=label, valid=False)

    def log_available_tokens(self) -> None:
        if not self.contracts_dir.is_dir() and not self.root_deployment_path.is_file():
            LOG.info("   No contracts directory found")
            return
        listings = self.list_available_tokens()
        if not listings:
            LOG.info("   No tokens found")
            return
        for listing in listings:
            if listing.valid:
                LOG.info(f"   {listing.describe()}")
            else:
                LOG.warning(f"   {listing.describe()}")
