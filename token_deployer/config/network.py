"""
Network and credential configuration

Settings come from the process environment, with a `.env` file in the
working directory filling in anything the environment does not set.
Additional networks can be described in a YAML file validated against
schemas/networks_schema.json.

Design Notes:
- `NETWORK=mainnet` selects mainnet, anything else the testnet
- Missing values are reported together, naming the environment variables
- Secrets are never part of a repr or a log line
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import jsonschema
import yaml
from dotenv import dotenv_values

from ..utils.exceptions import ConfigurationError, ErrorCodes

LOG = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent / "schemas"

DEFAULT_API_URL = "https://api.etherscan.io/v2/api"
DEFAULT_LIQUIDITY_AMOUNT = "0.01"
MAINNET_KEY = "mainnet"
TESTNET_KEY = "testnet"

ENV_NETWORK = "NETWORK"
ENV_PRIVATE_KEY = "MAIN_PRIVATE_KEY"
ENV_API_KEY = "ETHERSCAN_API_KEY"
ENV_LIQUIDITY = "LIQUIDITY_AMOUNT"
ENV_NETWORKS_FILE = "TOKEN_DEPLOYER_NETWORKS_FILE"


@dataclass(frozen=True)
class NetworkConfig:
    """A chain the scripts can deploy to"""
    key: str
    name: str
    chain_id: int
    explorer_url: str
    rpc_url_env: str
    api_url: str = DEFAULT_API_URL

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"


BUILTIN_NETWORKS: Dict[str, NetworkConfig] = {
    MAINNET_KEY: NetworkConfig(
        key=MAINNET_KEY,
        name="Ethereum Mainnet",
        chain_id=1,
        explorer_url="https://etherscan.io",
        rpc_url_env="MAINNET_RPC_URL",
    ),
    TESTNET_KEY: NetworkConfig(
        key=TESTNET_KEY,
        name="Sepolia Testnet",
        chain_id=11155111,
        explorer_url="https://sepolia.etherscan.io",
        rpc_url_env="TESTNET_RPC_URL",
    ),
}


@dataclass
class Settings:
    """Resolved settings for one script run"""
    network: NetworkConfig
    rpc_url: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    etherscan_api_key: Optional[str] = field(default=None, repr=False)
    liquidity_amount: str = DEFAULT_LIQUIDITY_AMOUNT

    def _env_names(self) -> Dict[str, str]:
        return {
            "rpc_url": self.network.rpc_url_env,
            "private_key": ENV_PRIVATE_KEY,
            "etherscan_api_key": ENV_API_KEY,
        }

    def missing(self, *fields: str) -> List[str]:
        """Environment variable names of the unset `fields`"""
        names = self._env_names()
        return [names[f] for f in fields if not getattr(self, f)]

    def require(self, *fields: str) -> None:
        """
        Raise ConfigurationError naming every unset variable among `fields`.
        """
        missing = self.missing(*fields)
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: " + ", ".join(missing),
                code=ErrorCodes.CONFIG_MISSING_VALUE,
                missing=missing
            )

    @property
    def masked_api_key(self) -> str:
        if not self.etherscan_api_key:
            return "Not provided"
        return self.etherscan_api_key[:8] + "..."


class ConfigManager:
    """
    Resolves Settings from the environment, a `.env` file and an optional
    networks YAML file.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Path] = None,
        networks_file: Optional[Path] = None,
        schema_dir: Path = SCHEMA_DIR
    ):
        """
        Args:
            environ: Environment mapping, defaults to os.environ
            dotenv_path: `.env` file, defaults to ./.env; values there never
                override variables already present in `environ`
            networks_file: YAML network definitions, defaults to
                $TOKEN_DEPLOYER_NETWORKS_FILE when set
            schema_dir: Directory containing the JSON schemas
        """
        base_env = dict(os.environ if environ is None else environ)
        env_file = Path(dotenv_path) if dotenv_path is not None else Path.cwd() / ".env"
        file_values = {}
        if env_file.is_file():
            file_values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
            LOG.debug(f"Loaded {len(file_values)} values from {env_file}")
        self.env: Dict[str, str] = {**file_values, **base_env}

        if networks_file is None and self.env.get(ENV_NETWORKS_FILE):
            networks_file = Path(self.env[ENV_NETWORKS_FILE])
        self.networks_file = Path(networks_file) if networks_file else None
        self.schema_dir = Path(schema_dir)
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Environment value with surrounding whitespace removed; blank counts as unset"""
        value = self.env.get(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def _load_schema(self, schema_name: str) -> Dict[str, Any]:
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_file = self.schema_dir / f"{schema_name}_schema.json"
        if not schema_file.exists():
            raise ConfigurationError(
                f"Schema file not found: {schema_file}",
                config_file=str(schema_file),
                code=ErrorCodes.CONFIG_FILE_NOT_FOUND
            )
        with open(schema_file, 'r') as f:
            schema = json.load(f)
        self._schemas[schema_name] = schema
        return schema

    def _validate(self, config: Any, schema_name: str, config_file: str) -> None:
        schema = self._load_schema(schema_name)
        validator = jsonschema.Draft7Validator(schema)
        errors = []
        for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
            if error.path:
                path = " -> ".join(str(p) for p in error.path)
                errors.append(f"'{path}' {error.message}")
            else:
                errors.append(error.message)

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed for {config_file}:\n"
                + "\n".join(f"  - {e}" for e in errors),
                config_file=config_file,
                code=ErrorCodes.CONFIG_VALIDATION_FAILED
            )

    def load_networks(self) -> Dict[str, NetworkConfig]:
        """
        Built-in networks merged with the networks file, if any.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid
        """
        networks = dict(BUILTIN_NETWORKS)
        if self.networks_file is None:
            return networks

        if not self.networks_file.exists():
            raise ConfigurationError(
                f"Networks file not found: {self.networks_file}",
                config_file=str(self.networks_file),
                code=ErrorCodes.CONFIG_FILE_NOT_FOUND
            )

        try:
            with open(self.networks_file, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in networks file {self.networks_file}: {e}",
                config_file=str(self.networks_file),
                code=ErrorCodes.CONFIG_VALIDATION_FAILED
            )

        self._validate(config, "networks", str(self.networks_file))

        for key, entry in config["networks"].items():
            key = key.lower()
            networks[key] = NetworkConfig(
                key=key,
                name=entry["name"],
                chain_id=entry["chain_id"],
                explorer_url=entry["explorer_url"].rstrip("/"),
                rpc_url_env=entry["rpc_url_env"],
                api_url=entry.get("api_url", DEFAULT_API_URL),
            )
        LOG.debug(f"Loaded networks from {self.networks_file}: {sorted(networks)}")
        return networks

    def resolve_network(self) -> NetworkConfig:
        """
        The network selected by $NETWORK.

        Unknown names fall back to the testnet.
        """
        networks = self.load_networks()
        selected = (self.get(ENV_NETWORK) or "").lower()
        if selected in networks:
            return networks[selected]
        return networks[TESTNET_KEY]

    def load_settings(self) -> Settings:
        network = self.resolve_network()
        return Settings(
            network=network,
            rpc_url=self.get(network.rpc_url_env),
            private_key=self.get(ENV_PRIVATE_KEY),
            etherscan_api_key=self.get(ENV_API_KEY),
            liquidity_amount=self.get(ENV_LIQUIDITY, DEFAULT_LIQUIDITY_AMOUNT),
        )


def load_settings(**kwargs) -> Settings:
    """Shortcut for ConfigManager(**kwargs).load_settings()"""
    return ConfigManager(**kwargs).load_settings()
