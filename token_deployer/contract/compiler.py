"""
Solidity compilation through py-solc-x

Compiles a single-file source with the settings the explorer verification
step submits later: solc 0.8.24, optimizer on with 200 runs, EVM shanghai.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import solcx
from solcx.exceptions import SolcError

from ..utils.exceptions import CompilationError, ErrorCodes

LOG = logging.getLogger(__name__)

SOLC_VERSION = "0.8.24"
# Full version string as the explorer expects it
COMPILER_VERSION = "v0.8.24+commit.e11b9ed9"
OPTIMIZER_RUNS = 200
EVM_VERSION = "shanghai"
SOURCE_FILENAME = "Token.sol"


@dataclass
class CompiledContract:
    """Artifacts needed to deploy and call a contract"""
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str

    @property
    def bytecode_size(self) -> int:
        """Size of the init code in bytes"""
        return (len(self.bytecode) - 2) // 2


def build_input(source_code: str) -> Dict[str, Any]:
    """Standard-JSON compiler input for a single source file"""
    return {
        "language": "Solidity",
        "sources": {
            SOURCE_FILENAME: {"content": source_code}
        },
        "settings": {
            "outputSelection": {
                "*": {"*": ["*"]}
            },
            "optimizer": {
                "enabled": True,
                "runs": OPTIMIZER_RUNS
            },
            "evmVersion": EVM_VERSION
        }
    }


def ensure_solc(version: str = SOLC_VERSION) -> None:
    """Install the solc binary on first use"""
    installed = {str(v) for v in solcx.get_installed_solc_versions()}
    if version not in installed:
        LOG.info(f"Installing solc {version}...")
        solcx.install_solc(version)


def compile_contract(source_code: str, contract_name: str, solc_version: str = SOLC_VERSION) -> CompiledContract:
    """
    Compile `source_code` and return the artifacts of `contract_name`.

    Raises:
        CompilationError: On error-severity diagnostics or a missing artifact
    """
    ensure_solc(solc_version)

    try:
        output = solcx.compile_standard(
            build_input(source_code),
            solc_version=solc_version,
            allow_empty=True
        )
    except SolcError as e:
        # compile_standard raises on error-severity diagnostics itself
        LOG.error("Compilation errors detected:")
        LOG.error(f"   • {e.message.strip()}")
        raise CompilationError("Compilation failed", errors=[e.message], cause=e)

    diagnostics = output.get("errors", [])
    errors = [d for d in diagnostics if d.get("severity") == "error"]
    if errors:
        messages = [d.get("formattedMessage") or d.get("message", "") for d in errors]
        LOG.error("Compilation errors detected:")
        for message in messages:
            LOG.error(f"   • {message.strip()}")
        raise CompilationError(
            f"Compilation failed with {len(errors)} error(s)",
            errors=messages
        )
    for warning in diagnostics:
        if warning.get("severity") == "warning":
            LOG.debug(f"solc warning: {warning.get('message')}")

    try:
        contract = output["contracts"][SOURCE_FILENAME][contract_name]
    except KeyError:
        raise CompilationError(
            f"Contract {contract_name} not found in compiler output",
            code=ErrorCodes.CONTRACT_NOT_IN_OUTPUT
        )

    compiled = CompiledContract(
        name=contract_name,
        abi=contract["abi"],
        bytecode="0x" + contract["evm"]["bytecode"]["object"],
    )
    LOG.info(f"Contract compiled successfully! Bytecode size: {compiled.bytecode_size:,} bytes")
    return compiled
