"""
Unit tests for token source generation and compilation
"""

from unittest.mock import patch

import pytest
from solcx.exceptions import SolcError

from token_deployer.contract import compiler
from token_deployer.contract.compiler import build_input, compile_contract, ensure_solc
from token_deployer.contract.template import (
    LICENSE_LINE,
    build_header,
    generate_contract,
    validate_symbol,
)
from token_deployer.utils.exceptions import CompilationError, ErrorCodes


class TestTemplate:

    def test_header_with_all_links(self):
        header = build_header("Moon Cat", "MCAT", "https://mooncat.io", "t.me/mooncat", "x.com/mooncat")
        lines = header.split("\n")

        assert lines[0] == LICENSE_LINE
        assert "Moon Cat (MCAT)" in lines
        assert "Website: https://mooncat.io" in lines
        assert "Telegram: t.me/mooncat" in lines
        assert "Twitter: x.com/mooncat" in lines

    def test_header_omits_empty_links(self):
        header = build_header("Moon Cat", "MCAT", website="https://mooncat.io")

        assert "Website: https://mooncat.io" in header
        assert "Telegram" not in header
        assert "Twitter" not in header

    def test_generate_contract(self):
        source = generate_contract("Moon Cat", "mcat")

        assert source.startswith(LICENSE_LINE + "\n")
        assert "pragma solidity ^0.8.24;" in source
        assert "contract MCAT is" in source
        assert 'unicode"Moon Cat"' in source
        assert 'unicode"MCAT"' in source
        assert "function openTrading()" in source
        assert "function removeLimit()" in source
        assert "function removeTransferTax()" in source

    def test_generate_contract_escapes_name_literal(self):
        source = generate_contract('Say "hi"', "HI")
        assert 'unicode"Say \\"hi\\""' in source

    def test_comment_cannot_be_closed_early(self):
        source = generate_contract("Evil */ Token", "EVIL", website="x */ y")
        header = source.split("pragma", 1)[0]
        assert header.count("*/") == 1

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            generate_contract("  ", "TOKEN")

    @pytest.mark.parametrize("symbol", ["", "1ABC", "AB-C", "A B"])
    def test_invalid_symbol_rejected(self, symbol):
        with pytest.raises(ValueError):
            validate_symbol(symbol)

    def test_symbol_upper_cased(self):
        assert validate_symbol(" doge_2 ") == "DOGE_2"


class TestCompiler:

    def test_build_input(self):
        data = build_input("contract A {}")

        assert data["sources"]["Token.sol"]["content"] == "contract A {}"
        assert data["settings"]["optimizer"] == {"enabled": True, "runs": 200}
        assert data["settings"]["evmVersion"] == "shanghai"

    def test_ensure_solc_installs_missing(self):
        with patch.object(compiler.solcx, "get_installed_solc_versions", return_value=[]), \
             patch.object(compiler.solcx, "install_solc") as install:
            ensure_solc("0.8.24")
        install.assert_called_once_with("0.8.24")

    def test_ensure_solc_skips_installed(self):
        with patch.object(compiler.solcx, "get_installed_solc_versions", return_value=["0.8.24"]), \
             patch.object(compiler.solcx, "install_solc") as install:
            ensure_solc("0.8.24")
        install.assert_not_called()

    def test_compile_success(self):
        output = {
            "errors": [{"severity": "warning", "message": "unused variable"}],
            "contracts": {
                "Token.sol": {
                    "MCAT": {"abi": [{"type": "function", "name": "name"}], "evm": {"bytecode": {"object": "6080aabb"}}}
                }
            },
        }
        with patch.object(compiler, "ensure_solc"), \
             patch.object(compiler.solcx, "compile_standard", return_value=output) as compile_standard:
            compiled = compile_contract("source", "MCAT")

        assert compiled.bytecode == "0x6080aabb"
        assert compiled.bytecode_size == 4
        assert compiled.abi == [{"type": "function", "name": "name"}]
        assert compile_standard.call_args.kwargs["solc_version"] == "0.8.24"

    def test_compile_error_diagnostics(self):
        output = {
            "errors": [
                {"severity": "error", "message": "Expected ';'", "formattedMessage": "Token.sol:1: Expected ';'"},
                {"severity": "warning", "message": "shadowing"},
            ],
            "contracts": {},
        }
        with patch.object(compiler, "ensure_solc"), \
             patch.object(compiler.solcx, "compile_standard", return_value=output):
            with pytest.raises(CompilationError) as exc_info:
                compile_contract("source", "MCAT")

        assert exc_info.value.details["errors"] == ["Token.sol:1: Expected ';'"]

    def test_solc_error_wrapped(self):
        error = SolcError("ParserError: Expected ';'", command=["solc"], return_code=1,
                          stdin_data="", stdout_data="", stderr_data="")
        with patch.object(compiler, "ensure_solc"), \
             patch.object(compiler.solcx, "compile_standard", side_effect=error):
            with pytest.raises(CompilationError) as exc_info:
                compile_contract("source", "MCAT")

        assert exc_info.value.cause is error
        assert exc_info.value.code == ErrorCodes.COMPILATION_FAILED

    def test_missing_contract(self):
        output = {"contracts": {"Token.sol": {"OTHER": {}}}}
        with patch.object(compiler, "ensure_solc"), \
             patch.object(compiler.solcx, "compile_standard", return_value=output):
            with pytest.raises(CompilationError) as exc_info:
                compile_contract("source", "MCAT")

        assert exc_info.value.code == ErrorCodes.CONTRACT_NOT_IN_OUTPUT
