"""
Token source generation

The contract body lives in templates/token.sol.tmpl; only the name and the
symbol are substituted into it. Social links only appear in the header
comment.
"""

import re
from pathlib import Path
from string import Template
from typing import Optional

TEMPLATE_PATH = Path(__file__).parent / "templates" / "token.sol.tmpl"
LICENSE_LINE = "// SPDX-License-Identifier: UNLICENSE"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_template: Optional[Template] = None


def _load_template() -> Template:
    global _template
    if _template is None:
        _template = Template(TEMPLATE_PATH.read_text(encoding="utf-8"))
    return _template


def validate_symbol(symbol: str) -> str:
    """Upper-case `symbol` and check it can be used as the contract name"""
    symbol = (symbol or "").strip().upper()
    if not symbol:
        raise ValueError("Token symbol must not be empty")
    if not _IDENTIFIER.match(symbol):
        raise ValueError(
            f"Token symbol {symbol!r} is not a valid Solidity identifier "
            "(letters, digits and underscore, not starting with a digit)"
        )
    return symbol


def _comment_safe(text: str) -> str:
    return text.replace("*/", "* /")


def _string_literal_safe(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def build_header(
    name: str,
    symbol: str,
    website: str = "",
    telegram: str = "",
    twitter: str = ""
) -> str:
    lines = [LICENSE_LINE, "", "/*", "", f"{_comment_safe(name)} ({symbol})", ""]
    for label, value in (("Website", website), ("Telegram", telegram), ("Twitter", twitter)):
        if value:
            lines.append(f"{label}: {_comment_safe(value)}")
    lines += ["", "*/", "", ""]
    return "\n".join(lines)


def generate_contract(
    name: str,
    symbol: str,
    website: str = "",
    telegram: str = "",
    twitter: str = ""
) -> str:
    """
    Render the token contract source.

    Args:
        name: Token name, used verbatim in the `unicode"..."` literal
        symbol: Token symbol, also the contract name
        website, telegram, twitter: Optional links for the header comment

    Returns:
        Complete Solidity source for a single file
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Token name must not be empty")
    symbol = validate_symbol(symbol)

    header = build_header(name, symbol, website or "", telegram or "", twitter or "")
    body = _load_template().substitute(
        name=_string_literal_safe(name),
        symbol=symbol,
    )
    return header + body
