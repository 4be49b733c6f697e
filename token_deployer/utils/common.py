from decimal import Decimal, InvalidOperation
from typing import Union

from web3 import Web3

TOKEN_DECIMALS = 9


def format_units(value: int, decimals: int) -> str:
    """Render an integer amount with `decimals` implied decimal places.

    Whole amounts keep a single trailing ".0" so `1000` tokens read as
    "1000.0" rather than "1000".
    """
    amount = Decimal(int(value)).scaleb(-decimals)
    text = format(amount, "f")
    if "." not in text:
        return text + ".0"
    text = text.rstrip("0")
    return text + "0" if text.endswith(".") else text


def format_ether(wei: int) -> str:
    return format_units(wei, 18)


def format_gwei(wei: int) -> str:
    return format_units(wei, 9)


def format_tokens(amount: int) -> str:
    return format_units(amount, TOKEN_DECIMALS)


def parse_ether(amount: Union[str, int, float, Decimal]) -> int:
    """Convert a decimal ETH amount to wei"""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid ETH amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"ETH amount must be a finite number: {amount!r}")
    if value < 0:
        raise ValueError(f"ETH amount must not be negative: {amount!r}")
    return Web3.to_wei(value, "ether")


def wei_to_eth(wei: int) -> float:
    return float(Web3.from_wei(wei, "ether"))
