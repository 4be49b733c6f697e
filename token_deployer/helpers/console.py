import logging
from typing import Any, Callable, Iterable, Optional, Tuple

LOG = logging.getLogger(__name__)

RULE = "=" * 60
SUB_RULE = "-" * 60
NOT_PROVIDED = "Not provided"


def banner(title: str, subtitle: Optional[str] = None):
    LOG.info(RULE)
    LOG.info(title)
    if subtitle:
        LOG.info(subtitle)
    LOG.info(RULE)


def section(title: str):
    LOG.info("")
    LOG.info(title)
    LOG.info(SUB_RULE)


def summary(title: str, rows: Iterable[Tuple[str, Any]]):
    """Log `rows` as an aligned key/value block under a rule-framed title"""
    rows = list(rows)
    width = max((len(label) for label, _ in rows), default=0)
    LOG.info(RULE)
    LOG.info(title)
    LOG.info(RULE)
    for label, value in rows:
        LOG.info(f"  {label + ':':<{width + 1}} {value if value not in (None, '') else NOT_PROVIDED}")
    LOG.info(RULE)


def ask(prompt: str, input_func: Callable[[str], str] = input) -> str:
    return input_func(prompt).strip()


def confirm(prompt: str, assume_yes: bool = False, input_func: Callable[[str], str] = input) -> bool:
    """y/N question, only an explicit `y` counts as yes"""
    if assume_yes:
        return True
    return ask(f"{prompt} (y/N): ", input_func).lower() == "y"
