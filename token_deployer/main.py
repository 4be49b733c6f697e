#!/usr/bin/env python3
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config.network import load_settings
from .core.wallet import connect_wallet
from .helpers.deployment_store import DeploymentStore
from .utils.exceptions import TokenDeployerError
from .utils.logging import setup_logging
from .workflows.deploy import TokenDeployment
from .workflows.post_deploy import run_post_deploy
from .workflows.verify import run_verify

LOG = logging.getLogger(__name__)

COMMAND_LABELS = {
    "deploy": "Deployment",
    "post-deploy": "Post-deploy",
    "verify": "Verification",
}


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    common.add_argument("--log-file", default=None,
                        help="Path to log file")
    common.add_argument("--workdir", default=".",
                        help="Directory holding .env, contracts/ and deployment.json")

    parser = argparse.ArgumentParser(description="Token deployment toolkit")
    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", parents=[common], help="Generate, compile and deploy a token")
    deploy.add_argument("--name", default=None, help="Token name")
    deploy.add_argument("--symbol", default=None, help="Token symbol, also the contract name")
    deploy.add_argument("--website", default=None, help="Website link for the source header")
    deploy.add_argument("--telegram", default=None, help="Telegram link for the source header")
    deploy.add_argument("--twitter", default=None, help="Twitter link for the source header")
    deploy.add_argument("--yes", "-y", action="store_true", help="Skip the confirmation prompt")

    post = sub.add_parser("post-deploy", parents=[common], help="Run the launch transaction sequence")
    post.add_argument("symbol", help="Token symbol (contracts/SYMBOL/deployment.json)")

    verify = sub.add_parser("verify", parents=[common], help="Verify the source on the block explorer")
    verify.add_argument("symbol", nargs="?", default=None,
                        help="Token symbol; the root deployment.json when omitted")

    sub.add_parser("list", parents=[common], help="List recorded deployments")
    return parser


async def run_command(args: argparse.Namespace) -> int:
    workdir = Path(args.workdir)
    store = DeploymentStore(workdir)

    if args.command == "list":
        LOG.info("Available tokens:")
        store.log_available_tokens()
        return 0

    settings = load_settings(dotenv_path=workdir / ".env")

    if args.command == "verify":
        status = await run_verify(settings, store, args.symbol)
        return 0 if status.ok else 1

    tx_builder = connect_wallet(settings)

    if args.command == "deploy":
        deployment = TokenDeployment(settings, tx_builder, store)
        await deployment.run(
            assume_yes=args.yes,
            name=args.name,
            symbol=args.symbol,
            website=args.website,
            telegram=args.telegram,
            twitter=args.twitter
        )
        return 0

    if args.command == "post-deploy":
        await run_post_deploy(args.symbol, settings, store, tx_builder)
        return 0

    LOG.error(f"Unknown command: {args.command}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution flow"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    label = COMMAND_LABELS.get(args.command, args.command)
    try:
        return asyncio.run(run_command(args))
    except TokenDeployerError as e:
        LOG.error(f"{label} failed: {e.message}")
        LOG.debug(f"   code: {e.code}")
        for key, value in e.details.items():
            LOG.debug(f"   {key}: {value}")
        return 1
    except ValueError as e:
        LOG.error(f"{label} failed: {e}")
        return 1
    except Exception as e:
        LOG.error(f"{label} failed: {e}", exc_info=True)
        return 1
    except KeyboardInterrupt:
        LOG.warning("Interrupted")
        return 130


def deploy_main():
    sys.exit(main(["deploy", *sys.argv[1:]]))


def post_deploy_main():
    sys.exit(main(["post-deploy", *sys.argv[1:]]))


def verify_main():
    sys.exit(main(["verify", *sys.argv[1:]]))


if __name__ == "__main__":
    sys.exit(main())
