# cli.py
# Entry point. Config and wiring only; no logic lives here.
#
# Exit status: 0 all actions succeeded, 2 some action failed,
# 1 setup error (nothing executed, no partial report).

import argparse
import importlib
import logging
from collections.abc import Sequence

from dotenv import load_dotenv
from rich.logging import RichHandler

from deploy_orchestrator import display
from deploy_orchestrator.chain import ChainInterface, HardhatArtifacts, SimulatedChain, network_display_name
from deploy_orchestrator.config import Settings
from deploy_orchestrator.errors import ConfigError, SetupError
from deploy_orchestrator.models import ActionKind
from deploy_orchestrator.orchestrator import PHASES, Orchestrator
from deploy_orchestrator.store import MetadataStore

logger = logging.getLogger(__name__)

COMMANDS = {
    "deploy": (ActionKind.DEPLOY,),
    "initialize": (ActionKind.INITIALIZE,),
    "verify": (ActionKind.VERIFY,),
    "all": PHASES,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deploy-orchestrator",
        description="Deploy, initialize and verify contracts from a declarative action config",
    )
    parser.add_argument("command", choices=sorted(COMMANDS), help="Phase to run")
    parser.add_argument("--config", help="Action config YAML (default: DEPLOY_CONFIG_FILE or deploy.yaml)")
    parser.add_argument("--print", dest="print_table", action="store_true", help="Render preview and result tables")
    parser.add_argument(
        "--chain",
        help="Chain client factory as 'module:callable'; it receives Settings. "
        "Defaults to the in-memory simulated chain, seeded from the persisted deployments.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=display.console, show_path=False)],
    )


def load_chain(target: str | None, settings: Settings) -> ChainInterface:
    if not target:
        chain = SimulatedChain(
            artifacts=HardhatArtifacts(settings.path(settings.artifacts_dir)),
            signer_count=settings.signer_count,
        )
        # The simulated chain forgets everything between processes; seed it
        # from the records earlier invocations persisted.
        network_name = network_display_name(chain.get_network_identity())
        store = MetadataStore(settings.path(settings.deployments_dir), network_name).load()
        chain.adopt(store.records().values())
        return chain

    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"--chain must look like 'module:callable', got {target!r}")
    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as exc:
        raise ConfigError(f"Cannot load chain factory {target!r}: {exc}") from exc
    return factory(settings)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    settings = Settings()
    if args.config:
        settings = settings.model_copy(update={"config_file": args.config})
    print_table = args.print_table or settings.print_table

    try:
        chain = load_chain(args.chain, settings)
        orchestrator = Orchestrator(chain, settings)
        outcomes = []
        for kind in COMMANDS[args.command]:
            outcomes.extend(orchestrator.run(kind, print_table))
    except SetupError as exc:
        display.halt(str(exc))
        return 1

    return 0 if all(outcome.succeeded for outcome in outcomes) else 2


if __name__ == "__main__":
    raise SystemExit(main())
