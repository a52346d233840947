# orchestrator.py
# Run-level wiring for deployment phases.
#
# Control flow per phase:
#   network identity → load metadata store → normalize action config
#   → preview? → sequential execution (+ streaming report?) → completion
#
# Setup errors (network identity, storage, config) propagate to the caller
# before any action executes. Action errors never do; they are outcomes.

import logging

from rich.console import Console

from deploy_orchestrator import display
from deploy_orchestrator.chain import ChainInterface, network_display_name
from deploy_orchestrator.config import Settings, load_scripts_config, network_config
from deploy_orchestrator.engine import ExecutionEngine
from deploy_orchestrator.errors import NetworkIdentityError
from deploy_orchestrator.executors import ChainExecutor
from deploy_orchestrator.models import ActionKind, ActionOutcome, ScriptsConfig
from deploy_orchestrator.normalizer import Normalized, Normalizer
from deploy_orchestrator.store import MetadataStore, load_address_overrides

logger = logging.getLogger(__name__)

PHASES = (ActionKind.DEPLOY, ActionKind.INITIALIZE, ActionKind.VERIFY)


class Orchestrator:
    """
    Runs the deploy, initialize and verify phases for the chain's network.

    Example:
        orchestrator = Orchestrator(SimulatedChain(), Settings())
        outcomes = orchestrator.deploy(print_table=True)
    """

    def __init__(
        self,
        chain: ChainInterface,
        settings: Settings | None = None,
        scripts_config: ScriptsConfig | None = None,
        out: Console | None = None,
    ) -> None:
        self._chain = chain
        self._settings = settings or Settings()
        self._scripts_config = scripts_config
        self._out = out

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @property
    def scripts_config(self) -> ScriptsConfig:
        if self._scripts_config is None:
            self._scripts_config = load_scripts_config(self._settings.path(self._settings.config_file))
        return self._scripts_config

    def network_name(self) -> str:
        try:
            identity = self._chain.get_network_identity()
        except Exception as exc:
            raise NetworkIdentityError(f"Cannot determine network: {exc}") from exc
        return network_display_name(identity)

    def open_store(self, network_name: str) -> MetadataStore:
        """Load the store fresh from disk, applying address overrides if configured."""
        store = MetadataStore(self._settings.path(self._settings.deployments_dir), network_name).load()
        if self._settings.address_overrides_file:
            overrides = load_address_overrides(self._settings.path(self._settings.address_overrides_file))
            changed = store.apply_address_overrides(overrides)
            if changed:
                logger.info("Using overridden addresses for: %s", ", ".join(changed))
        return store

    def prepare(self, kind: ActionKind) -> tuple[MetadataStore, list[Normalized]]:
        network_name = self.network_name()
        config = network_config(self.scripts_config, network_name)
        store = self.open_store(network_name)
        normalizer = Normalizer(
            store,
            self._chain.get_compiled_interface,
            self._settings.project_root,
            self._settings.sources_dir,
        )
        return store, normalizer.normalize(config, kind)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def run(self, kind: ActionKind, print_table: bool | None = None) -> list[ActionOutcome]:
        """
        Execute one phase. Returns one outcome per action, in config order.

        With print_table off the run is headless: identical outcomes, no
        terminal output.
        """
        show = self._settings.print_table if print_table is None else print_table
        store, actions = self.prepare(kind)

        sink = None
        if show:
            display.run_start(kind, store.network_name, len(actions), out=self._out)
            display.preview(actions, kind, out=self._out)
            sink = display.report_for(kind, out=self._out)

        engine = ExecutionEngine(store, self._chain.list_signer_addresses)
        outcomes = engine.run(actions, ChainExecutor(self._chain, store), sink=sink)

        if show:
            display.completion(kind, outcomes, out=self._out)
        failed = [o.contract_name for o in outcomes if not o.succeeded]
        if failed:
            logger.warning("%s: %d action(s) failed: %s", kind.value, len(failed), ", ".join(failed))
        return outcomes

    def deploy(self, print_table: bool | None = None) -> list[ActionOutcome]:
        return self.run(ActionKind.DEPLOY, print_table)

    def initialize(self, print_table: bool | None = None) -> list[ActionOutcome]:
        return self.run(ActionKind.INITIALIZE, print_table)

    def verify(self, print_table: bool | None = None) -> list[ActionOutcome]:
        return self.run(ActionKind.VERIFY, print_table)

    def run_all(self, print_table: bool | None = None) -> dict[ActionKind, list[ActionOutcome]]:
        """Deploy, then initialize, then verify. Each phase reloads the store."""
        return {kind: self.run(kind, print_table) for kind in PHASES}
