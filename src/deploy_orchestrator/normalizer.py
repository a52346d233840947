# normalizer.py
# Raw action config → strict actions.
#
# One pipeline per ActionKind. Each raw entry either becomes a strict action
# or a NormalizationFailure at the same position; a bad entry never aborts
# the batch. Symbolic references are left untouched here; the engine
# resolves them per action, just before execution.

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from deploy_orchestrator.chain import CompiledInterface, arg_names_and_types
from deploy_orchestrator.errors import ContractNotDeployedError, ContractSourceNotFoundError
from deploy_orchestrator.models import (
    ALL_CONTRACTS,
    ActionKind,
    DeployAction,
    DeployConfig,
    DeploymentRecord,
    InitializeAction,
    InitializeConfig,
    NetworkConfig,
    NormalizationFailure,
    VerifyAction,
)
from deploy_orchestrator.store import MetadataStore

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".sol"
QUALIFIED_SEPARATOR = ":"

InterfaceLookup = Callable[[str], CompiledInterface]
Normalized = DeployAction | InitializeAction | VerifyAction | NormalizationFailure


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def qualified_name(file_path: str, contract_name: str) -> str:
    return f"{file_path}{QUALIFIED_SEPARATOR}{contract_name}"


def locate_source(contract_name: str, project_root: str | Path, sources_dir: str) -> str:
    """
    Find <sources_dir>/**/<contract_name>.sol under project_root.

    Returns a posix path relative to project_root. Zero or several matches
    raise ContractSourceNotFoundError; set filePath in the config to pick one.
    """
    root = Path(project_root)
    matches = sorted(
        path.relative_to(root).as_posix()
        for path in (root / sources_dir).glob(f"**/{contract_name}{SOURCE_SUFFIX}")
        if path.is_file()
    )
    if len(matches) != 1:
        raise ContractSourceNotFoundError(contract_name, matches)
    return matches[0]


def _display_args(
    interfaces: InterfaceLookup, contract_name: str, pick: Callable[[CompiledInterface], dict | None]
) -> tuple[list[str], list[str]]:
    """ABI-derived arg names/types. Display only; a failed lookup is not an error."""
    try:
        return arg_names_and_types(pick(interfaces(contract_name)))
    except Exception as exc:
        logger.debug("No argument metadata for %s: %s", contract_name, exc)
        return [], []


def _failure(kind: ActionKind, contract_name: str, exc: Exception) -> NormalizationFailure:
    logger.debug("Rejected %s entry %s: %s", kind.value, contract_name, exc)
    return NormalizationFailure(
        kind=kind, contract_name=contract_name, error=f"{type(exc).__name__}: {exc}"
    )


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------


class Normalizer:
    """
    Converts user-supplied action entries into fully populated strict actions.

    Example:
        normalizer = Normalizer(store, chain.get_compiled_interface, ".", "contracts")
        actions = normalizer.normalize(network_config, ActionKind.DEPLOY)
    """

    def __init__(
        self,
        store: MetadataStore,
        interfaces: InterfaceLookup,
        project_root: str | Path = ".",
        sources_dir: str = "contracts",
    ) -> None:
        self._store = store
        self._interfaces = interfaces
        self._project_root = Path(project_root)
        self._sources_dir = sources_dir

    def normalize(self, config: NetworkConfig, kind: ActionKind) -> list[Normalized]:
        match kind:
            case ActionKind.DEPLOY:
                return self.normalize_deploy(config.deploy)
            case ActionKind.INITIALIZE:
                return self.normalize_initialize(config.initialize)
            case ActionKind.VERIFY:
                return self.normalize_verify(config.verify)

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def normalize_deploy(self, entries: Sequence[DeployConfig]) -> list[Normalized]:
        return [self._deploy_entry(entry) for entry in entries]

    def _deploy_entry(self, entry: DeployConfig) -> Normalized:
        name = entry.contract_name
        try:
            file_path = entry.file_path or self._file_path_from(entry)
        except ContractSourceNotFoundError as exc:
            return _failure(ActionKind.DEPLOY, name, exc)

        arg_names, arg_types = _display_args(
            self._interfaces, name, CompiledInterface.constructor
        )
        return DeployAction(
            contract_name=name,
            file_path=file_path,
            qualified_name=entry.qualified_name or qualified_name(file_path, name),
            args=list(entry.args) if entry.args is not None else [],
            libraries=dict(entry.libraries) if entry.libraries is not None else {},
            arg_names=arg_names,
            arg_types=arg_types,
        )

    def _file_path_from(self, entry: DeployConfig) -> str:
        if entry.qualified_name and QUALIFIED_SEPARATOR in entry.qualified_name:
            return entry.qualified_name.rsplit(QUALIFIED_SEPARATOR, 1)[0]
        return locate_source(entry.contract_name, self._project_root, self._sources_dir)

    # ------------------------------------------------------------------
    # Initialize
    # ------------------------------------------------------------------

    def normalize_initialize(self, entries: Sequence[InitializeConfig]) -> list[Normalized]:
        return [self._initialize_entry(entry) for entry in entries]

    def _initialize_entry(self, entry: InitializeConfig) -> Normalized:
        name = entry.contract_name
        record = self._store.get(name)
        if record is None:
            return _failure(ActionKind.INITIALIZE, name, ContractNotDeployedError(name))

        arg_names, arg_types = _display_args(
            self._interfaces, name, lambda interface: interface.function(entry.function_name)
        )
        return InitializeAction(
            contract_name=name,
            function_name=entry.function_name,
            address=record.address,
            args=list(entry.args) if entry.args is not None else [],
            arg_names=arg_names,
            arg_types=arg_types,
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def normalize_verify(self, entries: Sequence[str]) -> list[Normalized]:
        if list(entries) == [ALL_CONTRACTS]:
            return [_verify_action(record) for record in self._store.records().values()]

        normalized: list[Normalized] = []
        for name in entries:
            record = self._store.get(name)
            if record is None:
                normalized.append(_failure(ActionKind.VERIFY, name, ContractNotDeployedError(name)))
            else:
                normalized.append(_verify_action(record))
        return normalized


def _verify_action(record: DeploymentRecord) -> VerifyAction:
    constructor = CompiledInterface(record.interface_definition).constructor()
    arg_names, arg_types = arg_names_and_types(constructor)
    return VerifyAction(
        contract_name=record.contract_name,
        file_path=record.source_path,
        qualified_name=qualified_name(record.source_path, record.contract_name),
        address=record.address,
        args=list(record.constructor_args),
        libraries=dict(record.libraries),
        arg_names=arg_names,
        arg_types=arg_types,
    )
