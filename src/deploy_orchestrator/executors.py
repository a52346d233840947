# executors.py
# Chain-backed executors, one per ActionKind.
# The engine calls ChainExecutor and never touches the chain directly.

import logging

from deploy_orchestrator.chain import ChainInterface
from deploy_orchestrator.engine import ActionLog
from deploy_orchestrator.errors import ContractNotDeployedError, ExecutionError
from deploy_orchestrator.models import (
    ActionKind,
    Artifact,
    CallReceipt,
    DeployAction,
    DeployReceipt,
    InitializeAction,
    StrictAction,
    VerifyAction,
    VerifyReceipt,
)
from deploy_orchestrator.store import MetadataStore

logger = logging.getLogger(__name__)


class ChainExecutor:
    """Dispatches a resolved strict action to the matching chain operation."""

    def __init__(self, chain: ChainInterface, store: MetadataStore) -> None:
        self._chain = chain
        self._store = store

    def __call__(self, action: StrictAction, log: ActionLog) -> Artifact:
        match action.kind:
            case ActionKind.DEPLOY:
                return self.deploy(action, log)
            case ActionKind.INITIALIZE:
                return self.initialize(action, log)
            case ActionKind.VERIFY:
                return self.verify(action, log)
        raise ExecutionError(f"Unsupported action kind: {action.kind!r}")

    def deploy(self, action: DeployAction, log: ActionLog) -> DeployReceipt:
        receipt = self._chain.deploy(action.qualified_name, action.args, action.libraries)

        # Some clients do not return the ABI; the record still needs one.
        if not receipt.interface_definition:
            try:
                abi = self._chain.get_compiled_interface(action.contract_name).abi
            except Exception as exc:
                logger.debug("No ABI for %s: %s", action.contract_name, exc)
                abi = []
            receipt = receipt.model_copy(update={"interface_definition": abi})

        log.record(f"Deployed {action.contract_name} at {receipt.address}")
        return receipt

    def initialize(self, action: InitializeAction, log: ActionLog) -> CallReceipt:
        record = self._store.get(action.contract_name)
        if record is None:
            raise ContractNotDeployedError(action.contract_name)

        receipt = self._chain.call_function(
            action.address, record.interface_definition, action.function_name, action.args
        )
        if not receipt.confirmed:
            raise ExecutionError(
                f"{action.contract_name}.{action.function_name}: transaction receipt is null"
            )
        log.record(f"Called {action.contract_name}.{action.function_name}")
        return receipt

    def verify(self, action: VerifyAction, log: ActionLog) -> VerifyReceipt:
        if action.contract_name not in self._store:
            raise ContractNotDeployedError(action.contract_name)

        self._chain.verify_source(action.qualified_name, action.address, action.args, action.libraries)
        message = f"Verified {action.qualified_name} at {action.address}"
        log.record(message)
        return VerifyReceipt(message=message)
