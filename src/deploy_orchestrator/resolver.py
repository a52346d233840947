# resolver.py
# Reference resolution for action arguments and library maps.
#
# Two symbolic forms are recognised anywhere in an argument tree:
#   "<ContractName>.address"  → that contract's deployed address
#   "SIGNER[<n>]"             → address of the n-th configured signer
#
# Resolution never substitutes a placeholder. An unknown contract or a bad
# signer index raises, and the engine records the action as failed.

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from deploy_orchestrator.errors import InvalidSignerIndexError, UnresolvedReferenceError
from deploy_orchestrator.models import ActionKind, DeploymentRecord, StrictAction

ADDRESS_MARKER = "."
ADDRESS_SUFFIX = f"{ADDRESS_MARKER}address"
SIGNER_PREFIX = "SIGNER["
SIGNER_SUFFIX = "]"

SignerProvider = Callable[[], Sequence[str]]


def is_address_reference(value: Any) -> bool:
    return isinstance(value, str) and value.endswith(ADDRESS_SUFFIX)


def is_signer_reference(value: Any) -> bool:
    return (
        isinstance(value, str)
        and value.startswith(SIGNER_PREFIX)
        and value.endswith(SIGNER_SUFFIX)
    )


def referenced_contract(reference: str) -> str:
    """'Token.address' → 'Token'. Splits at the first marker."""
    return reference.split(ADDRESS_MARKER, 1)[0]


class _Signers:
    """Reads the provider at most once per resolution."""

    def __init__(self, provider: SignerProvider) -> None:
        self._provider = provider
        self._addresses: list[str] | None = None

    def get(self, reference: str) -> str:
        raw_index = reference[len(SIGNER_PREFIX):-len(SIGNER_SUFFIX)].strip()
        if not raw_index.isdecimal():
            raise InvalidSignerIndexError(reference)
        if self._addresses is None:
            self._addresses = list(self._provider())
        index = int(raw_index)
        if index >= len(self._addresses):
            raise InvalidSignerIndexError(reference, len(self._addresses))
        return self._addresses[index]


def _resolve_address(reference: str, metadata: Mapping[str, DeploymentRecord]) -> str:
    contract_name = referenced_contract(reference)
    record = metadata.get(contract_name)
    if record is None:
        raise UnresolvedReferenceError(reference, contract_name)
    return record.address


def _resolve_value(value: Any, metadata: Mapping[str, DeploymentRecord], signers: _Signers) -> Any:
    if isinstance(value, (list, tuple)):
        return [_resolve_value(item, metadata, signers) for item in value]
    if is_address_reference(value):
        return _resolve_address(value, metadata)
    if is_signer_reference(value):
        return signers.get(value)
    return value


def resolve_args(
    args: Sequence[Any],
    metadata: Mapping[str, DeploymentRecord],
    signer_provider: SignerProvider,
) -> list[Any]:
    """
    Return a copy of `args` with every symbolic reference replaced.

    Nested sequences are resolved recursively; anything else passes through.
    The signer provider is only called if a SIGNER reference is present.
    """
    signers = _Signers(signer_provider)
    return [_resolve_value(item, metadata, signers) for item in args]


def resolve_libraries(
    libraries: Mapping[str, str],
    metadata: Mapping[str, DeploymentRecord],
) -> dict[str, str]:
    """Replace '<Contract>.address' values in a library map, field by field."""
    return {
        name: _resolve_address(address, metadata) if is_address_reference(address) else address
        for name, address in libraries.items()
    }


def resolve_action(
    action: StrictAction,
    metadata: Mapping[str, DeploymentRecord],
    signer_provider: SignerProvider,
) -> StrictAction:
    """Resolve an action's args (and libraries, where it has them) into a new copy."""
    update: dict[str, Any] = {"args": resolve_args(action.args, metadata, signer_provider)}
    match action.kind:
        case ActionKind.DEPLOY | ActionKind.VERIFY:
            update["libraries"] = resolve_libraries(action.libraries, metadata)
        case ActionKind.INITIALIZE:
            pass
    return action.model_copy(update=update)
