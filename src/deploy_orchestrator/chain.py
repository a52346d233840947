# chain.py
# Chain client boundary.
#
# The engine only ever talks to a ChainInterface. Compilation, signing and
# transport live behind it. Two implementations ship here:
#   HardhatArtifacts: compiled-interface lookup from artifact JSON files
#   SimulatedChain:   deterministic in-memory chain for dry runs and tests
#
# SimulatedChain is stdlib only apart from the package's own models.

import hashlib
import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from deploy_orchestrator.errors import ArtifactNotFoundError, ExecutionError
from deploy_orchestrator.models import CallReceipt, DeploymentRecord, DeployReceipt, NetworkIdentity

logger = logging.getLogger(__name__)

HARDHAT = "hardhat"
LOCALHOST = "localhost"


def network_display_name(identity: NetworkIdentity) -> str:
    """The in-process hardhat network shares the localhost action config."""
    return LOCALHOST if identity.name == HARDHAT else identity.name


# ---------------------------------------------------------------------------
# Compiled interfaces
# ---------------------------------------------------------------------------


class CompiledInterface:
    """Read-only view over a contract ABI."""

    def __init__(self, abi: list[dict[str, Any]]) -> None:
        self._abi = list(abi)

    @property
    def abi(self) -> list[dict[str, Any]]:
        return list(self._abi)

    def constructor(self) -> dict[str, Any] | None:
        return next((item for item in self._abi if item.get("type") == "constructor"), None)

    def function(self, name: str) -> dict[str, Any] | None:
        return next(
            (
                item for item in self._abi
                if item.get("type") == "function" and item.get("name") == name
            ),
            None,
        )

    def functions(self) -> list[dict[str, Any]]:
        return [item for item in self._abi if item.get("type") == "function"]


def arg_names_and_types(entry: dict[str, Any] | None) -> tuple[list[str], list[str]]:
    """Input names and types of an ABI entry; empty lists when there is no entry."""
    if not entry:
        return [], []
    inputs = entry.get("inputs") or []
    return [i.get("name", "") for i in inputs], [i.get("type", "") for i in inputs]


class HardhatArtifacts:
    """
    Looks up compiled interfaces in a Hardhat artifacts directory.

    Artifacts live at artifacts/<source path>/<Name>.sol/<Name>.json.
    Debug files (*.dbg.json) and build-info are ignored.
    """

    def __init__(self, artifacts_dir: str | Path) -> None:
        self._root = Path(artifacts_dir)
        self._cache: dict[str, CompiledInterface] = {}

    def _find(self, contract_name: str) -> list[Path]:
        if not self._root.is_dir():
            return []
        return sorted(
            path for path in self._root.rglob(f"{contract_name}.json")
            if "build-info" not in path.parts
        )

    def get_compiled_interface(self, contract_name: str) -> CompiledInterface:
        if contract_name in self._cache:
            return self._cache[contract_name]

        matches = self._find(contract_name)
        if not matches:
            raise ArtifactNotFoundError(contract_name)
        if len(matches) > 1:
            logger.debug("Multiple artifacts for %s, using %s", contract_name, matches[0])

        try:
            data = json.loads(matches[0].read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ArtifactNotFoundError(contract_name) from exc
        if not isinstance(data, dict):
            raise ArtifactNotFoundError(contract_name)

        interface = CompiledInterface(data.get("abi") or [])
        self._cache[contract_name] = interface
        return interface


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ChainInterface(Protocol):
    """Everything the orchestrator needs from a chain client."""

    def get_network_identity(self) -> NetworkIdentity: ...

    def get_compiled_interface(self, contract_name: str) -> CompiledInterface: ...

    def deploy(
        self,
        qualified_name: str,
        constructor_args: Sequence[Any],
        library_addresses: dict[str, str],
    ) -> DeployReceipt: ...

    def call_function(
        self,
        address: str,
        interface_definition: list[dict[str, Any]],
        function_name: str,
        args: Sequence[Any],
    ) -> CallReceipt: ...

    def verify_source(
        self,
        qualified_name: str,
        address: str,
        constructor_args: Sequence[Any],
        library_addresses: dict[str, str],
    ) -> None: ...

    def list_signer_addresses(self) -> list[str]: ...


# ---------------------------------------------------------------------------
# Simulated chain
# ---------------------------------------------------------------------------


def _sha256(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _serialize(value: Any) -> str:
    """Deterministic serialization. sort_keys is non-negotiable."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


class SimulatedChain:
    """
    In-memory chain with deterministic addresses.

    Addresses and transaction hashes are SHA-256 digests of the network name,
    a nonce and the call payload, so two runs with the same inputs agree.
    Compiled interfaces come from `artifacts` when given; otherwise every
    contract has an empty ABI and function calls are not checked.

    Example:
        chain = SimulatedChain(artifacts=HardhatArtifacts("./artifacts"))
        receipt = chain.deploy("contracts/Token.sol:Token", ["SIGNER[0]"], {})
    """

    def __init__(
        self,
        network_name: str = HARDHAT,
        artifacts: HardhatArtifacts | None = None,
        signer_count: int = 10,
        chain_id: int = 31337,
    ) -> None:
        self._identity = NetworkIdentity(name=network_name, chain_id=chain_id)
        self._artifacts = artifacts
        self._signers = [
            "0x" + _sha256(f"{network_name}:signer:{i}")[:40] for i in range(signer_count)
        ]
        self._nonce = 0
        self._deployed: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Identity and accounts
    # ------------------------------------------------------------------

    def get_network_identity(self) -> NetworkIdentity:
        return self._identity

    def list_signer_addresses(self) -> list[str]:
        return list(self._signers)

    def get_compiled_interface(self, contract_name: str) -> CompiledInterface:
        if self._artifacts is None:
            return CompiledInterface([])
        return self._artifacts.get_compiled_interface(contract_name)

    @property
    def deployed(self) -> dict[str, str]:
        """address → qualified name for every contract deployed on this instance."""
        return dict(self._deployed)

    def adopt(self, records: Iterable[DeploymentRecord]) -> None:
        """Treat persisted deployments as code on this chain, so later phases can run in a new process."""
        for record in records:
            self._deployed[record.address.lower()] = f"{record.source_path}:{record.contract_name}"

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _next_hash(self, payload: Any) -> str:
        self._nonce += 1
        return "0x" + _sha256(_serialize([self._identity.name, self._nonce, payload]))

    def deploy(
        self,
        qualified_name: str,
        constructor_args: Sequence[Any],
        library_addresses: dict[str, str],
    ) -> DeployReceipt:
        contract_name = qualified_name.rsplit(":", 1)[-1]
        interface = self.get_compiled_interface(contract_name)

        constructor = interface.constructor()
        expected, _ = arg_names_and_types(constructor)
        if interface.abi and len(expected) != len(constructor_args):
            raise ExecutionError(
                f"{contract_name} constructor expects {len(expected)} argument(s), "
                f"got {len(constructor_args)}"
            )

        tx_hash = self._next_hash(["deploy", qualified_name, list(constructor_args), library_addresses])
        address = "0x" + _sha256(tx_hash)[:40]
        self._deployed[address.lower()] = qualified_name
        return DeployReceipt(address=address, transaction_hash=tx_hash)

    def call_function(
        self,
        address: str,
        interface_definition: list[dict[str, Any]],
        function_name: str,
        args: Sequence[Any],
    ) -> CallReceipt:
        if address.lower() not in self._deployed:
            raise ExecutionError(f"No contract code at {address}")

        interface = CompiledInterface(interface_definition)
        if interface_definition:
            entry = interface.function(function_name)
            if entry is None:
                raise ExecutionError(f"Function {function_name} not found on contract at {address}")
            expected, _ = arg_names_and_types(entry)
            if len(expected) != len(args):
                raise ExecutionError(
                    f"{function_name} expects {len(expected)} argument(s), got {len(args)}"
                )

        tx_hash = self._next_hash(["call", address, function_name, list(args)])
        return CallReceipt(transaction_hash=tx_hash, confirmed=True)

    def verify_source(
        self,
        qualified_name: str,
        address: str,
        constructor_args: Sequence[Any],
        library_addresses: dict[str, str],
    ) -> None:
        deployed_as = self._deployed.get(address.lower())
        if deployed_as is None:
            raise ExecutionError(f"No contract code at {address}")
        if deployed_as != qualified_name:
            raise ExecutionError(
                f"Bytecode at {address} does not match {qualified_name} (deployed as {deployed_as})"
            )
