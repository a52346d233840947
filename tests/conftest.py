import pytest

from deploy_orchestrator.chain import CompiledInterface
from deploy_orchestrator.errors import ArtifactNotFoundError, ExecutionError
from deploy_orchestrator.models import CallReceipt, DeploymentRecord, DeployReceipt, NetworkIdentity
from deploy_orchestrator.store import MetadataStore

SIGNERS = ["0x" + "b" * 40, "0x" + "c" * 40]

TOKEN_ABI = [
    {
        "type": "constructor",
        "inputs": [{"name": "owner", "type": "address"}, {"name": "supply", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "setMinter",
        "inputs": [{"name": "minter", "type": "address"}],
    },
]


class FakeChain:
    """Records every call; fails on demand for named contracts."""

    def __init__(self, network="localhost", abis=None, fail_on=(), confirm=True):
        self.network = network
        self.abis = abis or {}
        self.fail_on = set(fail_on)
        self.confirm = confirm
        self.calls = []
        self.signer_reads = 0

    def get_network_identity(self):
        return NetworkIdentity(name=self.network)

    def get_compiled_interface(self, contract_name):
        if contract_name not in self.abis:
            raise ArtifactNotFoundError(contract_name)
        return CompiledInterface(self.abis[contract_name])

    def deploy(self, qualified_name, constructor_args, library_addresses):
        self.calls.append(("deploy", qualified_name, list(constructor_args), dict(library_addresses)))
        name = qualified_name.rsplit(":", 1)[-1]
        if name in self.fail_on:
            raise ExecutionError(f"{name} reverted")
        return DeployReceipt(address=f"0x{len(self.calls):040x}", transaction_hash=f"0x{len(self.calls):064x}")

    def call_function(self, address, interface_definition, function_name, args):
        self.calls.append(("call", address, function_name, list(args)))
        return CallReceipt(transaction_hash="0x" + "e" * 64, confirmed=self.confirm)

    def verify_source(self, qualified_name, address, constructor_args, library_addresses):
        self.calls.append(("verify", qualified_name, address))
        name = qualified_name.rsplit(":", 1)[-1]
        if name in self.fail_on:
            raise ExecutionError(f"{name} bytecode mismatch")

    def list_signer_addresses(self):
        self.signer_reads += 1
        return list(SIGNERS)


def make_record(name, address, **overrides):
    fields = dict(
        contract_name=name,
        source_path=f"contracts/{name}.sol",
        constructor_args=[],
        libraries={},
        interface_definition=[],
        created_at="2026-01-01T00:00:00+00:00",
        network_name="localhost",
        transaction_hash="",
        address=address,
    )
    fields.update(overrides)
    return DeploymentRecord(**fields)


@pytest.fixture
def chain():
    return FakeChain(abis={"Token": TOKEN_ABI})


@pytest.fixture
def store(tmp_path):
    return MetadataStore(tmp_path / "deployments", "localhost").load()
