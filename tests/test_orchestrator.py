import io
import json
import sys
import types
import textwrap

import pytest
from rich.console import Console
from unittest.mock import MagicMock

from deploy_orchestrator import cli
from deploy_orchestrator.chain import HardhatArtifacts, SimulatedChain
from deploy_orchestrator.config import Settings, load_scripts_config
from deploy_orchestrator.errors import (
    ConfigError,
    NetworkIdentityError,
    NetworkNotConfiguredError,
    StorageCorruptionError,
)
from deploy_orchestrator.models import ActionKind
from deploy_orchestrator.orchestrator import Orchestrator

from conftest import TOKEN_ABI

CONFIG = textwrap.dedent("""\
    networks:
      localhost:
        deploy:
          - contractName: Token
            args: ["SIGNER[0]", 1000]
          - contractName: Vault
            args: ["Token.address"]
        initialize:
          - contractName: Token
            functionName: setMinter
            args: ["Vault.address"]
        verify: ["ALL"]
      sepolia:
        deploy: []
""")

VAULT_ABI = [{"type": "constructor", "inputs": [{"name": "token", "type": "address"}]}]


@pytest.fixture
def project(tmp_path):
    (tmp_path / "contracts").mkdir()
    (tmp_path / "contracts" / "Token.sol").write_text("")
    (tmp_path / "contracts" / "Vault.sol").write_text("")
    for name, abi in (("Token", TOKEN_ABI), ("Vault", VAULT_ABI)):
        artifact_dir = tmp_path / "artifacts" / "contracts" / f"{name}.sol"
        artifact_dir.mkdir(parents=True)
        (artifact_dir / f"{name}.json").write_text(json.dumps({"abi": abi}))
    (tmp_path / "deploy.yaml").write_text(CONFIG)
    return tmp_path


@pytest.fixture
def settings(project):
    return Settings(project_root=project)


@pytest.fixture
def simulated(project):
    return SimulatedChain(artifacts=HardhatArtifacts(project / "artifacts"))

# ---------------------------------------------------------------------------
# Config loading
# ---------------------------------------------------------------------------

def test_load_scripts_config(project):
    config = load_scripts_config(project / "deploy.yaml")
    assert [d.contract_name for d in config.networks["localhost"].deploy] == ["Token", "Vault"]
    assert config.networks["localhost"].verify == ["ALL"]
    assert config.networks["sepolia"].initialize == []

def test_load_scripts_config_invalid(tmp_path):
    path = tmp_path / "deploy.yaml"
    path.write_text("networks:\n  localhost:\n    initialize:\n      - contractName: Token\n")
    with pytest.raises(ConfigError, match="invalid"):
        load_scripts_config(path)

def test_load_scripts_config_rejects_path_like_contract_name(tmp_path):
    path = tmp_path / "deploy.yaml"
    path.write_text("networks:\n  localhost:\n    deploy:\n      - contractName: ../../Token\n")
    with pytest.raises(ConfigError, match="invalid"):
        load_scripts_config(path)

def test_load_scripts_config_missing(tmp_path):
    with pytest.raises(ConfigError):
        load_scripts_config(tmp_path / "nope.yaml")

# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------

def test_deploy_initialize_verify(settings, simulated):
    orchestrator = Orchestrator(simulated, settings)

    results = orchestrator.run_all(print_table=False)

    assert all(o.succeeded for outcomes in results.values() for o in outcomes)
    deployed = results[ActionKind.DEPLOY]
    token, vault = (o.artifact.address for o in deployed)
    assert deployed[1].action.args == [token]
    assert results[ActionKind.INITIALIZE][0].action.args == [vault]
    assert [o.contract_name for o in results[ActionKind.VERIFY]] == ["Token", "Vault"]

def test_records_survive_across_runs(settings, simulated, project):
    Orchestrator(simulated, settings).deploy()

    # A fresh orchestrator reads what the previous run persisted.
    outcomes = Orchestrator(simulated, settings).initialize()
    assert outcomes[0].succeeded
    assert (project / "deployments" / "localhost" / "Vault.json").exists()

def test_printed_run_renders_tables(settings, simulated):
    out = Console(file=io.StringIO(), width=160, color_system=None, record=True)
    outcomes = Orchestrator(simulated, settings, out=out).deploy(print_table=True)

    text = out.export_text()
    assert all(o.succeeded for o in outcomes)
    assert "DEPLOYMENT PREVIEW" in text
    assert "Deployment results" in text
    assert "Deployment complete." in text

def test_headless_run_prints_nothing(settings, simulated, capsys):
    Orchestrator(simulated, settings).deploy(print_table=False)
    assert capsys.readouterr().out == ""

def test_address_overrides_applied(project, simulated):
    Orchestrator(simulated, Settings(project_root=project)).deploy()
    override = "0x" + "9" * 40
    (project / "addresses.yaml").write_text(f"localhost:\n  Token: '{override}'\n")

    store = Orchestrator(
        simulated, Settings(project_root=project, address_overrides_file="addresses.yaml")
    ).open_store("localhost")
    assert store.get("Token").address == override

# ---------------------------------------------------------------------------
# Setup errors
# ---------------------------------------------------------------------------

def test_storage_corruption_aborts_before_execution(settings, project):
    corrupt_dir = project / "deployments" / "localhost"
    corrupt_dir.mkdir(parents=True)
    (corrupt_dir / "Token.json").write_text("{oops")
    chain = MagicMock(wraps=SimulatedChain())

    with pytest.raises(StorageCorruptionError):
        Orchestrator(chain, settings).deploy()
    chain.deploy.assert_not_called()

def test_unconfigured_network(settings):
    with pytest.raises(NetworkNotConfiguredError, match="mainnet"):
        Orchestrator(SimulatedChain(network_name="mainnet"), settings).deploy()

def test_network_identity_failure(settings):
    chain = MagicMock()
    chain.get_network_identity.side_effect = ConnectionError("rpc down")
    with pytest.raises(NetworkIdentityError, match="rpc down"):
        Orchestrator(chain, settings).deploy()

# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def test_cli_all_succeeds(project, monkeypatch):
    monkeypatch.setenv("DEPLOY_PROJECT_ROOT", str(project))
    assert cli.main(["all"]) == 0

def test_cli_reports_failed_actions(project, monkeypatch):
    monkeypatch.setenv("DEPLOY_PROJECT_ROOT", str(project))
    # Nothing deployed yet, so initialize has nothing to call.
    assert cli.main(["initialize"]) == 2

def test_cli_setup_error(project, monkeypatch):
    monkeypatch.setenv("DEPLOY_PROJECT_ROOT", str(project))
    assert cli.main(["deploy", "--config", "missing.yaml"]) == 1

def test_cli_bad_chain_factory(project, monkeypatch):
    monkeypatch.setenv("DEPLOY_PROJECT_ROOT", str(project))
    assert cli.main(["deploy", "--chain", "no_such_module:factory"]) == 1

def test_cli_custom_chain_factory(project, monkeypatch):
    monkeypatch.setenv("DEPLOY_PROJECT_ROOT", str(project))
    factory = MagicMock(return_value=SimulatedChain(artifacts=HardhatArtifacts(project / "artifacts")))
    module = types.ModuleType("mychain")
    module.make = factory
    monkeypatch.setitem(sys.modules, "mychain", module)

    assert cli.main(["deploy", "--chain", "mychain:make"]) == 0
    assert isinstance(factory.call_args.args[0], Settings)

def test_cli_phases_in_separate_invocations(project, monkeypatch):
    monkeypatch.setenv("DEPLOY_PROJECT_ROOT", str(project))
    assert cli.main(["deploy"]) == 0
    assert cli.main(["initialize"]) == 0
    assert cli.main(["verify"]) == 0
