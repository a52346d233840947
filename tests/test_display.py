import io

from rich.console import Console

from deploy_orchestrator import display
from deploy_orchestrator.models import (
    ActionKind,
    ActionOutcome,
    ActionStatus,
    DeployAction,
    DeployReceipt,
    InitializeAction,
    NormalizationFailure,
)


def recording_console():
    return Console(file=io.StringIO(), width=160, color_system=None, record=True)


DEPLOYED = ActionOutcome(
    index=0,
    kind=ActionKind.DEPLOY,
    contract_name="Token",
    status=ActionStatus.SUCCEEDED,
    action=DeployAction(
        contract_name="Token", file_path="contracts/Token.sol",
        qualified_name="contracts/Token.sol:Token", args=["0xB", 5], libraries={},
        arg_names=["owner", "supply"], arg_types=["address", "uint256"],
    ),
    artifact=DeployReceipt(address="0x" + "a" * 40, transaction_hash="0x" + "f" * 64),
)

FAILED = ActionOutcome(
    index=1,
    kind=ActionKind.DEPLOY,
    contract_name="Vault",
    status=ActionStatus.FAILED,
    error="UnresolvedReferenceError: Cannot resolve 'SIGNER[abc]'",
    logs=["client said hi"],
)

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def test_spread_rows_pads_short_columns():
    rows = display.spread_rows([["Token"], ["a: 1", "b: 2"], ["Lib: 0x1"]])
    assert rows == [["Token", "a: 1", "Lib: 0x1"], ["", "b: 2", ""]]

def test_spread_rows_empty():
    assert display.spread_rows([]) == []

def test_format_args_with_names_and_types():
    lines = display.format_args(["0xB", 5], ["owner", "supply"], ["address", "uint256"])
    assert lines == ["  owner[grey50](address)[/grey50]: 0xB", "  supply[grey50](uint256)[/grey50]: 5"]

def test_format_args_without_metadata():
    assert display.format_args([1, 2]) == ["  : 1", "  : 2"]
    assert display.format_args([]) == [""]

def test_format_libraries():
    assert display.format_libraries({"MathLib": "0x1"}) == ["  MathLib: 0x1"]
    assert display.format_libraries({}) == [""]

def test_result_rows_deploy_success():
    [row] = display.result_rows(DEPLOYED)
    assert "Token" in row[0]
    assert "0x" + "a" * 40 in row[1]
    assert "0x" + "f" * 64 in row[2]

def test_preview_rows_initialize():
    action = InitializeAction(
        contract_name="Token", function_name="setMinter", address="0x1",
        args=["0xB"], arg_names=["minter"], arg_types=["address"],
    )
    [row] = display.preview_rows(action)
    assert "(0x1)" in row[0]
    assert row[1] == "  setMinter"
    assert "minter" in row[2]

# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def test_table_report_streams_rows():
    out = recording_console()
    report = display.report_for(ActionKind.DEPLOY, out=out)
    report.write(DEPLOYED, 0)
    report.write(FAILED, 1)
    report.close()
    report.close()

    text = out.export_text()
    assert "Deployment results" in text
    assert "Address" in text
    assert "Token" in text
    assert "SIGNER[abc]" in text
    assert "client said hi" in text

def test_preview_includes_failures():
    out = recording_console()
    failure = NormalizationFailure(kind=ActionKind.DEPLOY, contract_name="Ghost", error="ContractSourceNotFoundError: no source")
    display.preview([DEPLOYED.action, failure], ActionKind.DEPLOY, out=out)

    text = out.export_text()
    assert "DEPLOYMENT PREVIEW" in text
    assert "Ghost" in text
    assert "owner" in text

def test_completion_messages():
    out = recording_console()
    display.completion(ActionKind.VERIFY, [DEPLOYED], out=out)
    display.completion(ActionKind.DEPLOY, [DEPLOYED, FAILED], out=out)

    text = out.export_text()
    assert "Verification complete." in text
    assert "1 failed action(s) out of 2" in text
