# models.py
# Data contracts for deployment runs.
# No business logic lives here. Pure schema and validation.
#
# Field names are snake_case in Python and camelCase on disk (YAML action
# config, persisted deployment records).

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ALL_CONTRACTS = "ALL"

# Solidity identifier. Contract names become file names under the deployments
# directory, so path separators and dots never get through.
CONTRACT_NAME_PATTERN = r"^[A-Za-z_$][A-Za-z0-9_$]*$"


class ActionKind(str, Enum):
    DEPLOY = "deploy"
    INITIALIZE = "initialize"
    VERIFY = "verify"


class ActionStatus(str, Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Raw action config (user input)
# ---------------------------------------------------------------------------


class DeployConfig(CamelModel):
    """A deploy entry as written in the action config."""

    contract_name: str = Field(..., pattern=CONTRACT_NAME_PATTERN)
    file_path: str | None = None
    qualified_name: str | None = None
    args: list[Any] | None = None
    libraries: dict[str, str] | None = None


class InitializeConfig(CamelModel):
    """An initialize entry as written in the action config."""

    contract_name: str = Field(..., pattern=CONTRACT_NAME_PATTERN)
    function_name: str = Field(..., min_length=1)
    args: list[Any] | None = None


class NetworkConfig(CamelModel):
    """Ordered action lists for one network."""

    deploy: list[DeployConfig] = Field(default_factory=list)
    initialize: list[InitializeConfig] = Field(default_factory=list)
    verify: list[str] = Field(
        default_factory=list,
        description=f"Contract names, or the single sentinel '{ALL_CONTRACTS}'.",
    )


class ScriptsConfig(CamelModel):
    networks: dict[str, NetworkConfig] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Strict actions (normalized)
# ---------------------------------------------------------------------------


class DeployAction(CamelModel):
    kind: Literal[ActionKind.DEPLOY] = ActionKind.DEPLOY
    contract_name: str
    file_path: str
    qualified_name: str
    args: list[Any]
    libraries: dict[str, str]
    arg_names: list[str] = Field(default_factory=list)
    arg_types: list[str] = Field(default_factory=list)


class InitializeAction(CamelModel):
    kind: Literal[ActionKind.INITIALIZE] = ActionKind.INITIALIZE
    contract_name: str
    function_name: str
    address: str
    args: list[Any]
    arg_names: list[str] = Field(default_factory=list)
    arg_types: list[str] = Field(default_factory=list)


class VerifyAction(CamelModel):
    kind: Literal[ActionKind.VERIFY] = ActionKind.VERIFY
    contract_name: str
    file_path: str
    qualified_name: str
    address: str
    args: list[Any]
    libraries: dict[str, str]
    arg_names: list[str] = Field(default_factory=list)
    arg_types: list[str] = Field(default_factory=list)


StrictAction = Annotated[
    Union[DeployAction, InitializeAction, VerifyAction],
    Field(discriminator="kind"),
]


class NormalizationFailure(CamelModel):
    """A raw entry that could not be converted to a strict action."""

    kind: ActionKind
    contract_name: str
    error: str


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class DeploymentRecord(CamelModel):
    """Durable record of one deployed contract. Never mutated once written."""

    contract_name: str = Field(..., pattern=CONTRACT_NAME_PATTERN)
    source_path: str
    constructor_args: list[Any] = Field(default_factory=list)
    libraries: dict[str, str] = Field(default_factory=dict)
    interface_definition: list[dict[str, Any]] = Field(default_factory=list)
    created_at: str = Field(..., description="UTC ISO-8601 timestamp.")
    network_name: str
    transaction_hash: str = ""
    address: str


# ---------------------------------------------------------------------------
# Chain artifacts
# ---------------------------------------------------------------------------


class NetworkIdentity(CamelModel):
    name: str
    chain_id: int | None = None


class DeployReceipt(CamelModel):
    address: str
    transaction_hash: str = ""
    interface_definition: list[dict[str, Any]] = Field(default_factory=list)


class CallReceipt(CamelModel):
    transaction_hash: str = ""
    confirmed: bool = False


class VerifyReceipt(CamelModel):
    message: str = ""


Artifact = Union[DeployReceipt, CallReceipt, VerifyReceipt]


class ActionOutcome(CamelModel):
    """Result of one action, produced once by the execution engine."""

    index: int
    kind: ActionKind
    contract_name: str
    status: ActionStatus
    action: StrictAction | None = Field(
        default=None, description="The action with references resolved, when resolution got that far."
    )
    artifact: Artifact | None = None
    error: str | None = None
    logs: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is ActionStatus.SUCCEEDED
