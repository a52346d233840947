# errors.py
# Error taxonomy for deployment runs.
#
# SetupError subclasses abort a run before any action executes.
# ActionError subclasses are fatal for one action only. The engine catches
# them at the action boundary and records a failed outcome.


class OrchestratorError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Setup-scoped
# ---------------------------------------------------------------------------


class SetupError(OrchestratorError):
    """Fatal for the whole run."""


class StorageCorruptionError(SetupError):
    """Raised when a persisted deployment record cannot be read or parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Deployment record {path} is unreadable: {reason}")


class ConfigError(SetupError):
    """Raised when the action config file is missing or malformed."""


class NetworkNotConfiguredError(SetupError):
    """Raised when the action config has no entry for the active network."""

    def __init__(self, network_name: str, available: list[str]) -> None:
        self.network_name = network_name
        self.available = available
        super().__init__(
            f"Network '{network_name}' is not configured. "
            f"Configured networks: {', '.join(available) or 'none'}"
        )


class NetworkIdentityError(SetupError):
    """Raised when the chain client cannot report which network it is on."""


# ---------------------------------------------------------------------------
# Action-scoped
# ---------------------------------------------------------------------------


class ActionError(OrchestratorError):
    """Fatal for a single action."""


class ContractSourceNotFoundError(ActionError):
    """Raised when no unique source file exists for a contract name."""

    def __init__(self, contract_name: str, matches: list[str] | None = None) -> None:
        self.contract_name = contract_name
        self.matches = matches or []
        if self.matches:
            detail = f"ambiguous source files: {', '.join(self.matches)}"
        else:
            detail = "no source file found"
        super().__init__(f"Contract {contract_name}: {detail}")


class ContractNotDeployedError(ActionError):
    """Raised when an action targets a contract absent from the metadata store."""

    def __init__(self, contract_name: str) -> None:
        self.contract_name = contract_name
        super().__init__(f"Contract {contract_name} has no deployment record")


class UnresolvedReferenceError(ActionError):
    """Raised when a '<Contract>.address' reference names an undeployed contract."""

    def __init__(self, reference: str, contract_name: str) -> None:
        self.reference = reference
        self.contract_name = contract_name
        super().__init__(
            f"Cannot resolve '{reference}': contract {contract_name} is not deployed"
        )


class InvalidSignerIndexError(ActionError):
    """Raised when a 'SIGNER[n]' reference is non-numeric or out of range."""

    def __init__(self, reference: str, signer_count: int | None = None) -> None:
        self.reference = reference
        self.signer_count = signer_count
        if signer_count is None:
            detail = "index is not a non-negative integer"
        else:
            detail = f"index out of range for {signer_count} signer(s)"
        super().__init__(f"Cannot resolve '{reference}': {detail}")


class ArtifactNotFoundError(ActionError):
    """Raised when no compiled interface exists for a contract name."""

    def __init__(self, contract_name: str) -> None:
        self.contract_name = contract_name
        super().__init__(f"No compiled artifact for contract {contract_name}")


class ExecutionError(ActionError):
    """Raised when the chain call itself fails (revert, network error, timeout)."""
