# store.py
# Metadata store: one JSON file per deployed contract.
#
# Layout: <deployments_dir>/<network_name>/<ContractName>.json
#
# The in-memory mapping is the source of truth for the rest of the run.
# It is mutated only by save(), which the engine calls between actions.

import json
import logging
import os
import re
import tempfile
from pathlib import Path

import yaml
from pydantic import ValidationError

from deploy_orchestrator.errors import ConfigError, StorageCorruptionError
from deploy_orchestrator.models import DeploymentRecord

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: object) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


class MetadataStore:
    """
    Persists and indexes DeploymentRecords for a single network.

    Example:
        store = MetadataStore("./deployments", "sepolia").load()
        store.save(record)
        store.get("Token").address
    """

    def __init__(self, deployments_dir: str | Path, network_name: str) -> None:
        self._root = Path(deployments_dir)
        self._network_name = network_name
        self._records: dict[str, DeploymentRecord] = {}

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def network_name(self) -> str:
        return self._network_name

    @property
    def directory(self) -> Path:
        return self._root / self._network_name

    # ------------------------------------------------------------------
    # Load / save
    # ------------------------------------------------------------------

    def load(self) -> "MetadataStore":
        """
        Replace the in-memory mapping with every record on disk.

        A missing directory is an empty store. Any unreadable record raises
        StorageCorruptionError; a partially loaded store is never returned.
        """
        records: dict[str, DeploymentRecord] = {}
        if self.directory.is_dir():
            for path in sorted(self.directory.glob(f"*{RECORD_SUFFIX}")):
                if path.name.startswith("."):
                    continue
                record = self._read(path)
                records[record.contract_name] = record

        self._records = records
        logger.debug(
            "Loaded %d deployment record(s) for %s from %s",
            len(records), self._network_name, self.directory,
        )
        return self

    def _read(self, path: Path) -> DeploymentRecord:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return DeploymentRecord.model_validate(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageCorruptionError(str(path), str(exc)) from exc
        except ValidationError as exc:
            raise StorageCorruptionError(str(path), f"invalid record: {exc}") from exc

    def save(self, record: DeploymentRecord) -> Path:
        """
        Write (or overwrite) the record for record.contract_name.

        The file is written to a temporary sibling and renamed into place,
        so a crash never leaves a half-written <Name>.json behind.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / f"{record.contract_name}{RECORD_SUFFIX}"
        payload = record.model_dump_json(by_alias=True, indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{record.contract_name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self._records[record.contract_name] = record
        logger.debug("Saved deployment record %s", target)
        return target

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, contract_name: str) -> DeploymentRecord | None:
        return self._records.get(contract_name)

    def records(self) -> dict[str, DeploymentRecord]:
        """Snapshot copy of the in-memory mapping, in load/save order."""
        return dict(self._records)

    def names(self) -> list[str]:
        return list(self._records)

    def __contains__(self, contract_name: object) -> bool:
        return contract_name in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # Address overrides
    # ------------------------------------------------------------------

    def apply_address_overrides(self, overrides: dict[str, dict[str, str]]) -> list[str]:
        """
        Swap in externally supplied addresses for this network, in memory only.

        Only contracts that already have a record are touched. Values that
        are not 20-byte hex addresses are skipped with a warning. Returns the
        names whose address changed.
        """
        network_overrides = overrides.get(self._network_name) or {}
        changed: list[str] = []
        for contract_name, address in network_overrides.items():
            record = self._records.get(contract_name)
            if record is None:
                continue
            if not is_address(address):
                logger.warning(
                    "Ignoring address override for %s: %r is not an address",
                    contract_name, address,
                )
                continue
            self._records[contract_name] = record.model_copy(update={"address": address})
            changed.append(contract_name)
        return changed


def load_address_overrides(path: str | Path) -> dict[str, dict[str, str]]:
    """Read a {network: {ContractName: address}} YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read address overrides {path}: {exc}") from exc

    if not isinstance(data, dict) or not all(isinstance(v, dict) for v in data.values()):
        raise ConfigError(f"Address overrides {path} must map network -> contract -> address")
    return {str(net): {str(k): str(v) for k, v in entries.items()} for net, entries in data.items()}
