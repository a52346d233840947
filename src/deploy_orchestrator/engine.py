# engine.py
# Sequential execution engine.
#
# Control flow, per action and strictly in list order:
#   Pending → Resolving → Executing → {Succeeded | Failed}
#
# Action i+1 never starts before action i has an outcome, because later
# actions may reference addresses produced by earlier ones. Action-scoped
# errors are caught here and become failed outcomes; nothing an executor
# raises escapes run().
#
# All terminal output is delegated to the report sink. No formatting here.

import contextlib
import logging
import sys
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime, timezone
from typing import Protocol

from deploy_orchestrator.models import (
    ActionKind,
    ActionOutcome,
    ActionStatus,
    Artifact,
    DeployAction,
    DeploymentRecord,
    DeployReceipt,
    NormalizationFailure,
    StrictAction,
)
from deploy_orchestrator.resolver import SignerProvider, resolve_action
from deploy_orchestrator.store import MetadataStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Per-action log buffer
# ---------------------------------------------------------------------------


class ActionLog:
    """
    Line buffer for everything an action says while it executes.

    Executors write to it directly; it is also file-like so stdout can be
    redirected into it.
    """

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._partial = ""

    def record(self, message: str) -> None:
        self._lines.append(message)

    def write(self, text: str) -> int:
        self._partial += text
        *complete, self._partial = self._partial.split("\n")
        self._lines.extend(line for line in complete if line.strip())
        return len(text)

    def flush(self) -> None:
        if self._partial.strip():
            self._lines.append(self._partial)
        self._partial = ""

    @property
    def lines(self) -> list[str]:
        return list(self._lines)


class _BufferHandler(logging.Handler):
    def __init__(self, log: ActionLog) -> None:
        super().__init__()
        self._log = log
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._log.record(self.format(record))
        except Exception:
            self.handleError(record)


@contextlib.contextmanager
def captured_output(log: ActionLog) -> Iterator[ActionLog]:
    """
    Route root logging handlers and stdout into `log` for the duration.

    Both are restored on exit, including when the body raises, so output
    from the next action can never land in this action's buffer.
    """
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    root.handlers = [_BufferHandler(log)]
    try:
        with contextlib.redirect_stdout(log):
            yield log
    finally:
        root.handlers = saved_handlers
        log.flush()


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------


Executor = Callable[[StrictAction, ActionLog], Artifact]


class ReportSink(Protocol):
    def write(self, outcome: ActionOutcome, index: int) -> None: ...

    def close(self) -> None: ...


def _error_message(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ExecutionEngine:
    """
    Runs strict actions one at a time against an executor.

    Deploy successes are persisted to the metadata store before the next
    action is resolved, so a batch can deploy A and then B("A.address").

    Example:
        engine = ExecutionEngine(store, chain.list_signer_addresses)
        outcomes = engine.run(actions, ChainExecutor(chain, store), sink=None)
    """

    def __init__(
        self,
        store: MetadataStore,
        signer_provider: SignerProvider,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._signer_provider = signer_provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def run(
        self,
        actions: Sequence[StrictAction | NormalizationFailure],
        executor: Executor,
        sink: ReportSink | None = None,
    ) -> list[ActionOutcome]:
        outcomes: list[ActionOutcome] = []
        total = len(actions)

        for index, action in enumerate(actions):
            logger.debug("Action %d/%d %s: %s", index + 1, total, action.contract_name, ActionStatus.PENDING.value)
            if isinstance(action, NormalizationFailure):
                outcome = ActionOutcome(
                    index=index,
                    kind=action.kind,
                    contract_name=action.contract_name,
                    status=ActionStatus.FAILED,
                    error=action.error,
                )
            else:
                outcome = self._run_one(index, action, executor)

            logger.debug("Action %d/%d %s: %s", index + 1, total, outcome.contract_name, outcome.status.value)
            outcomes.append(outcome)
            if sink is not None:
                sink.write(outcome, index)

        if sink is not None:
            sink.close()
        return outcomes

    def _run_one(self, index: int, action: StrictAction, executor: Executor) -> ActionOutcome:
        failed = dict(
            index=index,
            kind=action.kind,
            contract_name=action.contract_name,
            status=ActionStatus.FAILED,
        )

        # ── Resolving ─────────────────────────────────────────────────
        logger.debug("Action %d %s: %s", index + 1, action.contract_name, ActionStatus.RESOLVING.value)
        try:
            resolved = resolve_action(action, self._store.records(), self._signer_provider)
        except Exception as exc:
            return ActionOutcome(**failed, action=action, error=_error_message(exc))

        # ── Executing ─────────────────────────────────────────────────
        logger.debug("Action %d %s: %s", index + 1, action.contract_name, ActionStatus.EXECUTING.value)
        log = ActionLog()
        try:
            with captured_output(log):
                artifact = executor(resolved, log)
        except Exception as exc:
            return ActionOutcome(**failed, action=resolved, error=_error_message(exc), logs=log.lines)

        # ── Succeeded ─────────────────────────────────────────────────
        if resolved.kind is ActionKind.DEPLOY:
            try:
                self._store.save(self._deployment_record(resolved, artifact))
            except Exception as exc:
                return ActionOutcome(
                    **failed, action=resolved, artifact=artifact,
                    error=f"Deployed but metadata not saved: {_error_message(exc)}",
                    logs=log.lines,
                )

        return ActionOutcome(
            index=index,
            kind=resolved.kind,
            contract_name=resolved.contract_name,
            status=ActionStatus.SUCCEEDED,
            action=resolved,
            artifact=artifact,
            logs=log.lines,
        )

    def _deployment_record(self, action: DeployAction, receipt: Artifact) -> DeploymentRecord:
        if not isinstance(receipt, DeployReceipt):
            raise TypeError(f"Deploy executor returned {type(receipt).__name__}, expected DeployReceipt")
        return DeploymentRecord(
            contract_name=action.contract_name,
            source_path=action.file_path,
            constructor_args=action.args,
            libraries=action.libraries,
            interface_definition=receipt.interface_definition,
            created_at=self._clock().isoformat(),
            network_name=self._store.network_name,
            transaction_hash=receipt.transaction_hash,
            address=receipt.address,
        )
