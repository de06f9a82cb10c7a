"""Procedure governance facade.

Composes the procedure store, the access policy, the scoring engine and the
audit ledger. Every file access evaluation appends exactly one audit entry
before its result is returned, so a caller that abandons a download after
authorization never leaves an unaudited access behind. Authorization outcomes
are returned as ``AccessDecision`` values; only store and persistence failures
are raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Mapping

from procgov.core.config import DEFAULT_MINIMUM_QUALITY_SCORE, GovernanceSettings
from procgov.core.errors import ForbiddenError, InvalidUpdateError, ProcedureNotFoundError, classify_failure
from procgov.core.time import canonical_datetime, utcnow
from procgov.ledger.backends import build_backend
from procgov.ledger.entry import AuditAction, AuditEntry
from procgov.ledger.ledger import DEFAULT_PAGE_SIZE, AuditLedger, AuditPage
from procgov.policy.evaluator import AccessDecision, AccessPolicy, Caller, PolicyConfig
from procgov.scoring.criteria import CriteriaModel, load_criteria
from procgov.scoring.detector import detect_sections
from procgov.scoring.engine import ScoreResult, score
from procgov.store.procedures import JsonProcedureStore, ProcedureStore, scored_details
from procgov.store.records import ProcedureRecord, describe, summarize

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_DAYS = 365

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "primary_owner",
        "secondary_owner",
        "file_link",
        "artifact_id",
        "original_filename",
        "expiry",
        "lob",
    }
)


@dataclass(slots=True, frozen=True)
class ServeResult:
    decision: AccessDecision
    procedure: ProcedureRecord | None
    audit_entry: AuditEntry | None = None


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    accepted: bool
    message: str
    result: ScoreResult
    procedure: ProcedureRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "message": self.message,
            "analysis": self.result.to_dict(),
            "procedure": self.procedure.to_dict() if self.procedure else None,
        }


@dataclass(slots=True, frozen=True)
class UpdateResult:
    procedure: ProcedureRecord
    result: ScoreResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": "Procedure updated successfully",
            "procedure": self.procedure.to_dict(),
            "analysis": self.result.to_dict() if self.result else None,
        }


def _today() -> date:
    return utcnow().date()


class ProcedureGovernance:
    def __init__(
        self,
        *,
        store: ProcedureStore,
        ledger: AuditLedger,
        policy: AccessPolicy | None = None,
        criteria: CriteriaModel | None = None,
        minimum_score: int = DEFAULT_MINIMUM_QUALITY_SCORE,
        today: Callable[[], date] = _today,
        uploads_dir: Path | None = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.policy = policy or AccessPolicy()
        self.criteria = criteria or CriteriaModel.default()
        self.minimum_score = minimum_score
        self.today = today
        self.uploads_dir = Path(uploads_dir) if uploads_dir is not None else None

    @classmethod
    def from_settings(cls, settings: GovernanceSettings) -> "ProcedureGovernance":
        return cls(
            store=JsonProcedureStore(settings.procedures_path),
            ledger=AuditLedger(build_backend(settings)),
            policy=AccessPolicy(PolicyConfig(admin_role=settings.admin_role)),
            criteria=load_criteria(settings.criteria_path),
            minimum_score=settings.minimum_quality_score,
            uploads_dir=settings.uploads_dir,
        )

    def _require_admin(self, caller: Caller, message: str) -> None:
        if not self.policy.is_admin(caller):
            raise ForbiddenError(message, details={"caller": caller.id})

    def authorize_and_serve(self, filename: str, caller: Caller) -> ServeResult:
        """Resolve ``filename`` to its procedure, decide, and audit the decision.

        The procedure is returned only when access is allowed. A store failure
        is audited as ``FILE_ACCESS_DENIED`` and then re-raised.
        """

        try:
            procedure = self.store.find_by_artifact(filename)
        except Exception as exc:
            failure = classify_failure(exc)
            self.ledger.append(
                AuditAction.FILE_ACCESS_DENIED,
                caller.id,
                {
                    "filename": filename,
                    "accessedBy": caller.id,
                    "error": failure["message"],
                    "failure": failure["code"],
                },
            )
            raise

        decision = self.policy.evaluate(caller, procedure)
        details: dict[str, Any] = {
            "filename": filename,
            "accessedBy": caller.id,
            "reason": decision.reason.value,
        }
        if procedure is not None:
            details["procedureId"] = procedure.id
            details["procedureName"] = procedure.name
        action = AuditAction.FILE_ACCESS if decision.allowed else AuditAction.FILE_ACCESS_DENIED
        entry = self.ledger.append(action, caller.id, details)

        if decision.allowed:
            logger.info("File %r served to %r (%s)", filename, caller.id, decision.reason.value)
        else:
            logger.info("File %r denied to %r (%s)", filename, caller.id, decision.reason.value)
        return ServeResult(
            decision=decision,
            procedure=procedure if decision.allowed else None,
            audit_entry=entry,
        )

    def check_access(self, procedure_id: int, caller: Caller) -> tuple[AccessDecision, ProcedureRecord | None]:
        procedure = self.store.get(procedure_id)
        return self.policy.evaluate(caller, procedure), procedure

    def accessible_procedures(self, caller: Caller) -> list[dict[str, Any]]:
        today = self.today()
        return [
            describe(record, today=today, minimum_score=self.minimum_score)
            for record in self.store.list_all()
            if self.policy.evaluate(caller, record).allowed
        ]

    def _score_details(self, procedure: ProcedureRecord, result: ScoreResult) -> dict[str, Any]:
        return {
            "procedureId": procedure.id,
            "procedureName": procedure.name,
            "score": result.score,
            "passed": result.passed,
            "minimumScore": result.minimum_score,
            "breakdown": [item.to_dict() for item in result.breakdown],
            "ignored": list(result.ignored),
        }

    def record_score(
        self,
        procedure_id: int,
        criteria_presence: Mapping[str, bool],
        *,
        actor: str = "system",
    ) -> ScoreResult:
        """Fully re-score a procedure, persist the score, then audit it.

        Persistence failures propagate; only the audit write is best effort.
        """

        procedure = self.store.get(procedure_id)
        if procedure is None:
            raise ProcedureNotFoundError("Procedure not found", details={"procedureId": procedure_id})
        result = score(criteria_presence, self.criteria, minimum_score=self.minimum_score)
        self.store.set_score(procedure_id, result)
        self.ledger.append(AuditAction.SCORE_COMPUTED, actor, self._score_details(procedure, result))
        logger.info("Procedure %s scored %s (passed=%s)", procedure_id, result.score, result.passed)
        return result

    def analyze_and_score(self, procedure_id: int, text: str, *, actor: str = "system") -> ScoreResult:
        return self.record_score(procedure_id, detect_sections(text), actor=actor)

    def submit_procedure(
        self,
        draft: ProcedureRecord,
        criteria_presence: Mapping[str, bool],
        caller: Caller,
    ) -> SubmissionResult:
        """Quality gate for new procedures: store only documents that pass."""

        result = score(criteria_presence, self.criteria, minimum_score=self.minimum_score)
        if not result.passed:
            self.ledger.append(
                AuditAction.PROCEDURE_REJECTED,
                caller.id,
                {
                    "procedureName": draft.name,
                    "score": result.score,
                    "minimumScore": result.minimum_score,
                    "missingElements": list(result.missing),
                },
            )
            return SubmissionResult(
                accepted=False,
                message=(
                    f"Document quality score ({result.score}%) is below the required "
                    f"minimum of {result.minimum_score}%."
                ),
                result=result,
            )

        record = replace(
            draft,
            primary_owner=draft.primary_owner or caller.id,
            uploaded_by=draft.uploaded_by or caller.id,
            expiry=draft.expiry or self.today() + timedelta(days=DEFAULT_EXPIRY_DAYS),
            uploaded_at=draft.uploaded_at or canonical_datetime(),
            score=result.score,
            quality_details=scored_details(result),
        )
        stored = self.store.add(record)
        self.ledger.append(
            AuditAction.PROCEDURE_CREATED,
            caller.id,
            {
                "procedureId": stored.id,
                "procedureName": stored.name,
                "score": result.score,
                "lob": stored.lob,
                "uploadedBy": stored.uploaded_by,
            },
        )
        self.ledger.append(AuditAction.SCORE_COMPUTED, caller.id, self._score_details(stored, result))
        return SubmissionResult(accepted=True, message="Procedure uploaded successfully", result=result, procedure=stored)

    def audit_log(
        self,
        caller: Caller,
        *,
        action: str | None = None,
        user_id: str | None = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> AuditPage:
        self._require_admin(caller, "Audit log is restricted to administrators")
        return self.ledger.query(action=action, user_id=user_id, page=page, limit=limit)

    def update_procedure(
        self,
        procedure_id: int,
        changes: Mapping[str, Any],
        caller: Caller,
        *,
        criteria_presence: Mapping[str, bool] | None = None,
    ) -> UpdateResult:
        """Merge administrator ``changes`` into a stored procedure.

        The id and provenance fields never change. A new presence mapping
        re-scores the procedure in the same write. The update is audited as
        ``PROCEDURE_UPDATED``, followed by ``SCORE_COMPUTED`` when re-scored.
        """

        self._require_admin(caller, "Procedure updates are restricted to administrators")
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise InvalidUpdateError(f"Fields cannot be updated: {', '.join(unknown)}", details={"fields": unknown})
        procedure = self.store.get(procedure_id)
        if procedure is None:
            raise ProcedureNotFoundError("Procedure not found", details={"procedureId": procedure_id})

        merged = {**procedure.to_dict(), **changes}
        if "file_link" in changes and "artifact_id" not in changes:
            merged["artifact_id"] = ""
        merged.update({"id": procedure.id, "updated_by": caller.id, "updated_at": canonical_datetime()})
        try:
            updated = ProcedureRecord.from_dict(merged)
        except (TypeError, ValueError) as exc:
            raise InvalidUpdateError(str(exc), details={"procedureId": procedure_id}) from exc

        result = None
        if criteria_presence is not None:
            result = score(criteria_presence, self.criteria, minimum_score=self.minimum_score)
            updated = replace(updated, score=result.score, quality_details=scored_details(result))

        stored = self.store.update(updated)
        self.ledger.append(
            AuditAction.PROCEDURE_UPDATED,
            caller.id,
            {
                "procedureId": stored.id,
                "procedureName": stored.name,
                "changes": sorted(changes),
                "rescored": result is not None,
                "updatedBy": caller.id,
            },
        )
        if result is not None:
            self.ledger.append(AuditAction.SCORE_COMPUTED, caller.id, self._score_details(stored, result))
        logger.info("Procedure %s updated by %r", stored.id, caller.id)
        return UpdateResult(procedure=stored, result=result)

    def _remove_artifact(self, removed: ProcedureRecord) -> bool:
        name = removed.artifact_id
        if self.uploads_dir is None or not name or Path(name).name != name:
            return False
        if self.store.find_by_artifact(name) is not None:
            return False
        path = self.uploads_dir / name
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Could not remove artifact %s: %s", path, exc)
            return False
        return True

    def delete_procedure(self, procedure_id: int, caller: Caller) -> ProcedureRecord:
        """Remove a procedure and its uploaded artifact, unless another record still links to it."""

        self._require_admin(caller, "Procedure deletion is restricted to administrators")
        removed = self.store.delete(procedure_id)
        artifact_removed = self._remove_artifact(removed)
        self.ledger.append(
            AuditAction.PROCEDURE_DELETED,
            caller.id,
            {
                "procedureId": removed.id,
                "procedureName": removed.name,
                "artifactRemoved": artifact_removed,
                "deletedBy": caller.id,
            },
        )
        logger.info("Procedure %s deleted by %r", removed.id, caller.id)
        return removed

    def dashboard_summary(self, caller: Caller) -> dict[str, Any]:
        """Counts over the procedures ``caller`` may access; administrators see the whole hub."""

        records = [record for record in self.store.list_all() if self.policy.evaluate(caller, record).allowed]
        return summarize(records, today=self.today(), minimum_score=self.minimum_score)


__all__ = [
    "DEFAULT_EXPIRY_DAYS",
    "UPDATABLE_FIELDS",
    "ProcedureGovernance",
    "ServeResult",
    "SubmissionResult",
    "UpdateResult",
]
