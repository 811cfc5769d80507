"""
Policy Store - append-only, versioned pricing policies per scope.

Every save or rollback appends a new active version and an audit row.
The read of the active row, its deactivation, the insert and the audit all
happen in one transaction; the unique (scope, version) constraint and the
partial unique index on active rows back that up for concurrent writers.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..config.settings import PricingDefaults
from ..db.models import PricingPolicyAuditRecord, PricingPolicyRecord
from ..engine.models import ChangeType, Direction, PolicyScope
from ..errors import InternalError, NotFoundError, PricingError, ValidationError
from .migration import canonical_formula
from .validation import PolicyDefinition, validate_definition

logger = logging.getLogger(__name__)

# Fields compared when recording an UPDATE audit, keyed by their wire name
AUDITED_FIELDS = {
    'buyFormula': 'buy_formula',
    'sellFormula': 'sell_formula',
    'conditionCurve': 'condition_curve',
    'minOffer': 'min_offer',
    'maxOffer': 'max_offer',
    'offerExpiryDays': 'offer_expiry_days',
}


def normalize_scope(scope) -> str:
    """Return the canonical scope name or raise ValidationError."""
    try:
        return PolicyScope(scope.upper() if isinstance(scope, str) else scope).value
    except ValueError:
        raise ValidationError('Invalid policy type. Must be BUYER or SELLER', code='invalid_scope')


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class PricingPolicy:
    """One stored policy version."""
    id: str
    scope: str
    version: int
    is_active: bool
    name: str
    buy_formula: dict
    sell_formula: dict
    condition_curve: dict
    min_offer: Optional[float] = None
    max_offer: Optional[float] = None
    offer_expiry_days: int = 30
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: PricingPolicyRecord) -> 'PricingPolicy':
        return cls(
            id=record.id,
            scope=record.scope,
            version=record.version,
            is_active=record.is_active,
            name=record.name,
            buy_formula=dict(record.buy_formula or {}),
            sell_formula=dict(record.sell_formula or {}),
            condition_curve=dict(record.condition_curve or {}),
            min_offer=record.min_offer,
            max_offer=record.max_offer,
            offer_expiry_days=record.offer_expiry_days,
            created_by=record.created_by,
            created_at=record.created_at,
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.scope,
            'name': self.name,
            'version': self.version,
            'isActive': self.is_active,
            'buyFormula': self.buy_formula,
            'sellFormula': self.sell_formula,
            'conditionCurve': self.condition_curve,
            'minOffer': self.min_offer,
            'maxOffer': self.max_offer,
            'offerExpiryDays': self.offer_expiry_days,
            'createdBy': self.created_by,
            'createdAt': _iso(self.created_at),
        }


@dataclass
class PolicyAudit:
    """One recorded policy transition."""
    id: str
    policy_id: str
    change_type: str
    previous_version: Optional[int]
    new_version: int
    changes: dict
    changed_by: Optional[str] = None
    changed_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: PricingPolicyAuditRecord) -> 'PolicyAudit':
        return cls(
            id=record.id,
            policy_id=record.policy_id,
            change_type=record.change_type,
            previous_version=record.previous_version,
            new_version=record.new_version,
            changes=dict(record.changes or {}),
            changed_by=record.changed_by,
            changed_at=record.changed_at,
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'policyId': self.policy_id,
            'changeType': self.change_type,
            'previousVersion': self.previous_version,
            'newVersion': self.new_version,
            'changes': self.changes,
            'changedBy': self.changed_by,
            'changedAt': _iso(self.changed_at),
        }


@dataclass
class PolicyHistoryEntry:
    """A policy version with its most recent audits."""
    policy: PricingPolicy
    audits: list[PolicyAudit] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'id': self.policy.id,
            'type': self.policy.scope,
            'name': self.policy.name,
            'version': self.policy.version,
            'isActive': self.policy.is_active,
            'createdBy': self.policy.created_by,
            'createdAt': _iso(self.policy.created_at),
            'audits': [a.to_dict() for a in self.audits],
        }


class PolicyStore:
    """Durable, versioned policy storage backed by SQLAlchemy."""

    def __init__(
        self,
        session_factory: sessionmaker,
        defaults: Optional[PricingDefaults] = None,
        audit_limit: int = 5,
    ):
        self.session_factory = session_factory
        self.defaults = defaults or PricingDefaults()
        self.audit_limit = audit_limit

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_active(self, scope) -> Optional[PricingPolicy]:
        """Most recent active version for scope, or None."""
        scope = normalize_scope(scope)
        with self.session_factory() as session:
            record = self._active_record(session, scope)
            return PricingPolicy.from_record(record) if record else None

    def get_version(self, scope, version: int) -> Optional[PricingPolicy]:
        """A specific (possibly inactive) version, or None."""
        scope = normalize_scope(scope)
        with self.session_factory() as session:
            record = self._version_record(session, scope, version)
            return PricingPolicy.from_record(record) if record else None

    def list_history(self, scope) -> list[PolicyHistoryEntry]:
        """All versions for scope, newest first, each with its latest audits."""
        scope = normalize_scope(scope)
        with self.session_factory() as session:
            records = session.scalars(
                select(PricingPolicyRecord)
                .where(PricingPolicyRecord.scope == scope)
                .order_by(PricingPolicyRecord.version.desc())
            ).all()

            history = []
            for record in records:
                audits = session.scalars(
                    select(PricingPolicyAuditRecord)
                    .where(PricingPolicyAuditRecord.policy_id == record.id)
                    .order_by(PricingPolicyAuditRecord.changed_at.desc())
                    .limit(self.audit_limit)
                ).all()
                history.append(PolicyHistoryEntry(
                    policy=PricingPolicy.from_record(record),
                    audits=[PolicyAudit.from_record(a) for a in audits],
                ))
            return history

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def save(
        self,
        scope,
        definition: Union[PolicyDefinition, dict],
        actor: Optional[str] = None,
    ) -> PricingPolicy:
        """Validate and append a new active version for scope."""
        scope = normalize_scope(scope)
        if isinstance(definition, dict):
            definition = PolicyDefinition.from_dict(definition)

        result = validate_definition(definition, self.defaults)
        if not result.valid:
            raise ValidationError(
                'Invalid pricing policy: ' + '; '.join(result.errors),
                code='invalid_policy',
                details={'errors': result.errors, 'warnings': result.warnings},
            )
        for warning in result.warnings:
            logger.warning("Policy %s: %s", scope, warning)

        content = {
            'name': definition.name.strip(),
            'buy_formula': canonical_formula(definition.buy_formula, Direction.BUY, self.defaults),
            'sell_formula': canonical_formula(definition.sell_formula, Direction.SELL, self.defaults),
            'condition_curve': {g: float(m) for g, m in definition.condition_curve.items()},
            'min_offer': float(definition.min_offer) if definition.min_offer is not None else None,
            'max_offer': float(definition.max_offer) if definition.max_offer is not None else None,
            'offer_expiry_days': definition.offer_expiry_days or self.defaults.offer_expiry_days,
        }

        def apply(session: Session, current: Optional[PricingPolicyRecord]) -> PricingPolicyRecord:
            created = self._append_version(session, scope, current, content, actor)
            self._write_audit(
                session,
                created,
                ChangeType.UPDATE,
                current.version if current else None,
                self._diff(current, content),
                actor,
            )
            return created

        policy = self._transition(scope, apply, 'save')
        logger.info("Pricing policy saved: %s v%s by %s", scope, policy.version, actor or 'unknown')
        return policy

    def rollback(self, scope, target_version: int, actor: Optional[str] = None) -> PricingPolicy:
        """Append a new active version that copies target_version's content."""
        scope = normalize_scope(scope)
        if target_version is None or isinstance(target_version, bool):
            raise ValidationError('Target version is required', code='missing_version')
        try:
            target_version = int(target_version)
        except (TypeError, ValueError):
            raise ValidationError('Target version must be an integer', code='invalid_version')
        if target_version < 1:
            raise ValidationError('Target version must be positive', code='invalid_version')

        def apply(session: Session, current: Optional[PricingPolicyRecord]) -> PricingPolicyRecord:
            target = self._version_record(session, scope, target_version)
            if target is None:
                raise NotFoundError(
                    f"Policy version {target_version} not found",
                    code='policy_version_not_found',
                )
            content = {
                'name': target.name,
                'buy_formula': dict(target.buy_formula),
                'sell_formula': dict(target.sell_formula),
                'condition_curve': dict(target.condition_curve),
                'min_offer': target.min_offer,
                'max_offer': target.max_offer,
                'offer_expiry_days': target.offer_expiry_days,
            }
            created = self._append_version(session, scope, current, content, actor)
            previous = current.version if current else None
            self._write_audit(
                session,
                created,
                ChangeType.ROLLBACK,
                previous,
                {'rolledBackFrom': target_version, 'currentVersion': previous},
                actor,
            )
            return created

        policy = self._transition(scope, apply, 'rollback')
        logger.info(
            "Pricing policy rolled back: %s v%s restored as v%s by %s",
            scope, target_version, policy.version, actor or 'unknown',
        )
        return policy

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, scope: str, apply, action: str) -> PricingPolicy:
        """Run one read-deactivate-insert-audit sequence atomically."""
        try:
            with self.session_factory() as session, session.begin():
                current = self._active_record(session, scope, for_update=True)
                created = apply(session, current)
                session.flush()
                return PricingPolicy.from_record(created)
        except PricingError:
            raise
        except SQLAlchemyError as e:
            logger.exception("Pricing policy %s failed for %s", action, scope)
            raise InternalError(f"Failed to {action} pricing policy", code='persistence_error') from e

    def _active_record(
        self, session: Session, scope: str, for_update: bool = False
    ) -> Optional[PricingPolicyRecord]:
        stmt = (
            select(PricingPolicyRecord)
            .where(PricingPolicyRecord.scope == scope, PricingPolicyRecord.is_active.is_(True))
            .order_by(PricingPolicyRecord.version.desc())
            .limit(1)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()

    def _version_record(self, session: Session, scope: str, version: int) -> Optional[PricingPolicyRecord]:
        return session.scalars(
            select(PricingPolicyRecord).where(
                PricingPolicyRecord.scope == scope,
                PricingPolicyRecord.version == version,
            )
        ).first()

    def _append_version(
        self,
        session: Session,
        scope: str,
        current: Optional[PricingPolicyRecord],
        content: dict[str, Any],
        actor: Optional[str],
    ) -> PricingPolicyRecord:
        if current is not None:
            new_version = current.version + 1
            current.is_active = False
            # Deactivation must reach the database before the new active row
            session.flush()
        else:
            latest = session.scalar(
                select(func.max(PricingPolicyRecord.version)).where(PricingPolicyRecord.scope == scope)
            )
            new_version = (latest or 0) + 1

        record = PricingPolicyRecord(
            scope=scope,
            version=new_version,
            is_active=True,
            created_by=actor,
            **content,
        )
        session.add(record)
        session.flush()
        return record

    def _write_audit(
        self,
        session: Session,
        policy: PricingPolicyRecord,
        change_type: ChangeType,
        previous_version: Optional[int],
        changes: dict,
        actor: Optional[str],
    ) -> PricingPolicyAuditRecord:
        audit = PricingPolicyAuditRecord(
            policy_id=policy.id,
            change_type=change_type.value,
            previous_version=previous_version,
            new_version=policy.version,
            changes=changes,
            changed_by=actor,
        )
        session.add(audit)
        return audit

    @staticmethod
    def _diff(current: Optional[PricingPolicyRecord], content: dict[str, Any]) -> dict:
        """{field: {old, new}} for every audited field that changed."""
        changes = {}
        for wire_name, attr in AUDITED_FIELDS.items():
            old = getattr(current, attr) if current is not None else None
            new = content[attr]
            if old != new:
                changes[wire_name] = {'old': old, 'new': new}
        return changes
