"""
Labour Registry

Owns the lifecycle of individual workers and linked pairs.

State machine per worker:
    Unlinked --create_linked_pair--> Linked --dissolve_linked_pair--> Unlinked
Active/Inactive status is an orthogonal axis with no restrictions.

DESIGN DECISION: update_balance is the ONLY sanctioned way to move money.
It resolves "linked or individual?" once and then issues atomic store
increments; nothing else writes current_balance or shared_balance, except
the link/dissolve transitions that move a whole balance between a worker
and its pair.

Multi-write sequences (link, dissolve, individual balance update) validate
everything first, then apply writes in a fixed order. The store gives no
multi-record atomicity, so a failure after the first write is logged with
the writes already applied and surfaced as DatabaseError. There is no
automatic compensation; callers must re-verify before retrying.
"""

import asyncio
import secrets
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

import pydantic
import structlog

from labour_ledger.audit import AuditLogger
from labour_ledger.config import LedgerSettings, get_settings
from labour_ledger.errors import DatabaseError, DomainError, NotFoundError, ValidationError
from labour_ledger.models.common import ZERO, ValidationIssue, split_in_two, to_money, utc_now
from labour_ledger.models.labour import Gender, Labour, LabourStatus, LinkedPair
from labour_ledger.models.ledger import EntityRef, IndividualRef, PairRef
from labour_ledger.services.storage import EntityStoreAdapter
from labour_ledger.validation import LabourValidator, as_decimal

logger = structlog.get_logger(__name__)

WriteStep = tuple[str, Callable[[], Awaitable[None]]]


def generate_labour_code() -> str:
    """Human-readable code in the L349635 format."""
    return f"L{secrets.randbelow(1_000_000):06d}"


async def apply_in_order(
    operation: str,
    entity_id: str,
    steps: list[WriteStep],
    audit_logger: Optional[AuditLogger] = None,
) -> None:
    """
    Run store writes one after another.

    A failure on the first write is re-raised as is (nothing changed). A
    failure after that is logged with the writes already applied and
    raised as DatabaseError naming them.
    """
    applied: list[str] = []
    for label, write in steps:
        try:
            await write()
        except DatabaseError as e:
            if not applied:
                raise
            logger.error(
                "partial_write",
                operation=operation,
                entity_id=entity_id,
                applied=applied,
                failed=label,
                error=str(e),
            )
            if audit_logger:
                await audit_logger.log_partial_write(operation, entity_id, applied, str(e))
            raise DatabaseError(
                f"{operation} failed at '{label}' after {len(applied)} of {len(steps)} writes "
                f"({', '.join(applied)}); re-verify {entity_id} before retrying.",
                operation=operation,
            ) from e
        applied.append(label)


def issues_from_pydantic(error: pydantic.ValidationError) -> list[ValidationIssue]:
    issues = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail.get("loc", ())) or "record"
        issues.append(ValidationIssue(
            field=field,
            issue_type=detail.get("type", "invalid_value"),
            message=f"{field}: {detail.get('msg', 'invalid value')}.",
        ))
    return issues


class LabourRegistry:
    """
    Worker and linked-pair lifecycle plus the balance-mutation primitive.
    """

    def __init__(
        self,
        adapter: EntityStoreAdapter,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LabourValidator] = None,
        settings: Optional[LedgerSettings] = None,
        code_generator: Callable[[], str] = generate_labour_code,
    ):
        self._adapter = adapter
        self._audit_logger = audit_logger
        self._validator = validator or LabourValidator()
        self._settings = settings or get_settings().ledger
        self._generate_code = code_generator

    @property
    def adapter(self) -> EntityStoreAdapter:
        return self._adapter

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _reject(self, operation: str, message: str, entity_id: Optional[str] = None) -> DomainError:
        if self._audit_logger:
            await self._audit_logger.log_domain_rule_violated(operation, message, entity_id)
        return DomainError(message)

    async def _invalid(self, subject: str, issues: list[ValidationIssue]) -> ValidationError:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(subject, issues)
        return ValidationError(issues)

    async def _apply_in_order(self, operation: str, entity_id: str, steps: list[WriteStep]) -> None:
        await apply_in_order(operation, entity_id, steps, self._audit_logger)

    async def _new_labour_code(self) -> str:
        # Unique across organizations; wage postings resolve codes without an org
        for _ in range(self._settings.labour_code_attempts):
            code = self._generate_code()
            if await self._adapter.find_labour_by_code(code) is None:
                return code
        raise DomainError(
            f"Could not generate an unused labour code after "
            f"{self._settings.labour_code_attempts} attempts."
        )

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_labour(self, labour_id: str) -> Labour:
        labour = await self._adapter.get_labour(labour_id)
        if labour is None:
            raise NotFoundError("labour", labour_id)
        return labour

    async def get_labour_by_code(self, labour_code: str, org_id: Optional[str] = None) -> Labour:
        labour = await self._adapter.find_labour_by_code(labour_code, org_id)
        if labour is None:
            raise NotFoundError("labour", labour_code, f"Labour not found: {labour_code}")
        return labour

    async def get_linked_pair(self, pair_id: str) -> LinkedPair:
        pair = await self._adapter.get_pair(pair_id)
        if pair is None:
            raise NotFoundError("linked_pair", pair_id)
        return pair

    async def get_pair_members(self, pair_id: str) -> tuple[Labour, Labour]:
        pair = await self.get_linked_pair(pair_id)
        return await self._load_members(pair)

    async def _load_members(self, pair: LinkedPair) -> tuple[Labour, Labour]:
        member1, member2 = await asyncio.gather(
            self._adapter.get_labour(pair.labour1_id),
            self._adapter.get_labour(pair.labour2_id),
        )
        if member1 is None or member2 is None:
            missing = pair.labour1_id if member1 is None else pair.labour2_id
            raise NotFoundError(
                "labour",
                missing,
                f"Linked pair {pair.id} references a missing labour: {missing}",
            )
        return member1, member2

    async def get_linked_partner(self, labour_id: str) -> Optional[Labour]:
        """The other member of the worker's pair, or None when unlinked."""
        labour = await self.get_labour(labour_id)
        if not labour.is_linked:
            return None
        pair = await self._adapter.get_pair(labour.linked_pair_id)
        if pair is None:
            return None
        return await self._adapter.get_labour(pair.partner_of(labour_id))

    async def resolve_entity(self, ref_id: str) -> EntityRef:
        """
        Resolve an identifier to the tagged union used by ledger and wage code.

        A worker id always resolves to IndividualRef, even when that worker is
        currently linked; a pair id resolves to PairRef with both members.
        """
        labour, pair = await asyncio.gather(
            self._adapter.get_labour(ref_id),
            self._adapter.get_pair(ref_id),
        )
        if labour is not None:
            return IndividualRef(labour=labour)
        if pair is not None:
            member1, member2 = await self._load_members(pair)
            return PairRef(pair=pair, member1=member1, member2=member2)
        raise NotFoundError("entity", ref_id, f"No worker or linked pair found: {ref_id}")

    # =========================================================================
    # LABOUR CRUD
    # =========================================================================

    async def create_labour(self, data: Mapping[str, Any]) -> Labour:
        """
        Create a worker.

        Raises:
            ValidationError: listing every violated field rule
        """
        result = self._validator.validate_create(data)
        if result.has_errors:
            raise await self._invalid(result.subject, result.errors)

        org_id = str(data["org_id"]).strip()
        opening = to_money(as_decimal(data.get("opening_balance")) or ZERO)
        labour_code = await self._new_labour_code()

        fields = {
            "labour_code": labour_code,
            "org_id": org_id,
            "name": data["name"],
            "gender": data["gender"],
            "status": data.get("status", LabourStatus.ACTIVE),
            "tags": list(data.get("tags") or []),
            "assigned_vehicle": data.get("assigned_vehicle"),
            "current_balance": opening,
            "total_earned": ZERO,
            "total_paid": ZERO,
            "opening_balance": opening,
            "is_linked": False,
        }
        if data.get("date_joined") is not None:
            fields["date_joined"] = data["date_joined"]

        try:
            labour = Labour(**fields)
        except pydantic.ValidationError as e:
            raise await self._invalid("labour_create", issues_from_pydantic(e)) from e

        await self._adapter.create_labour(labour)
        logger.info("labour_created", labour_id=labour.id, labour_code=labour_code, org_id=org_id)

        if self._audit_logger:
            await self._audit_logger.log_labour_created(
                labour_id=labour.id,
                labour_code=labour_code,
                org_id=org_id,
                opening_balance=str(opening),
            )
        return labour

    async def update_labour(self, labour_id: str, fields: Mapping[str, Any]) -> Labour:
        """
        Partial update of profile fields; unsupplied fields are untouched.
        """
        result = self._validator.validate_update(fields)
        if result.has_errors:
            raise await self._invalid(result.subject, result.errors)

        labour = await self.get_labour(labour_id)
        if not fields:
            return labour

        try:
            updated = Labour.model_validate({**labour.model_dump(), **fields, "updated_at": utc_now()})
        except pydantic.ValidationError as e:
            raise await self._invalid("labour_update", issues_from_pydantic(e)) from e

        changed = list(fields) + ["updated_at"]
        record = updated.model_dump(mode="json", include=set(changed))
        await self._adapter.update_labour(labour_id, record)

        if self._audit_logger:
            await self._audit_logger.log_labour_updated(labour_id, list(fields))
        return updated

    async def delete_labour(self, labour_id: str) -> None:
        labour = await self.get_labour(labour_id)
        if labour.is_linked:
            raise await self._reject(
                "delete_labour",
                "Cannot delete a linked labour. Please dissolve the linked pair first.",
                labour_id,
            )

        await self._adapter.delete_labour(labour_id)
        logger.info("labour_deleted", labour_id=labour_id)

        if self._audit_logger:
            await self._audit_logger.log_labour_deleted(labour_id, labour.org_id)

    # =========================================================================
    # LINKING
    # =========================================================================

    async def create_linked_pair(
        self,
        labour1_id: str,
        labour2_id: str,
        name: Optional[str] = None,
    ) -> LinkedPair:
        """
        Merge two workers into one shared-balance unit.

        shared_balance starts as the sum of both current balances; both
        members are then pinned to zero.
        """
        operation = "create_linked_pair"
        if labour1_id == labour2_id:
            raise await self._reject(operation, "Cannot link a labour to themselves.", labour1_id)

        labour1, labour2 = await asyncio.gather(
            self._adapter.get_labour(labour1_id),
            self._adapter.get_labour(labour2_id),
        )
        if labour1 is None:
            raise NotFoundError("labour", labour1_id)
        if labour2 is None:
            raise NotFoundError("labour", labour2_id)

        if labour1.is_linked or labour2.is_linked:
            raise await self._reject(operation, "One or both labours are already linked.")
        if labour1.org_id != labour2.org_id:
            raise await self._reject(operation, "Cannot link labours from different organizations.")
        if not (labour1.is_active and labour2.is_active):
            raise await self._reject(operation, "Both labours must be active to be linked.")

        pair = LinkedPair(
            org_id=labour1.org_id,
            labour1_id=labour1.id,
            labour2_id=labour2.id,
            name=name or f"{labour1.name} & {labour2.name}",
            shared_balance=labour1.current_balance + labour2.current_balance,
        )

        now = utc_now().isoformat()
        link_fields = {
            "is_linked": True,
            "linked_pair_id": pair.id,
            "current_balance": "0",
            "updated_at": now,
        }
        await self._apply_in_order(operation, pair.id, [
            ("create pair", lambda: self._adapter.create_pair(pair)),
            ("link member 1", lambda: self._adapter.update_labour(labour1.id, link_fields)),
            ("link member 2", lambda: self._adapter.update_labour(labour2.id, link_fields)),
        ])

        logger.info("pair_linked", pair_id=pair.id, shared_balance=str(pair.shared_balance))
        if self._audit_logger:
            await self._audit_logger.log_pair_linked(
                pair_id=pair.id,
                org_id=pair.org_id,
                labour1_id=labour1.id,
                labour2_id=labour2.id,
                shared_balance=str(pair.shared_balance),
            )
        return pair

    async def dissolve_linked_pair(self, pair_id: str) -> tuple[Labour, Labour]:
        """
        Split the shared balance back onto both members and delete the pair.

        Member 1 receives the odd paisa (see split_in_two).

        Returns:
            Both members as they are after dissolution
        """
        pair = await self.get_linked_pair(pair_id)
        member1, member2 = await self._load_members(pair)

        share1, share2 = split_in_two(pair.shared_balance)
        now = utc_now()

        def unlink_fields(share: Decimal) -> dict[str, Any]:
            return {
                "is_linked": False,
                "linked_pair_id": None,
                "current_balance": str(share),
                "updated_at": now.isoformat(),
            }

        await self._apply_in_order("dissolve_linked_pair", pair_id, [
            ("unlink member 1", lambda: self._adapter.update_labour(member1.id, unlink_fields(share1))),
            ("unlink member 2", lambda: self._adapter.update_labour(member2.id, unlink_fields(share2))),
            ("delete pair", lambda: self._adapter.delete_pair(pair_id)),
        ])

        balances = {member1.id: str(share1), member2.id: str(share2)}
        logger.info("pair_dissolved", pair_id=pair_id, balances=balances)
        if self._audit_logger:
            await self._audit_logger.log_pair_dissolved(pair_id, pair.org_id, balances)

        unlinked = {"is_linked": False, "linked_pair_id": None, "updated_at": now}
        return (
            member1.model_copy(update={**unlinked, "current_balance": share1}),
            member2.model_copy(update={**unlinked, "current_balance": share2}),
        )

    # =========================================================================
    # BALANCES
    # =========================================================================

    async def update_balance(
        self,
        labour_id: str,
        delta: Union[Decimal, int, str],
        reason: Optional[str] = None,
    ) -> None:
        """
        Apply a signed balance change for one worker.

        Linked worker: the pair's shared_balance moves.
        Individual: current_balance moves, plus total_earned (credit) or
        total_paid (debit).
        """
        amount = as_decimal(delta)
        if amount is None:
            raise ValidationError([ValidationIssue(
                field="delta",
                issue_type="invalid_value",
                message="Balance change must be a number.",
            )])
        amount = to_money(amount)
        if amount == ZERO:
            return

        labour = await self.get_labour(labour_id)

        if labour.is_linked:
            await self._adapter.increment_pair(labour.linked_pair_id, "shared_balance", amount)
            entity_type, entity_id = "linked_pair", labour.linked_pair_id
        else:
            total_field = "total_earned" if amount > 0 else "total_paid"
            await self._apply_in_order("update_balance", labour_id, [
                ("current_balance", lambda: self._adapter.increment_labour(labour_id, "current_balance", amount)),
                (total_field, lambda: self._adapter.increment_labour(labour_id, total_field, abs(amount))),
            ])
            entity_type, entity_id = "labour", labour_id

        logger.debug("balance_updated", entity_type=entity_type, entity_id=entity_id, delta=str(amount))
        if self._audit_logger:
            await self._audit_logger.log_balance_updated(
                entity_type=entity_type,
                entity_id=entity_id,
                delta=str(amount),
                reason=reason,
                labour_id=labour_id,
            )

    # =========================================================================
    # MIGRATION
    # =========================================================================

    @staticmethod
    def migrate_legacy_labours(
        records: Iterable[Mapping[str, Any]],
    ) -> tuple[list[Labour], list[LinkedPair]]:
        """
        Convert legacy combined records into Labour and LinkedPair models.

        Legacy records carry type "individual" or "linked_pair"; a linked
        pair record embeds labour1 / labour2 profiles and a shared balance.
        Nothing is written; the caller persists the result.

        Raises:
            ValidationError: if a record cannot be converted
        """
        labours: list[Labour] = []
        pairs: list[LinkedPair] = []

        try:
            for legacy in records:
                kind = legacy.get("type")
                status = legacy.get("status", LabourStatus.ACTIVE)
                stamps = {
                    key: legacy[key] for key in ("created_at", "updated_at") if legacy.get(key)
                }

                if kind == "individual":
                    labours.append(Labour(
                        id=legacy["id"],
                        labour_code=legacy.get("labour_code") or legacy["id"],
                        org_id=legacy["org_id"],
                        name=legacy["name"],
                        gender=legacy.get("gender", Gender.MALE),
                        status=status,
                        tags=legacy.get("tags") or [],
                        assigned_vehicle=legacy.get("assigned_vehicle"),
                        current_balance=legacy.get("current_balance") or ZERO,
                        total_earned=legacy.get("total_earned") or ZERO,
                        total_paid=legacy.get("total_paid") or ZERO,
                        opening_balance=legacy.get("opening_balance") or ZERO,
                        **stamps,
                    ))
                elif kind == "linked_pair":
                    members = []
                    for slot in ("labour1", "labour2"):
                        profile = legacy[slot]
                        member_id = f"{legacy['id']}_{slot}"
                        members.append(Labour(
                            id=member_id,
                            labour_code=profile.get("labour_code") or member_id,
                            org_id=legacy["org_id"],
                            name=profile["name"],
                            gender=profile.get("gender", Gender.MALE),
                            status=status,
                            tags=profile.get("tags") or [],
                            assigned_vehicle=profile.get("assigned_vehicle"),
                            is_linked=True,
                            linked_pair_id=legacy["id"],
                            **stamps,
                        ))
                    labours.extend(members)

                    shared = legacy.get("shared_balance") or {}
                    if isinstance(shared, Mapping):
                        shared = shared.get("current_balance") or ZERO
                    pairs.append(LinkedPair(
                        id=legacy["id"],
                        org_id=legacy["org_id"],
                        labour1_id=members[0].id,
                        labour2_id=members[1].id,
                        name=f"{members[0].name} & {members[1].name}",
                        status=status,
                        shared_balance=shared,
                        **stamps,
                    ))
                else:
                    raise ValidationError([ValidationIssue(
                        field="type",
                        issue_type="invalid_value",
                        message=f"Unknown legacy labour type: {kind!r}.",
                    )])
        except KeyError as e:
            raise ValidationError([ValidationIssue(
                field=str(e.args[0]),
                issue_type="missing",
                message=f"Legacy record is missing {e.args[0]}.",
            )]) from e
        except pydantic.ValidationError as e:
            raise ValidationError(issues_from_pydantic(e)) from e

        return labours, pairs
