# backend/eduportal/services/credit_ledger.py
"""
Per-school credit ledger.

The balance row is the single source of truth for spendable credits; every
mutation appends a CreditTransaction in the same commit. Usage debits are a
single guarded UPDATE so concurrent debits can never overdraw the balance.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from eduportal.core.constants import TransactionType
from eduportal.core.exceptions import InsufficientCreditsError, NotFoundError, ValidationError
from eduportal.db.models.credit import CreditBalance, CreditTransaction
from eduportal.db.models.school import SchoolInstance
from eduportal.db.repositories.school_repository import SchoolInstanceRepository

logger = logging.getLogger(__name__)


class CreditLedger:
    """Service for reading and mutating school credit balances"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_balance(self, school_instance_id: int) -> Optional[CreditBalance]:
        result = await self.session.execute(
            select(CreditBalance)
            .where(CreditBalance.school_instance_id == school_instance_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_transactions(self, school_instance_id: int, limit: int = 100) -> List[CreditTransaction]:
        """Ledger entries, newest first"""
        result = await self.session.execute(
            select(CreditTransaction)
            .where(CreditTransaction.school_instance_id == school_instance_id)
            .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def record_transaction(
        self,
        school_instance_id: int,
        type: str,
        amount: int,
        description: str,
        reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> CreditTransaction:
        """
        Apply a credit movement and append it to the ledger.

        purchase/bonus/refund add to available and total; usage moves credits
        from available to used.

        Raises:
            ValidationError: amount not a positive integer, unknown type
            InsufficientCreditsError: usage larger than the available balance
            NotFoundError: school has no balance
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Amount must be a positive integer", field="amount")
        try:
            tx_type = TransactionType(type)
        except ValueError:
            raise ValidationError(f"Unknown transaction type: {type}", field="type")

        if tx_type == TransactionType.USAGE:
            stmt = (
                update(CreditBalance)
                .where(CreditBalance.school_instance_id == school_instance_id)
                .where(CreditBalance.available_credits >= amount)
                .values(
                    available_credits=CreditBalance.available_credits - amount,
                    used_credits=CreditBalance.used_credits + amount,
                )
            )
        else:
            stmt = (
                update(CreditBalance)
                .where(CreditBalance.school_instance_id == school_instance_id)
                .values(
                    available_credits=CreditBalance.available_credits + amount,
                    total_credits=CreditBalance.total_credits + amount,
                )
            )

        result = await self.session.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount == 0:
            balance = await self.get_balance(school_instance_id)
            if balance is None:
                raise NotFoundError("Credit balance", school_instance_id)
            logger.info(
                "Rejected credit debit",
                extra={"school_instance_id": school_instance_id, "amount": amount},
            )
            raise InsufficientCreditsError(amount, balance.available_credits)

        transaction = CreditTransaction(
            school_instance_id=school_instance_id,
            type=tx_type.value,
            amount=amount,
            description=description,
            reference=reference,
            extra_metadata=metadata or {},
        )
        self.session.add(transaction)
        if commit:
            await self.session.commit()
            await self.session.refresh(transaction)
        return transaction

    async def consume_documents(
        self,
        school: SchoolInstance,
        count: int,
        description: str,
        metadata: Optional[Dict[str, Any]] = None,
        credits: Optional[int] = None,
        commit: bool = True,
    ) -> CreditBalance:
        """
        Debit credits for generated documents and bump the school's document
        counter. `credits` defaults to one per document; a free template
        (zero credits) only moves the counter.

        With commit=False the caller owns the transaction, so the debit can
        commit together with its usage record.
        """
        cost = count if credits is None else credits
        if cost:
            await self.record_transaction(
                school.id,
                TransactionType.USAGE.value,
                cost,
                description,
                metadata=metadata,
                commit=False,
            )
        await SchoolInstanceRepository(self.session).increment_used_documents(school.id, count, commit=False)
        if commit:
            await self.session.commit()
        return await self.get_balance(school.id)
