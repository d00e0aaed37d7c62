"""
Module: gl_kernel.stores.transaction_store
Responsibility: Parameterized reads and writes of the ``transactions`` and
    ``entries`` tables.
Architecture position: Kernel > Stores.  May import from db/, domain/ and
    models/.  The posting engine is its only writer.

Invariants enforced:
    - The header insert runs inside a savepoint; a violation of
      UNIQUE(source_module, source_transaction_id) rolls back only that
      savepoint and surfaces as DuplicateSourceEventError.
    - Entries are numbered by line_seq in the order given.

Failure modes:
    - DuplicateSourceEventError on a concurrent duplicate header.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gl_kernel.domain.entries import TransactionData
from gl_kernel.exceptions import DuplicateSourceEventError
from gl_kernel.models.journal import GLEntry, GLTransaction, TransactionStatus


class TransactionStore:
    """Repository over ``transactions`` and ``entries``.  Flushes, never commits."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, transaction_id: UUID, for_update: bool = False) -> GLTransaction | None:
        stmt = select(GLTransaction).where(GLTransaction.id == transaction_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def find_by_source(
        self,
        source_module: str,
        source_transaction_id: str,
    ) -> GLTransaction | None:
        return self.session.execute(
            select(GLTransaction).where(
                GLTransaction.source_module == source_module,
                GLTransaction.source_transaction_id == source_transaction_id,
            )
        ).scalar_one_or_none()

    def find_reversal_of(self, original_id: UUID) -> GLTransaction | None:
        """The earliest transaction linked to ``original_id`` as its reversal."""
        return self.session.execute(
            select(GLTransaction)
            .where(GLTransaction.reversal_of_id == original_id)
            .order_by(GLTransaction.created_at, GLTransaction.id)
            .limit(1)
        ).scalar_one_or_none()

    def insert_header(

        self,
        data: TransactionData,
        status: TransactionStatus,
        posted_at: datetime | None,
    ) -> GLTransaction:
        """
        Insert the transaction header.

        Raises:
            DuplicateSourceEventError: If the source pair already exists.
        """
        transaction = GLTransaction(
            transaction_date=data.date,
            source_module=data.source_module,
            source_transaction_id=data.source_transaction_id,
            source_transaction_type=data.source_transaction_type,
            description=data.description,
            status=status.value,
            created_by=data.created_by,
            branch_id=data.branch_id,
            transaction_metadata=data.metadata,
            reversal_of_id=data.reversal_of_id,
            posted_at=posted_at,
        )
        try:
            with self.session.begin_nested():
                self.session.add(transaction)
                self.session.flush()
        except IntegrityError as exc:
            raise DuplicateSourceEventError(
                data.source_module, data.source_transaction_id
            ) from exc
        return transaction

    def insert_entries(
        self,
        transaction: GLTransaction,
        data: TransactionData,
    ) -> list[GLEntry]:
        rows = [
            GLEntry(
                transaction_id=transaction.id,
                account_id=line.account_id,
                account_code=line.account_code,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
                entry_metadata=line.metadata,
                line_seq=seq,
                created_by=data.created_by,
            )
            for seq, line in enumerate(data.entries)
        ]
        self.session.add_all(rows)
        self.session.flush()
        self.session.expire(transaction, ["entries"])
        return rows

    def mark_posted(self, transaction: GLTransaction, posted_at: datetime) -> None:
        transaction.status = TransactionStatus.POSTED.value
        transaction.posted_at = posted_at
        self.session.flush()
