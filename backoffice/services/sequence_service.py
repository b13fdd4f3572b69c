# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


DOCUMENT_TYPE_ORDER = "ORDER"


def next_document_number(document_type: str = DOCUMENT_TYPE_ORDER) -> int:
    """
    Allocate the next number for a document type inside the caller's transaction.

    The UPDATE takes a row lock on the sequence row, so concurrent
    allocations serialize and numbers increase monotonically. Does not commit;
    a rolled-back unit simply releases its number.
    """
    if not document_type:
        raise ValueError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        try:
            # Savepoint: a lost first-insert race must not discard the caller's work
            with db.session.begin_nested():
                db.session.add(seq)
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1
