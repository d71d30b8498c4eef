"""Infrastructure layer - Repository implementations."""

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.future import Engine
from sqlmodel import Session, col, select

from ...domain.calculations import calculate_all_totals
from ...domain.entities import Document, Version
from ...logging_utils import log_storage_event
from .models import QuotationRecord
from .serialization import (
    document_from_dict,
    document_to_dict,
    version_from_dict,
    version_to_dict,
)


class QuotationRepository:
    """Repository for saved quotations and their versions."""

    def __init__(self, session: Session):
        self.session = session

    def find(self, quote_number: str) -> QuotationRecord | None:
        return self.session.exec(
            select(QuotationRecord).where(QuotationRecord.quote_number == quote_number)
        ).first()

    def _find_or_new(self, quote_number: str) -> QuotationRecord:
        record = self.find(quote_number)
        if record is None:
            record = QuotationRecord(quote_number=quote_number)
        return record

    def _commit(self, record: QuotationRecord) -> QuotationRecord:
        record.saved_at = datetime.now()
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def save_document(self, quote_number: str, document: Document) -> QuotationRecord:
        record = self._find_or_new(quote_number)
        record.document = document_to_dict(document)
        record.client_name = document.client.name
        record.grand_total = calculate_all_totals(document).grand_total
        return self._commit(record)

    def save_versions(
        self, quote_number: str, versions: list[Version], last_number: int
    ) -> QuotationRecord:
        record = self._find_or_new(quote_number)
        record.versions = [version_to_dict(version) for version in versions]
        record.last_version_number = last_number
        return self._commit(record)

    def load_document(self, quote_number: str) -> Document | None:
        record = self.find(quote_number)
        if record is None or not record.document:
            return None
        return document_from_dict(record.document)

    def load_versions(self, quote_number: str) -> tuple[list[Version], int]:
        record = self.find(quote_number)
        if record is None:
            return [], 0
        versions = [
            version_from_dict(data)
            for data in record.versions or []
            if isinstance(data, dict)
        ]
        return versions, record.last_version_number

    def list_saved(self) -> list[QuotationRecord]:
        """All saved quotations, most recently saved first."""
        return list(
            self.session.exec(
                select(QuotationRecord).order_by(col(QuotationRecord.saved_at).desc())
            ).all()
        )

    def delete(self, quote_number: str) -> bool:
        record = self.find(quote_number)
        if record is None:
            return False
        self.session.delete(record)
        self.session.commit()
        return True


class SqlQuotationStorage:
    """Storage collaborator for one quotation backed by the quotations table.

    Database failures are logged and reported as None/False; they never
    propagate into the editing session.
    """

    def __init__(self, engine: Engine, quote_number: str):
        self.engine = engine
        self.quote_number = quote_number

    def load(self) -> Document | None:
        try:
            with Session(self.engine) as session:
                return QuotationRepository(session).load_document(self.quote_number)
        except SQLAlchemyError as e:
            log_storage_event("load", self.quote_number, success=False, error=str(e))
            return None

    def save(self, document: Document) -> bool:
        try:
            with Session(self.engine) as session:
                record = QuotationRepository(session).save_document(
                    self.quote_number, document
                )
                grand_total = record.grand_total
        except SQLAlchemyError as e:
            log_storage_event("save", self.quote_number, success=False, error=str(e))
            return False

        log_storage_event(
            "save", self.quote_number, success=True, grand_total=grand_total
        )
        return True

    def load_versions(self) -> tuple[list[Version], int]:
        try:
            with Session(self.engine) as session:
                return QuotationRepository(session).load_versions(self.quote_number)
        except SQLAlchemyError as e:
            log_storage_event(
                "load_versions", self.quote_number, success=False, error=str(e)
            )
            return [], 0

    def save_versions(self, versions: list[Version], last_number: int) -> bool:
        try:
            with Session(self.engine) as session:
                QuotationRepository(session).save_versions(
                    self.quote_number, versions, last_number
                )
        except SQLAlchemyError as e:
            log_storage_event(
                "save_versions", self.quote_number, success=False, error=str(e)
            )
            return False

        log_storage_event(
            "save_versions", self.quote_number, success=True, versions=len(versions)
        )
        return True
