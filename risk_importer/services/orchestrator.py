from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import psycopg2

from ..db.risk_store import RowWriteError
from ..db.tenant import TenantScopeError, tenant_transaction
from ..excel.reader import DecodedFile, decode_base64_upload, decode_file
from ..excel.template import TemplateFile, render_template
from ..logging.error_log import ImportErrorLog
from ..models.config_models import ImporterConfig
from ..models.field_schema import RiskType, field_catalogue
from ..models.import_result import DuplicateCheckResult, ImportResult, LinkTarget, ValidationResult
from ..models.mapped_row import MappedRow
from ..models.row_data import ParsedRow
from . import duplicates as duplicate_service
from . import importer as import_service
from .validation import validate_rows

"""Service orchestration for the bulk risk import pipeline.

RiskImportService ties the stages together for one caller (CLI or request
handler):

    decode -> validate -> check_duplicates -> import_rows

decode / validate are pure in-memory steps. check_duplicates runs a read-only
tenant transaction; import_rows runs one read-write tenant transaction per
call and is all-or-nothing for infrastructure failures (row failures become
row outcomes, see services/importer.py).
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessingError",
    "RequestError",
    "TenantContextError",
    "DatabaseUnavailableError",
    "ImportFailedError",
    "RiskImportService",
]


class ProcessingError(Exception):
    """Base exception for processing errors."""
    pass


class RequestError(ProcessingError):
    """Malformed request payload."""


class TenantContextError(ProcessingError):
    def __init__(self, message: str = "Unauthorized - tenant not found") -> None:
        super().__init__(message)


class DatabaseUnavailableError(ProcessingError):
    def __init__(self, message: str = "Database not available") -> None:
        super().__init__(message)


class ImportFailedError(ProcessingError):
    """The import transaction was rolled back as a whole."""


class RiskImportService:
    """Pipeline entry points bound to one config and (optionally) one connection.

    ``connection`` is a psycopg2 connection with autocommit off. Without one,
    only the in-memory steps (decode, validate, fields, template) are usable.
    """

    def __init__(self, config: ImporterConfig | None = None, connection: Any = None) -> None:
        self.config = config or ImporterConfig()
        self.connection = connection

    # -- in-memory steps -------------------------------------------------

    def decode(self, content: bytes, file_name: str) -> DecodedFile:
        return decode_file(
            content,
            file_name,
            max_size_bytes=self.config.max_file_size_bytes,
            preview_rows=self.config.preview_row_count,
        )

    def decode_base64(self, content_b64: str, file_name: str) -> DecodedFile:
        return decode_base64_upload(
            content_b64,
            file_name,
            max_size_bytes=self.config.max_file_size_bytes,
            preview_rows=self.config.preview_row_count,
        )

    def resolve_risk_type(self, risk_type: Any = None) -> RiskType:
        return RiskType.parse(risk_type or self.config.default_risk_type)

    def validate(
        self,
        rows: Sequence[ParsedRow],
        mapping: Sequence[tuple[str, str]],
        risk_type: Any = None,
    ) -> ValidationResult:
        return validate_rows(
            rows,
            mapping,
            self.resolve_risk_type(risk_type),
            auto_calculate=self.config.auto_calculate_risk_level,
        )

    def fields(self, risk_type: Any = None) -> dict[str, Any]:
        return field_catalogue(self.resolve_risk_type(risk_type))

    def template(self, risk_type: Any = None, fmt: str = "csv") -> TemplateFile:
        return render_template(self.resolve_risk_type(risk_type), fmt)

    def public_config(self) -> dict[str, Any]:
        return self.config.to_public_dict()

    # -- database steps --------------------------------------------------

    def _require_context(self, tenant_id: str | None) -> None:
        if not tenant_id:
            raise TenantContextError()
        if self.connection is None:
            raise DatabaseUnavailableError()

    def check_duplicates(
        self,
        rows: Sequence[MappedRow],
        risk_type: Any,
        tenant_id: str | None,
    ) -> DuplicateCheckResult:
        """Look up every valid row in the tenant store (read-only)."""
        self._require_context(tenant_id)
        rt = self.resolve_risk_type(risk_type)
        try:
            with tenant_transaction(self.connection, tenant_id, read_only=True) as store:
                return duplicate_service.check_duplicates(store, rows, rt)
        except TenantScopeError as e:
            raise TenantContextError(str(e)) from e
        except (psycopg2.Error, RowWriteError) as e:
            logger.error("duplicate check failed tenant=%s: %s", tenant_id, e)
            raise ProcessingError("Duplicate check failed") from e

    def import_rows(
        self,
        rows: Sequence[MappedRow],
        actions: Mapping[int, Any] | None,
        risk_type: Any,
        link_to: LinkTarget | None,
        tenant_id: str | None,
    ) -> ImportResult:
        """Apply all rows in one tenant transaction.

        Row failures are reported in the result. Anything that aborts the
        transaction is logged as TRANSACTION_ERROR (row -1) and re-raised as
        ImportFailedError after the rollback.
        """
        self._require_context(tenant_id)
        rt = self.resolve_risk_type(risk_type)
        error_log = ImportErrorLog(self.config.error_log_dir, tenant=tenant_id or "", risk_type=rt.value)
        try:
            with tenant_transaction(self.connection, tenant_id) as store:
                return import_service.import_rows(
                    store,
                    rows,
                    actions,
                    rt,
                    link_to,
                    error_log=error_log,
                )
        except TenantScopeError as e:
            raise TenantContextError(str(e)) from e
        except Exception as e:
            logger.error("import failed tenant=%s, transaction rolled back: %s", tenant_id, e)
            error_log.request_failed(str(e))
            raise ImportFailedError(f"Import failed: {e}") from e
        finally:
            counts = error_log.counts()
            log_path = error_log.flush()
            if log_path is not None:
                logger.warning("errors written to %s %s", log_path, counts)
