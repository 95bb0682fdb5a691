"""
Relational implementation of the CredentialStore.

Each collection maps to one SQLAlchemy model and one pydantic read schema.
Nested document paths are mapped onto flat columns through the model's
``__field_paths__``. Every operation opens, commits and closes its own session,
so a single store instance can be shared across request threads and the usage
recorder's workers.
"""

from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, NoReturn, Optional, Tuple, Type

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import CollectionName
from ..db.db_api_key_models import APIKey
from ..db.db_base import utc_now
from ..db.db_config import DatabaseManager
from ..db.db_user_models import UserProfile
from ..exceptions import BaseError, ErrorCode, RepositoryError, ValidationError, duplicate
from ..schemas.api_key_schemas import CredentialRecord
from ..schemas.identity_schemas import UserProfileRead
from ..utils.logger import get_logger
from .credential_store import CredentialStore

# collection name -> (ORM model, read schema)
DEFAULT_COLLECTIONS: Dict[str, Tuple[Type[Any], Type[BaseModel]]] = {
    CollectionName.API_KEYS.value: (APIKey, CredentialRecord),
    CollectionName.USER_PROFILES.value: (UserProfile, UserProfileRead),
}


class SqlAlchemyCredentialStore(CredentialStore):
    """CredentialStore backed by SQLite or PostgreSQL through SQLAlchemy."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        collections: Optional[Dict[str, Tuple[Type[Any], Type[BaseModel]]]] = None,
    ):
        """
        Args:
            db_manager: Source of sessions
            collections: Optional override of the collection registry
        """
        self.db_manager = db_manager
        self.collections = dict(collections or DEFAULT_COLLECTIONS)
        self.logger = get_logger()

    # ==================== MAPPING HELPERS ====================

    @staticmethod
    def _key(collection: str) -> str:
        return collection.value if isinstance(collection, Enum) else collection

    def _collection(self, collection: str) -> Tuple[Type[Any], Type[BaseModel]]:
        key = self._key(collection)
        try:
            return self.collections[key]
        except KeyError:
            raise ValidationError(
                f"Unknown collection: {key}",
                field="collection",
                error_code=ErrorCode.INVALID_FORMAT,
                value=key,
            ) from None

    @staticmethod
    def _field_paths(model: Type[Any]) -> Dict[str, str]:
        return getattr(model, "__field_paths__", {})

    def _resolve_column(self, model: Type[Any], path: str) -> str:
        """Map a (possibly dotted) document path onto a column name."""
        column_name = self._field_paths(model).get(path, path)
        if column_name not in model.__table__.columns:
            raise ValidationError(
                f"Unknown field '{path}' for {model.__name__}",
                field=path,
                error_code=ErrorCode.INVALID_FORMAT,
            )
        return column_name

    @staticmethod
    def _to_storage(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value

    def _flatten(self, model: Type[Any], document: Mapping[str, Any]) -> Dict[str, Any]:
        """Turn a nested document into column values."""
        columns: Dict[str, Any] = {}
        for key, value in document.items():
            if isinstance(value, Mapping) and any(
                path.startswith(f"{key}.") for path in self._field_paths(model)
            ):
                for sub_key, sub_value in value.items():
                    columns[self._resolve_column(model, f"{key}.{sub_key}")] = self._to_storage(
                        sub_value
                    )
            else:
                columns[self._resolve_column(model, key)] = self._to_storage(value)
        return columns

    def _to_document(self, entity: Any) -> Dict[str, Any]:
        """Turn a row into a nested document, the inverse of ``_flatten``."""
        model = type(entity)
        nested_by_column = {column: path for path, column in self._field_paths(model).items()}

        document: Dict[str, Any] = {}
        for column in model.__table__.columns:
            value = getattr(entity, column.key)
            path = nested_by_column.get(column.key)
            if path is None:
                document[column.key] = value
                continue
            parent, child = path.split(".", 1)
            if value is not None:
                document.setdefault(parent, {})[child] = value
        return document

    def _to_record(self, schema: Type[BaseModel], entity: Any) -> BaseModel:
        return schema.model_validate(self._to_document(entity))

    # ==================== SESSION HANDLING ====================

    def _handle_db_error(
        self,
        e: Exception,
        operation_name: str,
        collection: str,
        document_id: Optional[str] = None,
    ) -> NoReturn:
        """
        Map storage exceptions onto RepositoryError.

        Raises:
            RepositoryError: With appropriate error code and context
        """
        if isinstance(e, BaseError):
            raise e

        error_context = {"operation_name": operation_name, "collection": collection}
        if document_id:
            error_context["document_id"] = document_id

        if isinstance(e, IntegrityError):
            error_message = str(e.orig).lower() if hasattr(e, "orig") else str(e).lower()
            if "unique" in error_message or "duplicate" in error_message:
                raise duplicate(resource_type=collection, cause=e, **error_context) from e
            raise RepositoryError(
                f"Constraint violation in {collection}: {str(e)}",
                error_code=ErrorCode.CONSTRAINT_VIOLATION,
                cause=e,
                **error_context,
            ) from e

        if isinstance(e, SQLAlchemyError):
            raise RepositoryError(
                f"Database error in {operation_name} on {collection}",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                **error_context,
            ) from e

        raise RepositoryError(
            f"Unexpected error in {operation_name} on {collection}: {str(e)}",
            error_code=ErrorCode.INTERNAL_ERROR,
            cause=e,
            **error_context,
        ) from e

    @contextmanager
    def _session_scope(
        self, operation_name: str, collection: str, document_id: Optional[str] = None
    ) -> Iterator[Session]:
        """One session per operation: commit on success, roll back on any error."""
        session = self.db_manager.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            self._handle_db_error(e, operation_name, collection, document_id)
        finally:
            session.close()

    # ==================== STORE OPERATIONS ====================

    def find_one_by_field(self, collection: str, field: str, value: Any) -> Optional[BaseModel]:
        collection = self._key(collection)
        model, schema = self._collection(collection)
        column = getattr(model, self._resolve_column(model, field))

        with self._session_scope("find_one_by_field", collection) as session:
            # Two rows are enough to tell "unique" from "ambiguous"
            entities = session.scalars(
                select(model).where(column == self._to_storage(value)).limit(2)
            ).all()

        if len(entities) > 1:
            self.logger.error(
                "Store integrity violation: field value is not unique",
                extra={"collection": collection, "field": field},
            )
            raise duplicate(resource_type=collection, field=field)
        if not entities:
            return None
        return self._to_record(schema, entities[0])

    def get_by_id(self, collection: str, document_id: str) -> Optional[BaseModel]:
        collection = self._key(collection)
        model, schema = self._collection(collection)
        with self._session_scope("get_by_id", collection, document_id) as session:
            entity = session.get(model, document_id)
        if entity is None:
            return None
        return self._to_record(schema, entity)

    def create_with_id(
        self, collection: str, document_id: str, document: Mapping[str, Any]
    ) -> BaseModel:
        collection = self._key(collection)
        model, schema = self._collection(collection)
        columns = self._flatten(model, document)
        columns["id"] = document_id

        entity = model(**columns)
        with self._session_scope("create_with_id", collection, document_id) as session:
            session.add(entity)
            session.flush()
            session.refresh(entity)

        self.logger.debug(
            "Document created",
            extra={"collection": collection, "document_id": document_id},
        )
        return self._to_record(schema, entity)

    def update_fields(
        self,
        collection: str,
        document_id: str,
        fields: Mapping[str, Any],
        preconditions: Optional[Dict[str, Any]] = None,
    ) -> bool:
        collection = self._key(collection)
        model, _ = self._collection(collection)
        values = self._flatten(model, fields)
        if not values:
            return False
        if "updated_at" in model.__table__.columns and "updated_at" not in values:
            values["updated_at"] = utc_now()

        stmt = update(model).where(model.id == document_id)
        for path, expected in (preconditions or {}).items():
            column = getattr(model, self._resolve_column(model, path))
            if expected is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == self._to_storage(expected))

        with self._session_scope("update_fields", collection, document_id) as session:
            result = session.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            changed = result.rowcount > 0

        return changed

    def increment_counter(
        self, collection: str, document_id: str, path: str, amount: int = 1
    ) -> bool:
        collection = self._key(collection)
        model, _ = self._collection(collection)
        column = getattr(model, self._resolve_column(model, path))

        # Single UPDATE ... SET col = col + amount; concurrent increments all land
        stmt = (
            update(model)
            .where(model.id == document_id)
            .values({column: column + amount})
            .execution_options(synchronize_session=False)
        )
        with self._session_scope("increment_counter", collection, document_id) as session:
            result = session.execute(stmt)
            changed = result.rowcount > 0

        return changed
