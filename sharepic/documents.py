"""
Partitioned document store: SQLAlchemy-backed and an in-memory test implementation.

Each logical collection declares a partition key path. Documents are kept
whole as JSON; the partition key, id and sort key are lifted into columns
so point reads, per-partition scans and ordering stay cheap.
"""

from __future__ import annotations

import copy
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sharepic.errors import ConflictError, NotFound, StorageError, ValidationError

logger = logging.getLogger(__name__)

PHOTOS = "photos"
COMMENTS = "comments"
RATINGS = "ratings"


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    table: str
    partition_key: str
    sort_key: str = "createdAt"


def default_collections(
    photos_table: str = "photos",
    comments_table: str = "comments",
    ratings_table: str = "ratings",
) -> tuple[CollectionSpec, ...]:
    """Photos are partitioned by their own id, children by the parent photo."""
    return (
        CollectionSpec(name=PHOTOS, table=photos_table, partition_key="id"),
        CollectionSpec(name=COMMENTS, table=comments_table, partition_key="photoId"),
        CollectionSpec(name=RATINGS, table=ratings_table, partition_key="photoId"),
    )


@dataclass(frozen=True)
class SubstringMatch:
    """Case-insensitive containment of `term` in any of `fields`."""

    fields: tuple[str, ...]
    term: str


@dataclass(frozen=True)
class DocumentQuery:
    partition_key: Optional[str] = None
    match: Optional[SubstringMatch] = None
    order_by: str = "createdAt"
    descending: bool = True


class AggregateFn(str, enum.Enum):
    COUNT = "count"
    AVG = "avg"


@dataclass(frozen=True)
class Aggregate:
    fn: AggregateFn
    field: Optional[str] = None


class DocumentStore(Protocol):
    """Interface for document access."""

    def provision(self) -> None:
        ...

    def insert(self, collection: str, doc: dict) -> dict:
        ...

    def point_read(self, collection: str, partition_key: str, doc_id: str) -> dict:
        ...

    def query(self, collection: str, query: DocumentQuery) -> list[dict]:
        ...

    def aggregate(
        self, collection: str, partition_key: str, aggregate: Aggregate
    ) -> Any:
        ...


def _document_keys(spec: CollectionSpec, doc: dict) -> tuple[str, str]:
    doc_id = doc.get("id")
    partition_key = doc.get(spec.partition_key)
    if not doc_id or partition_key in (None, ""):
        raise ValidationError(
            f"{spec.name} documents need 'id' and '{spec.partition_key}'"
        )
    return str(partition_key), str(doc_id)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self, collections: Iterable[CollectionSpec] | None = None):
        self.specs: Dict[str, CollectionSpec] = {
            spec.name: spec for spec in (collections or default_collections())
        }
        self.collections: Dict[str, Dict[tuple[str, str], dict]] = {}

    def provision(self) -> None:
        for name in self.specs:
            self.collections.setdefault(name, {})

    def reset(self) -> None:
        """Clear all stored documents (useful in tests)."""
        for docs in self.collections.values():
            docs.clear()

    def _docs(self, collection: str) -> Dict[tuple[str, str], dict]:
        docs = self.collections.get(collection)
        if docs is None:
            raise StorageError(f"collection {collection} is not provisioned")
        return docs

    def insert(self, collection: str, doc: dict) -> dict:
        docs = self._docs(collection)
        key = _document_keys(self.specs[collection], doc)
        if key in docs:
            raise ConflictError(f"{collection} document {key[1]} already exists")
        docs[key] = copy.deepcopy(doc)
        return copy.deepcopy(doc)

    def point_read(self, collection: str, partition_key: str, doc_id: str) -> dict:
        doc = self._docs(collection).get((str(partition_key), str(doc_id)))
        if doc is None:
            raise NotFound(f"{collection} document {doc_id} not found")
        return copy.deepcopy(doc)

    def query(self, collection: str, query: DocumentQuery) -> list[dict]:
        results = []
        for (partition_key, _), doc in self._docs(collection).items():
            if query.partition_key is not None and partition_key != query.partition_key:
                continue
            if query.match and not self._matches(doc, query.match):
                continue
            results.append(copy.deepcopy(doc))
        results.sort(
            key=lambda d: str(d.get(query.order_by) or ""), reverse=query.descending
        )
        return results

    @staticmethod
    def _matches(doc: dict, match: SubstringMatch) -> bool:
        term = match.term.lower()
        for name in match.fields:
            value = doc.get(name)
            if isinstance(value, str) and term in value.lower():
                return True
        return False

    def aggregate(
        self, collection: str, partition_key: str, aggregate: Aggregate
    ) -> Any:
        docs = [
            doc
            for (pk, _), doc in self._docs(collection).items()
            if pk == str(partition_key)
        ]
        if aggregate.fn is AggregateFn.COUNT:
            return len(docs)
        values = [doc.get(aggregate.field) for doc in docs]
        values = [v for v in values if _is_number(v)]
        if not values:
            return None
        return sum(values) / len(values)


def _document_table(metadata: MetaData, spec: CollectionSpec) -> Table:
    return Table(
        spec.table,
        metadata,
        Column("partition_key", String, primary_key=True),
        Column("id", String, primary_key=True),
        Column("sort_key", String, nullable=False, index=True),
        Column("body", JSON, nullable=False),
    )


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(
        self, database_url: str, collections: Iterable[CollectionSpec] | None = None
    ):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise every pooled thread gets its own empty database.
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        else:
            engine_kwargs = {"pool_pre_ping": True, "pool_recycle": 1800}
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        self.metadata = MetaData()
        self.specs: Dict[str, CollectionSpec] = {}
        self.tables: Dict[str, Table] = {}
        for spec in collections or default_collections():
            self.specs[spec.name] = spec
            self.tables[spec.name] = _document_table(self.metadata, spec)

    def provision(self) -> None:
        try:
            self.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"provisioning collections failed: {exc}") from exc
        logger.info(
            "Collections ready: %s",
            ", ".join(f"{s.table} (/{s.partition_key})" for s in self.specs.values()),
        )

    def insert(self, collection: str, doc: dict) -> dict:
        spec = self.specs[collection]
        partition_key, doc_id = _document_keys(spec, doc)
        stmt = self.tables[collection].insert().values(
            partition_key=partition_key,
            id=doc_id,
            sort_key=str(doc.get(spec.sort_key) or ""),
            body=doc,
        )
        try:
            with self.Session() as session:
                session.execute(stmt)
                session.commit()
        except IntegrityError as exc:
            raise ConflictError(
                f"{collection} document {doc_id} already exists"
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"insert into {collection} failed: {exc}") from exc
        return copy.deepcopy(doc)

    def point_read(self, collection: str, partition_key: str, doc_id: str) -> dict:
        table = self.tables[collection]
        stmt = select(table.c.body).where(
            table.c.partition_key == str(partition_key), table.c.id == str(doc_id)
        )
        try:
            with self.Session() as session:
                body = session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError(f"read from {collection} failed: {exc}") from exc
        if body is None:
            raise NotFound(f"{collection} document {doc_id} not found")
        return dict(body)

    def query(self, collection: str, query: DocumentQuery) -> list[dict]:
        spec = self.specs[collection]
        table = self.tables[collection]
        stmt = select(table.c.body)
        if query.partition_key is not None:
            stmt = stmt.where(table.c.partition_key == str(query.partition_key))
        if query.match:
            term = query.match.term.lower()
            stmt = stmt.where(
                or_(
                    *[
                        func.lower(table.c.body[name].as_string(), type_=String)
                        .contains(term, autoescape=True)
                        for name in query.match.fields
                    ]
                )
            )
        if query.order_by == spec.sort_key:
            order_col = table.c.sort_key
        else:
            order_col = table.c.body[query.order_by].as_string()
        stmt = stmt.order_by(order_col.desc() if query.descending else order_col.asc())
        try:
            with self.Session() as session:
                return [dict(body) for body in session.execute(stmt).scalars()]
        except SQLAlchemyError as exc:
            raise StorageError(f"query on {collection} failed: {exc}") from exc

    def aggregate(
        self, collection: str, partition_key: str, aggregate: Aggregate
    ) -> Any:
        table = self.tables[collection]
        if aggregate.fn is AggregateFn.COUNT:
            expr = func.count()
        else:
            expr = func.avg(table.c.body[aggregate.field].as_float())
        stmt = (
            select(expr)
            .select_from(table)
            .where(table.c.partition_key == str(partition_key))
        )
        try:
            with self.Session() as session:
                value = session.execute(stmt).scalar_one()
        except SQLAlchemyError as exc:
            raise StorageError(f"aggregate on {collection} failed: {exc}") from exc
        if aggregate.fn is AggregateFn.COUNT:
            return int(value or 0)
        return None if value is None else float(value)
