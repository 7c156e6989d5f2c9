from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from portal import repository
from portal.errors import StorageError
from portal.utils import generate_slug

logger = logging.getLogger(__name__)

ORGANISATIONS = "organisations"
COURSES = "courses"
WORKFLOW_CATEGORIES = "workflow_categories"
WORKFLOW_DEPARTMENTS = "workflow_departments"
BOOK_WORKFLOW_DEPARTMENTS = "book_workflow_departments"
BOOK_WORKFLOW_CATEGORIES = "book_workflow_categories"
BOOKS = "books"


@dataclass(frozen=True)
class ReferenceEntity:
    id: int
    name: str
    parent_id: Optional[int] = None
    scope: tuple[str, ...] = ()
    qualifier: tuple[str, ...] = ()
    slug: Optional[str] = None

    @property
    def label(self) -> str:
        if self.qualifier:
            return f"{self.name} by {', '.join(self.qualifier)}"
        return self.name


def _fold(part: str) -> str:
    return part.strip().lower()


def reference_key(*parts: str, normalize: Callable[[str], str] = _fold) -> str:
    return ":".join(normalize(part) for part in parts)


class ReferenceIndex:
    """Case-insensitive lookup over one kind of reference entity.

    Entities are keyed by their scope followed by their own name, so a
    department is found by ``(category, department)`` and a book by
    ``(title, author)``. Names seen while validating are classified as found
    or to-create; both lists keep first-seen order and casing.

    With ``by_slug`` every part is compared by its generated slug and stored
    entities by their own slug, matching tables that are unique on a slug.
    """

    def __init__(
        self,
        kind: str,
        entities: Iterable[ReferenceEntity] = (),
        *,
        by_slug: bool = False,
    ) -> None:
        self.kind = kind
        self._normalize = generate_slug if by_slug else _fold
        self._by_slug = by_slug
        self._entities: dict[str, ReferenceEntity] = {}
        self._found: dict[str, str] = {}
        self._to_create: dict[str, tuple[str, tuple[str, ...]]] = {}
        for entity in entities:
            self.register(entity)

    def register(self, entity: ReferenceEntity) -> None:
        name = entity.slug if self._by_slug and entity.slug else entity.name
        key = self._key(*entity.scope, name, *entity.qualifier)
        self._entities.setdefault(key, entity)

    def _key(self, *parts: str) -> str:
        return reference_key(*parts, normalize=self._normalize)

    def lookup(self, *parts: str) -> Optional[ReferenceEntity]:
        return self._entities.get(self._key(*parts))

    def resolve(self, *parts: str) -> Optional[int]:
        entity = self.lookup(*parts)
        return entity.id if entity else None

    def classify(
        self, *parts: str, label: Optional[str] = None, create: bool = True
    ) -> Optional[ReferenceEntity]:
        key = self._key(*parts)
        entity = self._entities.get(key)
        if entity is not None:
            self._found.setdefault(key, entity.label)
            return entity
        if create and key not in self._to_create:
            stripped = tuple(part.strip() for part in parts)
            self._to_create[key] = (label or stripped[-1], stripped)
        return None

    @property
    def found(self) -> list[str]:
        return list(self._found.values())

    @property
    def to_create(self) -> list[str]:
        return [label for label, _ in self._to_create.values()]

    @property
    def pending(self) -> list[tuple[str, ...]]:
        return [parts for _, parts in self._to_create.values()]

    def __len__(self) -> int:
        return len(self._entities)


def _load(
    kind: str,
    loader: Callable[[], Iterable[ReferenceEntity]],
    *,
    by_slug: bool = False,
) -> ReferenceIndex:
    try:
        entities = list(loader())
    except (SQLAlchemyError, sqlite3.Error) as exc:
        logger.exception("Error fetching %s reference data", kind)
        raise StorageError("Failed to fetch reference data") from exc
    return ReferenceIndex(kind, entities, by_slug=by_slug)


def load_organisations(connection) -> ReferenceIndex:
    return _load(
        ORGANISATIONS,
        lambda: (
            ReferenceEntity(id=item.id, name=item.name)
            for item in repository.list_organisations(connection)
        ),
    )


def load_published_courses(connection) -> ReferenceIndex:
    return _load(
        COURSES,
        lambda: (
            ReferenceEntity(id=item.id, name=item.name)
            for item in repository.list_published_courses(connection)
        ),
    )


def load_workflow_categories(connection) -> ReferenceIndex:
    return _load(
        WORKFLOW_CATEGORIES,
        lambda: (
            ReferenceEntity(id=item.id, name=item.name)
            for item in repository.list_workflow_categories(connection)
        ),
    )


def load_workflow_departments(connection) -> ReferenceIndex:
    return _load(
        WORKFLOW_DEPARTMENTS,
        lambda: (
            ReferenceEntity(
                id=item.id,
                name=item.name,
                parent_id=item.category_id,
                scope=(item.category_name,),
            )
            for item in repository.list_workflow_departments(connection)
        ),
    )


def load_book_workflow_departments(connection) -> ReferenceIndex:
    return _load(
        BOOK_WORKFLOW_DEPARTMENTS,
        lambda: (
            ReferenceEntity(id=item.id, name=item.name)
            for item in repository.list_book_workflow_departments(connection)
        ),
    )


def load_book_workflow_categories(connection) -> ReferenceIndex:
    return _load(
        BOOK_WORKFLOW_CATEGORIES,
        lambda: (
            ReferenceEntity(
                id=item.id,
                name=item.name,
                parent_id=item.department_id,
                scope=(item.department_name,),
                slug=item.slug,
            )
            for item in repository.list_book_workflow_categories(connection)
        ),
        by_slug=True,
    )


def load_books(connection) -> ReferenceIndex:
    return _load(
        BOOKS,
        lambda: (
            ReferenceEntity(id=item.id, name=item.title, qualifier=(item.author,))
            for item in repository.list_books(connection)
        ),
    )
