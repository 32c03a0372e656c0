import logging
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from config import Catalog
from database import dialect_insert
from errors import ValidationError
from models import Category
from schemas import sanitize_string


logger = logging.getLogger(__name__)

MAX_CATEGORY_NAME_LENGTH = 255


def validate_category_names(names: Sequence[str]) -> list[str]:
    if not names:
        raise ValidationError("Categories cannot be empty")
    cleaned = []
    for name in names:
        sanitized = sanitize_string(name)
        if not sanitized:
            raise ValidationError(
                "Category name cannot be empty or contain only invalid characters"
            )
        if len(sanitized) > MAX_CATEGORY_NAME_LENGTH:
            raise ValidationError(
                f"Category name cannot exceed {MAX_CATEGORY_NAME_LENGTH} characters"
            )
        cleaned.append(sanitized)
    return cleaned


class CategoryReconciler:
    """Brings a tenant's stored categories in line with an ordered name list.

    Works inside the caller's unit of work and never commits.
    """

    def __init__(self, session: Session, tenant_id: str, catalog: Catalog) -> None:
        self.session = session
        self.tenant_id = tenant_id
        self.catalog = catalog

    def names(self) -> list[str]:
        stmt = (
            select(Category.name)
            .where(Category.tenant_id == self.tenant_id)
            .order_by(Category.position, Category.name)
        )
        return list(self.session.scalars(stmt).all())

    def reconcile(self, names: Sequence[str]) -> list[str]:
        cleaned = validate_category_names(names)
        # Duplicates keep their first position.
        ordered = list(dict.fromkeys(cleaned))
        logger.debug(
            f"category_reconcile: tenant={self.tenant_id} categories={ordered}"
        )
        self._upsert(ordered)
        result = self.session.execute(
            delete(Category).where(
                Category.tenant_id == self.tenant_id,
                Category.name.not_in(ordered),
            )
        )
        logger.debug(
            f"category_reconcile: tenant={self.tenant_id} removed={result.rowcount}"
        )
        return ordered

    def ensure_seeded(self) -> list[str]:
        existing = self.names()
        if existing:
            return existing
        logger.info(f"category_seed: tenant={self.tenant_id}")
        # Insert only: a list committed since the read above must survive.
        self._upsert(list(self.catalog.default_categories), overwrite=False)
        return self.names()

    def _upsert(self, names: list[str], overwrite: bool = True) -> None:
        insert = dialect_insert(self.session)
        for position, name in enumerate(names, start=1):
            stmt = insert(Category).values(
                tenant_id=self.tenant_id, name=name, position=position
            )
            if overwrite:
                stmt = stmt.on_conflict_do_update(
                    index_elements=["tenant_id", "name"],
                    set_={"position": stmt.excluded.position},
                )
            else:
                stmt = stmt.on_conflict_do_nothing(
                    index_elements=["tenant_id", "name"]
                )
            self.session.execute(stmt)
