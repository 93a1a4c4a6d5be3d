"""
Catalog Service - read-side views over published materials

Handles:
- Category browse with exact-match type/subject/semester refinements
- Facet values (types, subjects, semesters) for filter dropdowns
- Case-insensitive substring search across title, description, subject and tags
- Newest-first ordering shared by every listing
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from digilib.core.exceptions import ValidationError
from digilib.core.logging_config import logger
from digilib.models import Material, MaterialCategory, MaterialType
from digilib.services.material_repository import MaterialRepository


ALL_TYPES = "All"
ALL_VALUES = "all"

CATEGORY_TYPES: Dict[MaterialCategory, List[MaterialType]] = {
    MaterialCategory.GENERAL: [
        MaterialType.BOOK,
        MaterialType.STORY,
        MaterialType.JOURNAL,
        MaterialType.MAGAZINE,
        MaterialType.ARTICLE,
    ],
    MaterialCategory.ACADEMIC: [
        MaterialType.NOTES,
        MaterialType.PQS,
        MaterialType.ASSIGNMENTS,
    ],
}


def sort_materials(items: Iterable[Material]) -> List[Material]:
    """Newest first; a missing timestamp sorts as the oldest and ties keep their order"""
    def _key(material: Material) -> float:
        return material.uploaded_at.timestamp() if material.uploaded_at else 0.0

    return sorted(items, key=_key, reverse=True)


def distinct_values(values: Iterable[Optional[str]]) -> List[str]:
    """Distinct non-empty values in first-seen order"""
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def matches_query(material: Material, needle: str) -> bool:
    """needle must already be lower-cased"""
    haystack = [material.title, material.description, material.subject, *(material.tags or [])]
    return any(needle in value.lower() for value in haystack if value)


@dataclass
class CatalogPage:
    category: MaterialCategory
    items: List[Material]
    types: List[str]
    subjects: List[str] = field(default_factory=lambda: [ALL_VALUES])
    semesters: List[str] = field(default_factory=lambda: [ALL_VALUES])
    filters: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.items)


class CatalogService:
    """Category browse and search over approved materials"""

    def __init__(self, repository: MaterialRepository):
        self.repository = repository

    async def browse(
        self,
        db,
        category: MaterialCategory,
        type: str = ALL_TYPES,
        subject: str = ALL_VALUES,
        semester: str = ALL_VALUES
    ) -> CatalogPage:
        """
        Browse one category.

        Facets come from the whole approved category so the dropdowns keep
        offering every value while a refinement is active. Subject and
        semester refinements only apply to Academic.
        """
        category = MaterialCategory(category)
        type = type or ALL_TYPES
        subject = subject or ALL_VALUES
        semester = semester or ALL_VALUES

        if type != ALL_TYPES:
            try:
                MaterialType(type)
            except ValueError:
                raise ValidationError(f"Unknown material type '{type}'", field="type")

        loaded = await self.repository.query(db, category=category, approved=True)

        items = loaded
        if type != ALL_TYPES:
            items = [m for m in items if m.type.value == type]
        if category == MaterialCategory.ACADEMIC:
            if subject != ALL_VALUES:
                items = [m for m in items if m.subject == subject]
            if semester != ALL_VALUES:
                items = [m for m in items if m.semester == semester]

        page = CatalogPage(
            category=category,
            items=sort_materials(items),
            types=[ALL_TYPES] + [t.value for t in CATEGORY_TYPES[category]],
            filters={"type": type, "subject": subject, "semester": semester},
        )
        if category == MaterialCategory.ACADEMIC:
            page.subjects = [ALL_VALUES] + distinct_values(m.subject for m in loaded)
            page.semesters = [ALL_VALUES] + distinct_values(m.semester for m in loaded)

        logger.debug(f"[Catalog] {category.value} browse {page.filters}: {page.total} of {len(loaded)}")
        return page

    async def search(self, db, query: str) -> List[Material]:
        """Substring search over approved materials; a blank query is rejected before any read"""
        needle = (query or "").strip()
        if not needle:
            raise ValidationError("Search query must not be empty", field="q")

        needle = needle.lower()
        approved = await self.repository.query(db, approved=True)
        results = sort_materials(m for m in approved if matches_query(m, needle))

        logger.info(f"[Catalog] Search '{needle}' matched {len(results)} materials")
        return results
