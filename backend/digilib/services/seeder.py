"""
Library Seeder - sample materials for a fresh catalog

ensure_seeded() is safe to call from every start-up and from the admin
dashboard: it does nothing when the catalog already has materials (unless
forced) and each sample carries a unique seed_key, so concurrent seeders can
never insert the same sample twice.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from digilib.core.logging_config import logger
from digilib.models import MaterialCategory, MaterialType
from digilib.services.material_repository import backend_errors


SEEDER_ID = "system_seeder"

# Stable public PDF used where the original source blocks cross-origin reads
RELIABLE_PDF = "https://raw.githubusercontent.com/mozilla/pdf.js/ba2edeae/web/compressed.tracemonkey-pldi-09.pdf"

SEED_MATERIALS: List[Dict[str, Any]] = [
    {
        "seed_key": "pride-and-prejudice",
        "title": "Pride and Prejudice",
        "description": "The famous novel by Jane Austen, following the turbulent relationship "
                       "between Elizabeth Bennet and Fitzwilliam Darcy.",
        "type": MaterialType.BOOK,
        "category": MaterialCategory.GENERAL,
        "tags": ["classic", "romance", "literature"],
        "file_url": RELIABLE_PDF,
    },
    {
        "seed_key": "javascript-for-impatient-programmers",
        "title": "JavaScript for Impatient Programmers",
        "description": "A comprehensive guide to modern JavaScript.",
        "type": MaterialType.BOOK,
        "category": MaterialCategory.ACADEMIC,
        "subject": "Computer Science",
        "semester": "Shared",
        "tags": ["programming", "javascript", "coding"],
        "file_url": RELIABLE_PDF,
    },
    {
        "seed_key": "theory-of-relativity",
        "title": "The Theory of Relativity",
        "description": "Key papers on the special and general theory of relativity.",
        "type": MaterialType.ARTICLE,
        "category": MaterialCategory.ACADEMIC,
        "subject": "Physics",
        "semester": "Research",
        "tags": ["physics", "science", "einstein"],
        "file_url": "https://upload.wikimedia.org/wikipedia/commons/d/d3/Einstein_Relativity.pdf",
    },
    {
        "seed_key": "the-great-gatsby",
        "title": "The Great Gatsby",
        "description": "F. Scott Fitzgerald's portrait of the Jazz Age.",
        "type": MaterialType.BOOK,
        "category": MaterialCategory.GENERAL,
        "tags": ["classic", "fitzgerald"],
        "file_url": RELIABLE_PDF,
    },
    {
        "seed_key": "introduction-to-algorithms",
        "title": "Introduction to Algorithms",
        "description": "Thomas H. Cormen et al. on the design and analysis of algorithms.",
        "type": MaterialType.BOOK,
        "category": MaterialCategory.ACADEMIC,
        "subject": "Computer Science",
        "semester": "Shared",
        "tags": ["algorithms", "cormen"],
        "file_url": RELIABLE_PDF,
    },
    {
        "seed_key": "the-yellow-wallpaper",
        "title": "The Yellow Wallpaper",
        "description": "Short story by Charlotte Perkins Gilman.",
        "type": MaterialType.STORY,
        "category": MaterialCategory.GENERAL,
        "tags": ["short story", "gilman"],
        "file_url": RELIABLE_PDF,
    },
    {
        "seed_key": "nature-emerson",
        "title": "Nature",
        "description": "Essay by Ralph Waldo Emerson.",
        "type": MaterialType.JOURNAL,
        "category": MaterialCategory.GENERAL,
        "tags": ["essay", "emerson"],
        "file_url": RELIABLE_PDF,
    },
    {
        "seed_key": "clean-code",
        "title": "Clean Code",
        "description": "Robert C. Martin on writing readable, maintainable software.",
        "type": MaterialType.BOOK,
        "category": MaterialCategory.GENERAL,
        "tags": ["programming", "craftsmanship"],
        "file_url": RELIABLE_PDF,
    },
]


@dataclass
class SeedResult:
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    already_seeded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": len(self.created),
            "skipped": len(self.skipped),
            "already_seeded": self.already_seeded,
            "seed_keys": self.created,
        }


class LibrarySeeder:
    """Inserts SEED_MATERIALS as published materials"""

    def __init__(self, backend, materials: Optional[List[Dict[str, Any]]] = None):
        self.session_factory = backend.session_factory
        self.repository = backend.repository
        self.change_feed = backend.change_feed
        self.materials = materials if materials is not None else SEED_MATERIALS

    async def ensure_seeded(self, force: bool = False, actor_id: Optional[str] = None) -> SeedResult:
        """
        Seed the catalog.

        Args:
            force: Seed even when materials already exist (duplicates are still skipped)
            actor_id: Admin who triggered the seed, recorded in the audit log
        """
        result = SeedResult()

        if not force:
            async with self.session_factory() as db:
                if await self.repository.count(db) > 0:
                    logger.info("[Seeder] Catalog already has materials, skipping seed")
                    result.already_seeded = True
                    return result

        logger.info(f"[Seeder] Seeding {len(self.materials)} sample materials...")

        for sample in self.materials:
            seed_key = sample["seed_key"]
            async with self.session_factory() as db:
                try:
                    fields = {"description": "", "tags": [], **sample}
                    material = await self.repository.insert(db, **fields, uploaded_by=SEEDER_ID, approved=True)
                    with backend_errors("seed commit"):
                        await db.commit()
                except IntegrityError:
                    await db.rollback()
                    result.skipped.append(seed_key)
                    continue

            result.created.append(seed_key)
            self.change_feed.publish(None, material.to_dict())

        if actor_id:
            async with self.session_factory() as db:
                await self.repository.log_admin_action(
                    db, actor_id, "library_seeded", "library",
                    details=result.to_dict()
                )
                with backend_errors("seed audit commit"):
                    await db.commit()

        logger.info(f"[Seeder] ✓ Created {len(result.created)}, skipped {len(result.skipped)} existing")
        return result
