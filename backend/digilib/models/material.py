from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, Boolean, Text, JSON, func
import enum

from digilib.core.database import Base, GUID, generate_uuid


class MaterialType(str, enum.Enum):
    """Material types"""
    BOOK = "Book"
    STORY = "Story"
    JOURNAL = "Journal"
    MAGAZINE = "Magazine"
    ARTICLE = "Article"
    NOTES = "Notes"
    PQS = "PQs"  # Past questions
    ASSIGNMENTS = "Assignments"


class MaterialCategory(str, enum.Enum):
    """Top-level catalog grouping"""
    GENERAL = "General"
    ACADEMIC = "Academic"


class MaterialState(str, enum.Enum):
    """Lifecycle state derived from the approved flag (Removed rows do not exist)"""
    PENDING = "pending"
    PUBLISHED = "published"


def _enum_values(e):
    return [m.value for m in e]


class Material(Base):
    """Catalog entry referencing a document plus descriptive metadata"""
    __tablename__ = "materials"
    __table_args__ = {"sqlite_autoincrement": True}

    # Insertion order; listings break timestamp ties on it
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(GUID, unique=True, nullable=False, default=generate_uuid)

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    type = Column(SQLEnum(MaterialType, values_callable=_enum_values), nullable=False)
    category = Column(SQLEnum(MaterialCategory, values_callable=_enum_values), nullable=False, index=True)

    # Academic only
    subject = Column(String(255), nullable=True)
    semester = Column(String(100), nullable=True)

    tags = Column(JSON, nullable=False, default=list)

    # File details
    file_url = Column(Text, nullable=False)
    file_path = Column(Text, nullable=True)  # Object store path, NULL for external links

    uploaded_by = Column(String(255), nullable=False)
    approved = Column(Boolean, default=False, nullable=False, index=True)
    uploaded_at = Column(DateTime, server_default=func.now(), nullable=True)

    # Uniqueness guard for seeded sample materials
    seed_key = Column(String(100), unique=True, nullable=True)

    @property
    def state(self) -> MaterialState:
        return MaterialState.PUBLISHED if self.approved else MaterialState.PENDING

    @property
    def is_pdf(self) -> bool:
        """Stored uploads and direct .pdf links render inline, anything else is an external preview"""
        if self.file_path:
            return True
        return (self.file_url or "").lower().split("?")[0].endswith(".pdf")

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "category": self.category.value,
            "subject": self.subject,
            "semester": self.semester,
            "tags": list(self.tags or []),
            "file_url": self.file_url,
            "is_pdf": self.is_pdf,
            "uploaded_by": self.uploaded_by,
            "approved": self.approved,
            "status": self.state.value,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    def __repr__(self):
        return f"<Material {self.title} ({self.state.value})>"
