from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime

from digilib.models.material import MaterialType, MaterialCategory


MAX_TAG_LENGTH = 50


def parse_tags(value: Any) -> List[str]:
    """Turn "a, b,,c" or ["a", " b "] into ["a", "b", "c"], keeping order"""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(tag).strip() for tag in value if str(tag).strip()]


class MaterialCreate(BaseModel):
    """Metadata submitted alongside an uploaded document"""
    title: str = Field(..., max_length=500)
    description: str = ""
    type: MaterialType
    category: MaterialCategory
    subject: Optional[str] = None
    semester: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator('title')
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator('description', mode='before')
    @classmethod
    def strip_description(cls, v: Any) -> str:
        return (v or "").strip()

    @field_validator('tags', mode='before')
    @classmethod
    def split_tags(cls, v: Any) -> List[str]:
        return parse_tags(v)

    @field_validator('tags')
    @classmethod
    def tags_are_short(cls, v: List[str]) -> List[str]:
        for tag in v:
            if len(tag) > MAX_TAG_LENGTH:
                raise ValueError(f"Tags must be at most {MAX_TAG_LENGTH} characters")
        return v

    @model_validator(mode='after')
    def validate_academic_fields(self):
        """Academic materials need subject and semester; General ones carry neither"""
        if self.category == MaterialCategory.ACADEMIC:
            self.subject = (self.subject or "").strip()
            self.semester = (self.semester or "").strip()
            missing = [name for name in ("subject", "semester") if not getattr(self, name)]
            if missing:
                raise ValueError(
                    f"Subject and semester are required for academic materials (missing: {', '.join(missing)})"
                )
        else:
            self.subject = None
            self.semester = None
        return self


class MaterialResponse(BaseModel):
    id: str
    title: str
    description: str
    type: str
    category: str
    subject: Optional[str] = None
    semester: Optional[str] = None
    tags: List[str]
    file_url: str
    is_pdf: bool
    uploaded_by: str
    approved: bool
    status: str
    uploaded_at: Optional[datetime] = None

    @classmethod
    def from_material(cls, material) -> "MaterialResponse":
        return cls(**material.to_dict())


class CatalogResponse(BaseModel):
    """Category browse result plus the filter values a UI offers"""
    category: str
    items: List[MaterialResponse]
    total: int
    types: List[str]
    subjects: List[str]
    semesters: List[str]
    filters: Dict[str, str]


class SearchResponse(BaseModel):
    query: str
    items: List[MaterialResponse]
    total: int


class SubmitResponse(BaseModel):
    material: MaterialResponse
    message: str
