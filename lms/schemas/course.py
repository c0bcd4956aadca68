"""Course and lecture schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import StringConstraints

from lms.schemas.user import CamelModel, MediaResponse, MessageResponse

# Surrounding whitespace is dropped before the length check
NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CourseUpdate(CamelModel):
    """Partial course update; only provided fields are changed."""

    title: Optional[NonBlankStr] = None
    description: Optional[NonBlankStr] = None
    category: Optional[NonBlankStr] = None
    created_by: Optional[NonBlankStr] = None


class LectureResponse(CamelModel):
    id: str
    title: str
    description: str
    lecture: MediaResponse


class CourseResponse(CamelModel):
    id: str
    title: str
    description: str
    category: str
    created_by: str
    thumbnail: MediaResponse
    number_of_lectures: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CourseEnvelope(MessageResponse):
    course: CourseResponse


class CourseListEnvelope(MessageResponse):
    courses: List[CourseResponse]


class LectureListEnvelope(MessageResponse):
    lectures: List[LectureResponse]


CourseEnvelope.model_rebuild()
CourseListEnvelope.model_rebuild()
LectureListEnvelope.model_rebuild()
