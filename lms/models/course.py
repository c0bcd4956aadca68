"""Course document model with its embedded lectures."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pydantic import BaseModel, Field, PrivateAttr

from lms.models.user import MediaRef


class Lecture(BaseModel):
    id: str = Field(default_factory=lambda: str(ObjectId()))
    title: str
    description: str
    lecture: MediaRef = Field(default_factory=MediaRef)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Lecture":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(exclude={"id"})
        doc["_id"] = ObjectId(self.id)
        return doc


class Course(BaseModel):
    """
    A course and the ordered list of lectures it owns.

    The lecture list is private: it only changes through ``add_lecture`` and
    ``remove_lecture``, and ``number_of_lectures`` is always derived from it.
    """

    id: Optional[str] = None
    title: str
    description: str
    category: str
    created_by: str
    thumbnail: MediaRef = Field(default_factory=MediaRef)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    _lectures: List[Lecture] = PrivateAttr(default_factory=list)
    # Set when the document was read without its lectures
    _summary_count: Optional[int] = PrivateAttr(default=None)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Course":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        stored_count = data.pop("number_of_lectures", 0)
        lectures = data.pop("lectures", None)
        course = cls(**data)
        if lectures is None:
            course._summary_count = stored_count
        else:
            course._lectures = [Lecture.from_document(lec) for lec in lectures]
        return course

    @property
    def lectures(self) -> Tuple[Lecture, ...]:
        return tuple(self._lectures)

    @property
    def number_of_lectures(self) -> int:
        if self._summary_count is not None:
            return self._summary_count
        return len(self._lectures)

    def _require_lectures(self) -> None:
        if self._summary_count is not None:
            raise RuntimeError("Course was loaded without its lectures")

    def add_lecture(self, lecture: Lecture) -> Lecture:
        self._require_lectures()
        self._lectures.append(lecture)
        return lecture

    def find_lecture(self, lecture_id: str) -> Optional[Lecture]:
        return next((lec for lec in self._lectures if lec.id == lecture_id), None)

    def remove_lecture(self, lecture_id: str) -> Optional[Lecture]:
        """Remove and return the lecture, or None when it is not in the course."""
        self._require_lectures()
        lecture = self.find_lecture(lecture_id)
        if lecture is not None:
            self._lectures.remove(lecture)
        return lecture

    def lecture_fields(self) -> Dict[str, Any]:
        """The embedded list and its count, ready for a ``$set``."""
        self._require_lectures()
        return {
            "lectures": [lec.to_document() for lec in self._lectures],
            "number_of_lectures": self.number_of_lectures,
        }

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(exclude={"id"})
        doc.update(self.lecture_fields())
        if self.id:
            doc["_id"] = ObjectId(self.id)
        return doc
