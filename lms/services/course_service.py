"""Course and lecture store."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from lms.config import Settings
from lms.core.errors import NotFoundError, UpstreamError, ValidationError
from lms.db.mongo import MongoDatabase
from lms.models.course import Course, Lecture
from lms.models.user import MediaRef

logger = structlog.get_logger(__name__)

COURSE_NOT_FOUND = "Course with given id does not exist"
LECTURE_NOT_FOUND = "Lecture with given id does not exist"


def _require_object_id(course_id: str) -> ObjectId:
    if not course_id or not ObjectId.is_valid(course_id):
        raise NotFoundError(COURSE_NOT_FOUND)
    return ObjectId(course_id)


PLACEHOLDER_THUMBNAIL_ID = "Dummy"


def require_fields(*values: Optional[str]) -> None:
    if not all(v is not None and str(v).strip() for v in values):
        raise ValidationError("All fields are required")


class CourseService:
    """
    CRUD over the ``courses`` collection.

    Lecture changes load the course, mutate it through ``Course`` and write the
    lecture list back together with the recomputed count. There is no version
    check, so concurrent edits of the same course can lose an update.
    """

    def __init__(self, database: MongoDatabase, settings: Settings):
        self.collection = database.courses
        self.settings = settings

    async def list_courses(self) -> List[Course]:
        """All courses without their lecture bodies."""
        try:
            docs = await self.collection.find({}, {"lectures": 0}).to_list(length=None)
        except PyMongoError as e:
            logger.error("course_list_failed", error=str(e))
            raise UpstreamError("Database error, please try again")

        return [Course.from_document(doc) for doc in docs]

    async def get(self, course_id: str) -> Course:
        oid = _require_object_id(course_id)
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as e:
            logger.error("course_lookup_failed", course_id=course_id, error=str(e))
            raise UpstreamError("Database error, please try again")
        if not doc:
            raise NotFoundError(COURSE_NOT_FOUND)
        return Course.from_document(doc)

    async def create(
        self,
        title: Optional[str],
        description: Optional[str],
        category: Optional[str],
        created_by: Optional[str],
        thumbnail: Optional[MediaRef] = None,
    ) -> Course:
        require_fields(title, description, category, created_by)

        now = datetime.utcnow()
        course = Course(
            title=title.strip(),
            description=description.strip(),
            category=category.strip(),
            created_by=created_by.strip(),
            thumbnail=thumbnail
            or MediaRef(public_id=PLACEHOLDER_THUMBNAIL_ID, secure_url=self.settings.DEFAULT_THUMBNAIL_URL),
            created_at=now,
            updated_at=now,
        )
        try:
            result = await self.collection.insert_one(course.to_document())
        except PyMongoError as e:
            logger.error("course_create_failed", error=str(e))
            raise UpstreamError("Could not create course, please try again")

        course.id = str(result.inserted_id)
        logger.info("course_created", course_id=course.id, title=course.title)
        return course

    async def update(self, course_id: str, fields: Dict[str, Any]) -> Course:
        oid = _require_object_id(course_id)
        changes = {k: v for k, v in fields.items() if v is not None}
        changes["updated_at"] = datetime.utcnow()
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error("course_update_failed", course_id=course_id, error=str(e))
            raise UpstreamError("Database error, please try again")
        if not doc:
            raise NotFoundError(COURSE_NOT_FOUND)
        logger.info("course_updated", course_id=course_id, fields=sorted(changes))
        return Course.from_document(doc)

    async def delete(self, course_id: str) -> Course:
        """Delete the course and return what was removed."""
        oid = _require_object_id(course_id)
        try:
            doc = await self.collection.find_one_and_delete({"_id": oid})
        except PyMongoError as e:
            logger.error("course_delete_failed", course_id=course_id, error=str(e))
            raise UpstreamError("Database error, please try again")
        if not doc:
            raise NotFoundError(COURSE_NOT_FOUND)
        logger.info("course_deleted", course_id=course_id)
        return Course.from_document(doc)

    async def add_lecture(
        self,
        course_id: str,
        title: Optional[str],
        description: Optional[str],
        media: Optional[MediaRef] = None,
    ) -> Course:
        require_fields(title, description)
        course = await self.get(course_id)
        course.add_lecture(
            Lecture(title=title.strip(), description=description.strip(), lecture=media or MediaRef())
        )
        await self._save_lectures(course)
        logger.info("lecture_added", course_id=course_id, number_of_lectures=course.number_of_lectures)
        return course

    async def remove_lecture(self, course_id: str, lecture_id: str) -> Tuple[Course, Lecture]:
        """Remove a lecture; returns ``(course, removed_lecture)``."""
        if not course_id or not lecture_id:
            raise ValidationError("Course ID and Lecture ID are required")
        course = await self.get(course_id)
        lecture = course.remove_lecture(lecture_id)
        if lecture is None:
            raise NotFoundError(LECTURE_NOT_FOUND)
        await self._save_lectures(course)
        logger.info("lecture_removed", course_id=course_id, lecture_id=lecture_id)
        return course, lecture

    async def _save_lectures(self, course: Course) -> None:
        fields = course.lecture_fields()
        fields["updated_at"] = datetime.utcnow()
        try:
            result = await self.collection.update_one({"_id": ObjectId(course.id)}, {"$set": fields})
        except PyMongoError as e:
            logger.error("lecture_save_failed", course_id=course.id, error=str(e))
            raise UpstreamError("Database error, please try again")
        if result.matched_count == 0:
            raise NotFoundError(COURSE_NOT_FOUND)
