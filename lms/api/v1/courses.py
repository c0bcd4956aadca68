"""Course and lecture endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from lms.core.deps import get_course_service, get_current_user, get_upload_service, require_roles
from lms.core.errors import AppError
from lms.core.security import Role, TokenClaims
from lms.models.course import Course
from lms.schemas.course import (
    CourseEnvelope,
    CourseListEnvelope,
    CourseResponse,
    CourseUpdate,
    LectureListEnvelope,
    LectureResponse,
)
from lms.schemas.user import MessageResponse
from lms.services.course_service import PLACEHOLDER_THUMBNAIL_ID, CourseService, require_fields
from lms.services.upload_service import UploadService

router = APIRouter()

admin_only = require_roles(Role.ADMIN)


def _course_response(course: Course) -> CourseResponse:
    return CourseResponse.model_validate(course)


@router.get("", response_model=CourseListEnvelope)
async def get_all_courses(courses: CourseService = Depends(get_course_service)):
    """List courses; lecture bodies are left out."""
    items = await courses.list_courses()
    return CourseListEnvelope(
        message="All courses",
        courses=[_course_response(course) for course in items],
    )


@router.post("", response_model=CourseEnvelope)
async def create_course(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    created_by: Optional[str] = Form(None, alias="createdBy"),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: TokenClaims = Depends(admin_only),
    courses: CourseService = Depends(get_course_service),
    uploads: UploadService = Depends(get_upload_service),
):
    """Create a course, optionally with a thumbnail image."""
    require_fields(title, description, category, created_by)
    thumbnail_ref = await uploads.upload_optional(thumbnail, subfolder="thumbnails")
    try:
        course = await courses.create(title, description, category, created_by, thumbnail=thumbnail_ref)
    except AppError:
        await uploads.discard(thumbnail_ref)
        raise
    return CourseEnvelope(message="Course created successfully", course=_course_response(course))


@router.delete("/lectures", response_model=CourseEnvelope)
async def remove_lecture_from_course(
    course_id: Optional[str] = Query(None, alias="courseId"),
    lecture_id: Optional[str] = Query(None, alias="lectureId"),
    current_user: TokenClaims = Depends(admin_only),
    courses: CourseService = Depends(get_course_service),
    uploads: UploadService = Depends(get_upload_service),
):
    """Remove one lecture, identified by query parameters, from a course."""
    course, lecture = await courses.remove_lecture(course_id, lecture_id)
    await uploads.storage.delete_quietly(lecture.lecture.public_id)
    return CourseEnvelope(message="Course lecture removed successfully", course=_course_response(course))


@router.get("/{course_id}", response_model=LectureListEnvelope)
async def get_lectures_by_course_id(
    course_id: str,
    current_user: TokenClaims = Depends(get_current_user),
    courses: CourseService = Depends(get_course_service),
):
    course = await courses.get(course_id)
    return LectureListEnvelope(
        message="Course lectures fetched successfully!",
        lectures=[LectureResponse.model_validate(lecture) for lecture in course.lectures],
    )


@router.put("/{course_id}", response_model=CourseEnvelope)
async def update_course(
    course_id: str,
    request: CourseUpdate,
    current_user: TokenClaims = Depends(admin_only),
    courses: CourseService = Depends(get_course_service),
):
    course = await courses.update(course_id, request.model_dump(exclude_unset=True))
    return CourseEnvelope(message="Course updated successfully", course=_course_response(course))


@router.delete("/{course_id}", response_model=MessageResponse)
async def delete_course(
    course_id: str,
    current_user: TokenClaims = Depends(admin_only),
    courses: CourseService = Depends(get_course_service),
    uploads: UploadService = Depends(get_upload_service),
):
    course = await courses.delete(course_id)

    if course.thumbnail.public_id != PLACEHOLDER_THUMBNAIL_ID:
        await uploads.storage.delete_quietly(course.thumbnail.public_id)
    for lecture in course.lectures:
        await uploads.storage.delete_quietly(lecture.lecture.public_id)

    return MessageResponse(message="Course deleted successfully")


@router.post("/{course_id}", response_model=CourseEnvelope)
async def add_lecture_to_course_by_id(
    course_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    lecture: Optional[UploadFile] = File(None),
    current_user: TokenClaims = Depends(admin_only),
    courses: CourseService = Depends(get_course_service),
    uploads: UploadService = Depends(get_upload_service),
):
    """Append a lecture, optionally with its media file."""
    require_fields(title, description)
    await courses.get(course_id)
    media = await uploads.upload_optional(lecture, subfolder="lectures")
    try:
        course = await courses.add_lecture(course_id, title, description, media=media)
    except AppError:
        await uploads.discard(media)
        raise
    return CourseEnvelope(message="Course lecture added successfully", course=_course_response(course))
