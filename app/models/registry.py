# Importing every model registers its table on Base.metadata.
from app.models.user import User
from app.models.course import Course
from app.models.lesson import Lesson
from app.models.enrollment import Enrollment
from app.models.lesson_progress import LessonProgress

__all__ = ["User", "Course", "Lesson", "Enrollment", "LessonProgress"]
