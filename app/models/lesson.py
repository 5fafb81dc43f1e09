import math
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

class Lesson(Base):
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    title = Column(String, index=True, nullable=False)
    description = Column(String, nullable=True)
    video_id = Column(String, nullable=True, index=True)
    order = Column(Integer, nullable=False, default=0)
    is_free = Column(Boolean, nullable=False, default=False)
    # "metadata" is reserved on declarative classes
    video_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    course = relationship("Course", back_populates="lessons")
    progress_records = relationship("LessonProgress", back_populates="lesson", cascade="all, delete-orphan")

    @property
    def duration_seconds(self):
        duration = (self.video_metadata or {}).get("duration")
        if duration is None:
            return None
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            return None
        return duration if math.isfinite(duration) and duration > 0 else None

    @property
    def video_status(self):
        return (self.video_metadata or {}).get("video_status")
