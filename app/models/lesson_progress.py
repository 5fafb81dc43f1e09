from sqlalchemy import CheckConstraint, Column, Integer, ForeignKey, DateTime, Boolean, Numeric, UniqueConstraint, func
from sqlalchemy.orm import relationship
from app.core.database import Base


class LessonProgress(Base):
    __tablename__ = "lesson_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),
        CheckConstraint("watch_time_seconds >= 0", name="ck_lesson_progress_watch_time"),
        CheckConstraint("NOT completed OR completed_at IS NOT NULL", name="ck_lesson_progress_completed_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id"), nullable=False, index=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    watch_time_seconds = Column(Integer, nullable=False, default=0)
    watch_percentage = Column(Numeric(5, 2), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    last_watched_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    user = relationship("User", back_populates="lesson_progress")
    lesson = relationship("Lesson", back_populates="progress_records")

    __mapper_args__ = {"version_id_col": version}
