"""Read access to students, classes and lessons, plus the student notes log."""

from typing import Optional

from sqlalchemy.orm import Session

from coachboard.errors import NotFoundError
from coachboard.models.student import Student
from coachboard.models.class_ import Class, ClassEnrollment
from coachboard.models.lesson import Lesson


def get_student(db: Session, student_id: str) -> Optional[Student]:
    return db.query(Student).filter(Student.id == student_id).first()


def get_lesson(db: Session, lesson_id: str) -> Optional[Lesson]:
    return db.query(Lesson).filter(Lesson.id == lesson_id).first()


def get_class(db: Session, class_id: str) -> Optional[Class]:
    return db.query(Class).filter(Class.id == class_id).first()


def primary_class_id(db: Session, student_id: str) -> str:
    """The class a student joined first, or "" when unenrolled."""
    enrollment = (
        db.query(ClassEnrollment)
        .filter(ClassEnrollment.student_id == student_id)
        .order_by(ClassEnrollment.joined_at.asc())
        .first()
    )
    return enrollment.class_id if enrollment else ""


def list_students(db: Session) -> list[Student]:
    return db.query(Student).order_by(Student.name).all()


def list_class_students(db: Session, class_id: str) -> list[Student]:
    return (
        db.query(Student)
        .join(ClassEnrollment, ClassEnrollment.student_id == Student.id)
        .filter(ClassEnrollment.class_id == class_id)
        .order_by(Student.name)
        .all()
    )


def student_names(db: Session, student_ids) -> dict[str, str]:
    ids = set(student_ids)
    if not ids:
        return {}
    rows = db.query(Student.id, Student.name).filter(Student.id.in_(ids)).all()
    return {row[0]: row[1] for row in rows}


def append_student_note(db: Session, student_id: str, entry: str) -> Student:
    """Append one line to the student's notes; earlier lines are never rewritten."""
    student = get_student(db, student_id)
    if student is None:
        raise NotFoundError("Student", student_id)
    student.notes = f"{student.notes}\n{entry}" if student.notes else entry
    db.commit()
    db.refresh(student)
    return student
