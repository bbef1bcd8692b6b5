"""Guardian/student/school membership checks used before a link may be initiated."""

from sqlalchemy.orm import Session

from backend.app.core.errors import NotFound, ValidationError
from backend.app.models.guardian import Guardian
from backend.app.models.student import Student


def get_school_guardian(db: Session, school_id: str, guardian_id: str) -> Guardian:
    guardian = db.query(Guardian).filter(Guardian.id == guardian_id).first()
    if guardian is None:
        raise NotFound("Guardian not found")
    if guardian.school_id != school_id:
        raise ValidationError("Guardian does not belong to this school")
    return guardian


def get_school_student(db: Session, school_id: str, student_id: str) -> Student:
    student = db.query(Student).filter(Student.id == student_id).first()
    if student is None:
        raise NotFound("Student not found")
    if student.school_id != school_id:
        raise ValidationError("Student does not belong to this school")
    return student


def ensure_same_school(db: Session, school_id: str, guardian_id: str, student_id: str) -> tuple[Guardian, Student]:
    return get_school_guardian(db, school_id, guardian_id), get_school_student(db, school_id, student_id)
