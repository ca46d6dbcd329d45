from models.database import db, SerializerMixin
from datetime import datetime


class AcademicYear(SerializerMixin, db.Model):
    __tablename__ = 'academic_years'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(20), unique=True, nullable=False)  # e.g. "2024/2025"
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    classes = db.relationship('ClassInfo', backref='academic_year', lazy=True)

    def activate(self):
        """Make this the only active year, within the current unit of work."""
        AcademicYear.query.filter(AcademicYear.id != self.id).update(
            {AcademicYear.is_active: False}, synchronize_session='fetch'
        )
        self.is_active = True

    @classmethod
    def get_active(cls):
        return cls.query.filter_by(is_active=True).first()

    def __repr__(self):
        return f'<AcademicYear {self.name}>'


class ClassInfo(SerializerMixin, db.Model):
    __tablename__ = 'classes'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)  # e.g. "7A"
    grade = db.Column(db.Integer, nullable=False)  # 7, 8 or 9
    academic_year_id = db.Column(db.Integer, db.ForeignKey('academic_years.id'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    students = db.relationship('Student', backref='class_info', lazy=True)

    @property
    def section(self):
        # "7A" -> "A"
        return self.name[1:]

    def active_student_count(self):
        from models.student import Student
        return Student.query.filter_by(class_id=self.id, status='active').count()

    def __repr__(self):
        return f'<ClassInfo {self.name}>'
