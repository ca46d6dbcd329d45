from models.database import db, SerializerMixin
from datetime import datetime

GENDERS = ('L', 'P')
STUDENT_STATUSES = ('active', 'inactive', 'graduated')


class Student(SerializerMixin, db.Model):
    __tablename__ = 'students'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)

    nis = db.Column(db.String(30), unique=True, nullable=False)
    nisn = db.Column(db.String(30), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    gender = db.Column(db.String(1), nullable=False)  # L / P

    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=True)
    # Display copy of the class name, kept even when class_id is cleared
    class_name = db.Column(db.String(50), nullable=False)

    birth_place = db.Column(db.String(100), nullable=False)
    birth_date = db.Column(db.Date, nullable=False)
    address = db.Column(db.Text, nullable=False)
    parent_name = db.Column(db.String(200), nullable=False)
    parent_phone = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Payments keep their snapshot when the student row is removed
    payments = db.relationship('Payment', backref='student', lazy=True, passive_deletes='all')

    def __repr__(self):
        return f'<Student {self.nis} - {self.name}>'
