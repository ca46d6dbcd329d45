from flask_login import UserMixin
from models.database import db, SerializerMixin
from datetime import datetime


class SchoolInfo(SerializerMixin, db.Model):
    __tablename__ = 'school_info'
    __table_args__ = {'sqlite_autoincrement': True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    address = db.Column(db.Text, nullable=False)
    phone = db.Column(db.String(30), nullable=False)
    email = db.Column(db.String(120), nullable=False)
    principal_name = db.Column(db.String(200), nullable=False)
    npsn = db.Column(db.String(20), nullable=False)
    logo = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def current(cls):
        return cls.query.order_by(cls.id).first()

    def __repr__(self):
        return f'<SchoolInfo {self.name}>'


class AdminSettings(UserMixin, SerializerMixin, db.Model):
    __tablename__ = 'admin_settings'
    __serialize_exclude__ = ('password',)

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False, default='admin')
    password = db.Column(db.String(255), nullable=False)  # werkzeug hash
    app_name = db.Column(db.String(100), nullable=False, default='SPP Manager')
    app_logo = db.Column(db.Text)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<AdminSettings {self.username}>'
