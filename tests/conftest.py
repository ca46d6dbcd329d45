import os
import tempfile

os.environ['DATABASE_URI'] = 'sqlite://'
os.environ['LOG_DIR'] = tempfile.mkdtemp(prefix='spp_logs_')
os.environ['LOGIN_REQUIRED'] = 'true'
os.environ['DEFAULT_ADMIN_PASSWORD'] = 'gorengan123'

import pytest

from app import app as flask_app
from models.database import db


@pytest.fixture
def app():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()


@pytest.fixture
def anon_client(app):
    return app.test_client()


@pytest.fixture
def client(app):
    client = app.test_client()
    response = client.post('/api/admin/login', json={'password': 'gorengan123'})
    assert response.status_code == 200
    return client


@pytest.fixture
def academic_year(client):
    response = client.post('/api/academic-years', json={
        'name': '2024/2025',
        'startDate': '2024-07-01',
        'endDate': '2025-06-30',
        'isActive': True,
    })
    assert response.status_code == 201
    return response.get_json()


@pytest.fixture
def make_class(client):
    def _make(name='7A', grade=7, academic_year_id=None):
        body = {'name': name, 'grade': grade}
        if academic_year_id is not None:
            body['academicYearId'] = academic_year_id
        response = client.post('/api/classes', json=body)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _make


@pytest.fixture
def make_student(client):
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        n = counter['n']
        body = {
            'nis': f'2024{n:03d}',
            'nisn': f'00{n:08d}',
            'name': f'Siswa {n}',
            'gender': 'L' if n % 2 else 'P',
            'className': '7A',
            'birthPlace': 'Bandung',
            'birthDate': '2011-03-14',
            'address': 'Jl. Merdeka No. 10',
            'parentName': f'Orang Tua {n}',
            'parentPhone': '081234567890',
        }
        body.update(overrides)
        response = client.post('/api/students', json=body)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _make


@pytest.fixture
def make_payment_type(client):
    def _make(name='SPP', amount=150000, is_recurring=True, allow_installment=False, **extra):
        body = {
            'name': name,
            'amount': amount,
            'isRecurring': is_recurring,
            'allowInstallment': allow_installment,
        }
        body.update(extra)
        response = client.post('/api/payment-types', json=body)
        assert response.status_code == 201, response.get_json()
        return response.get_json()
    return _make


@pytest.fixture
def pay(client):
    def _pay(student, payment_type, academic_year, **overrides):
        body = {
            'studentId': student['id'],
            'studentName': student['name'],
            'studentNis': student['nis'],
            'className': student['className'],
            'paymentTypeId': payment_type['id'],
            'paymentTypeName': payment_type['name'],
            'amount': payment_type['amount'],
            'year': 2024,
            'academicYearId': academic_year['id'],
            'paymentDate': '2024-08-05',
            'paymentMethod': 'cash',
        }
        body.update(overrides)
        return client.post('/api/payments', json=body)
    return _pay
