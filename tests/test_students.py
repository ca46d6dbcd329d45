import pytest

from models.student import Student
from utils import repository
from utils.errors import DuplicateKey


def test_create_and_fetch_student(client, make_student):
    student = make_student(name='  Budi Santoso  ')
    assert student['name'] == 'Budi Santoso'
    assert student['status'] == 'active'
    assert student['birthDate'] == '2011-03-14'

    response = client.get(f"/api/students?id={student['id']}")
    assert response.status_code == 200
    assert response.get_json()['nis'] == student['nis']


def test_missing_required_field(client):
    response = client.post('/api/students', json={'nis': '1'})
    assert response.status_code == 400
    body = response.get_json()
    assert body['code'] == 'MISSING_REQUIRED_FIELD'
    assert body['error'] == 'nisn is required'


def test_invalid_gender_and_status(client, make_student):
    student = make_student()
    response = client.put(f"/api/students?id={student['id']}", json={'gender': 'X'})
    assert response.get_json()['code'] == 'INVALID_GENDER'

    response = client.put(f"/api/students?id={student['id']}", json={'status': 'expelled'})
    assert response.get_json()['code'] == 'INVALID_STATUS'


def test_duplicate_nis_and_nisn(client, make_student):
    first = make_student(nis='1001', nisn='0099887766')

    response = client.post('/api/students', json={
        'nis': '1001', 'nisn': '123', 'name': 'Lain', 'gender': 'P', 'className': '7A',
        'birthPlace': 'Bogor', 'birthDate': '2011-01-01', 'address': 'Jl. A',
        'parentName': 'Ibu', 'parentPhone': '0811',
    })
    assert response.status_code == 400
    assert response.get_json()['code'] == 'DUPLICATE_NIS'

    second = make_student()
    response = client.put(f"/api/students?id={second['id']}", json={'nisn': first['nisn']})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'DUPLICATE_NISN'

    # keeping its own numbers is not a conflict
    response = client.put(f"/api/students?id={first['id']}", json={'nis': '1001', 'name': 'Baru'})
    assert response.status_code == 200
    assert response.get_json()['name'] == 'Baru'

    assert len(client.get('/api/students').get_json()) == 2


def test_list_filters_and_search(client, make_student):
    make_student(name='Ani Lestari')
    make_student(name='Budi', status='graduated')
    make_student(name='Citra', nis='777001')

    assert [s['name'] for s in client.get('/api/students?search=ani').get_json()] == ['Ani Lestari']
    assert [s['name'] for s in client.get('/api/students?search=777').get_json()] == ['Citra']
    assert [s['name'] for s in client.get('/api/students?status=graduated').get_json()] == ['Budi']
    assert len(client.get('/api/students?limit=2').get_json()) == 2
    assert client.get('/api/students?classId=abc').get_json()['code'] == 'INVALID_CLASS_ID'


def test_not_found_and_invalid_id(client):
    response = client.get('/api/students?id=999')
    assert response.status_code == 404
    assert response.get_json()['code'] == 'STUDENT_NOT_FOUND'

    response = client.delete('/api/students?id=abc')
    assert response.status_code == 400
    assert response.get_json()['code'] == 'INVALID_ID'


def test_delete_student_returns_snapshot(client, make_student):
    student = make_student()
    response = client.delete(f"/api/students?id={student['id']}")
    assert response.status_code == 200
    body = response.get_json()
    assert body['message'] == 'Student deleted successfully'
    assert body['student']['nis'] == student['nis']
    assert client.get('/api/students').get_json() == []


def test_batch_update_validation(client, make_student):
    student = make_student()
    cases = [
        ({}, 'MISSING_UPDATES_ARRAY'),
        ({'updates': 'x'}, 'INVALID_UPDATES_TYPE'),
        ({'updates': []}, 'EMPTY_UPDATES_ARRAY'),
        ({'updates': [{'status': 'active'}]}, 'MISSING_STUDENT_ID'),
        ({'updates': [{'id': '5', 'status': 'active'}]}, 'INVALID_STUDENT_ID'),
        ({'updates': [{'id': student['id'], 'status': 'lost'}]}, 'INVALID_STATUS'),
        ({'updates': [{'id': student['id']}]}, 'NO_FIELDS_TO_UPDATE'),
    ]
    for body, code in cases:
        response = client.post('/api/students/batch', json=body)
        assert response.status_code == 400, body
        assert response.get_json()['code'] == code


def test_batch_update_missing_student_changes_nothing(client, make_student):
    student = make_student()
    response = client.post('/api/students/batch', json={'updates': [
        {'id': student['id'], 'status': 'inactive'},
        {'id': 9999, 'status': 'inactive'},
    ]})
    assert response.status_code == 404
    body = response.get_json()
    assert body['code'] == 'STUDENT_NOT_FOUND'
    assert body['studentId'] == 9999
    assert client.get(f"/api/students?id={student['id']}").get_json()['status'] == 'active'


def test_batch_update(client, make_student, make_class):
    class_8a = make_class('8A', 8)
    first, second = make_student(), make_student()
    response = client.post('/api/students/batch', json={'updates': [
        {'id': first['id'], 'classId': class_8a['id'], 'className': '8A'},
        {'id': second['id'], 'status': 'inactive'},
    ]})
    assert response.status_code == 200
    updated = response.get_json()
    assert updated[0]['classId'] == class_8a['id']
    assert updated[0]['className'] == '8A'
    assert updated[1]['status'] == 'inactive'


def test_promote_students(client, make_class, make_student):
    c7a = make_class('7A', 7)
    c8a = make_class('8A', 8)
    c9a = make_class('9A', 9)
    seventh = make_student(classId=c7a['id'], className='7A')
    eighth = make_student(classId=c8a['id'], className='8A')
    ninth = make_student(classId=c9a['id'], className='9A')
    no_class = make_student()

    response = client.post('/api/students/promote', json={})
    assert response.status_code == 200
    body = response.get_json()
    assert body['promoted'] == 2
    assert body['graduated'] == 1
    assert body['skipped'] == [no_class['id']]

    def fetch(student):
        return client.get(f"/api/students?id={student['id']}").get_json()

    assert fetch(seventh)['className'] == '8A'
    assert fetch(eighth)['className'] == '9A'
    assert fetch(eighth)['status'] == 'active'
    assert fetch(ninth)['status'] == 'graduated'


def test_ensure_unique_accepts_non_string_values(app, make_student):
    student = make_student()
    with app.app_context():
        with pytest.raises(DuplicateKey):
            repository.students.ensure_unique(Student.id, student['id'], 'DUPLICATE_ID', 'taken')
        repository.students.ensure_unique(
            Student.id, student['id'], 'DUPLICATE_ID', 'taken', exclude_id=student['id']
        )
        with pytest.raises(DuplicateKey):
            repository.students.ensure_unique(
                Student.nis, f"  {student['nis']} ", 'DUPLICATE_NIS', 'NIS already exists'
            )
