def test_create_class_validation(client):
    assert client.post('/api/classes', json={'grade': 7}).get_json()['code'] == 'MISSING_NAME'
    assert client.post('/api/classes', json={'name': '7A'}).get_json()['code'] == 'MISSING_GRADE'
    assert client.post('/api/classes', json={'name': '6A', 'grade': 6}).get_json()['code'] == 'INVALID_GRADE'
    response = client.post('/api/classes', json={'name': '7A', 'grade': 7, 'academicYearId': 'x'})
    assert response.get_json()['code'] == 'INVALID_ACADEMIC_YEAR_ID'


def test_filter_by_grade_and_year(client, academic_year, make_class):
    make_class('7A', 7, academic_year['id'])
    make_class('7B', 7)
    make_class('8A', 8, academic_year['id'])

    assert [c['name'] for c in client.get('/api/classes?grade=7').get_json()] == ['7A', '7B']
    in_year = client.get(f"/api/classes?academicYearId={academic_year['id']}").get_json()
    assert [c['name'] for c in in_year] == ['7A', '8A']


def test_class_with_active_students_cannot_be_deleted(client, make_class, make_student):
    class_7a = make_class('7A', 7)
    student = make_student(classId=class_7a['id'])

    response = client.delete(f"/api/classes?id={class_7a['id']}")
    assert response.status_code == 400
    assert response.get_json()['code'] == 'CLASS_HAS_ACTIVE_STUDENTS'
    assert client.get(f"/api/classes?id={class_7a['id']}").status_code == 200

    client.put(f"/api/students?id={student['id']}", json={'status': 'graduated'})
    response = client.delete(f"/api/classes?id={class_7a['id']}")
    assert response.status_code == 200
    assert response.get_json()['deletedClass']['name'] == '7A'
    assert client.get(f"/api/students?id={student['id']}").get_json()['classId'] is None


def test_rename_updates_student_class_name(client, make_class, make_student):
    class_7a = make_class('7A', 7)
    student = make_student(classId=class_7a['id'], className='7A')

    response = client.put(f"/api/classes?id={class_7a['id']}", json={'name': '7 Unggulan'})
    assert response.status_code == 200
    assert client.get(f"/api/students?id={student['id']}").get_json()['className'] == '7 Unggulan'


def test_missing_class(client):
    response = client.put('/api/classes?id=42', json={'name': '9C'})
    assert response.status_code == 404
    assert response.get_json()['code'] == 'NOT_FOUND'
