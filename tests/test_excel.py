from io import BytesIO

import pandas as pd

from utils.excel_handler import sheet_title

XLSX = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def student_row(nis, nisn, name, gender='L', class_name='7A'):
    return {
        'NIS': nis,
        'NISN': nisn,
        'Nama': name,
        'JK': gender,
        'Kelas': class_name,
        'Tempat Lahir': 'Bekasi',
        'Tanggal Lahir': '2011-02-03',
        'Alamat': 'Jl. Kenanga 7',
        'Nama Orang Tua': 'Pak Joko',
        'No HP Orang Tua': '0812000111',
    }


def workbook(rows):
    buf = BytesIO()
    pd.DataFrame(rows).to_excel(buf, index=False, engine='openpyxl')
    buf.seek(0)
    return buf


def upload(client, buf, filename='siswa.xlsx'):
    return client.post('/api/students/import', data={'file': (buf, filename)},
                       content_type='multipart/form-data')


def test_import_students(client, academic_year, make_class, make_student):
    class_7a = make_class('7A', 7, academic_year['id'])
    make_student(nis='2024900')

    buf = workbook([
        student_row('2024101', '0012300001', 'Eka'),
        student_row('2024900', '0012300002', 'Sudah Ada'),
        student_row('2024102', '0012300003', 'Fajar', gender='X'),
        student_row('2024103', '0012300004', ''),
        student_row('2024101', '0012300005', 'Kembar'),
        student_row('2024104', '0012300006', 'gita', gender='p', class_name='8Z'),
    ])
    response = upload(client, buf)
    assert response.status_code == 200
    details = response.get_json()['details']
    assert details['success'] == 2
    assert details['failed'] == 4
    assert len(details['errors']) == 4
    assert details['errors'][0].startswith('Row 3:')

    students = {s['nis']: s for s in client.get('/api/students').get_json()}
    eka = students['2024101']
    assert eka['nisn'] == '0012300001'
    assert eka['classId'] == class_7a['id']
    assert eka['birthDate'] == '2011-02-03'
    assert eka['status'] == 'active'
    assert students['2024104']['gender'] == 'P'
    assert students['2024104']['classId'] is None


def test_import_rejects_bad_uploads(client):
    response = client.post('/api/students/import', data={}, content_type='multipart/form-data')
    assert response.get_json()['code'] == 'MISSING_FILE'

    response = upload(client, BytesIO(b'nis,nama'), 'siswa.csv')
    assert response.get_json()['code'] == 'INVALID_FILE'

    buf = workbook([{'NIS': '1', 'Nama': 'Tanpa kolom lain'}])
    response = upload(client, buf)
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Missing required column: NISN'


def test_export_students(client, make_student):
    make_student(name='Hana', nisn='0098765432')

    response = client.get('/api/students/export')
    assert response.status_code == 200
    assert response.mimetype == XLSX

    df = pd.read_excel(BytesIO(response.data), dtype=str)
    assert list(df['Nama']) == ['Hana']
    assert list(df['NISN']) == ['0098765432']


def test_sheet_titles_are_valid_and_unique():
    taken = set()
    assert sheet_title('Ringkasan', taken) == 'Ringkasan'
    assert sheet_title('ringkasan', taken, 7) == 'ringkasan (7)'
    assert sheet_title('Seragam/Batik: [L]?', taken) == 'Seragam-Batik- -L--'
    long_name = 'Iuran Kegiatan Ekstrakurikuler Semester Ganjil'
    first = sheet_title(long_name, taken, 3)
    second = sheet_title(long_name, taken, 3)
    assert first == long_name[:31]
    assert second == long_name[:27] + ' (3)'
    assert len(sheet_title(long_name, taken, 3)) == 31
