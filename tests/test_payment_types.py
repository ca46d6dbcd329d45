import pytest


@pytest.mark.parametrize('body, code', [
    ({'amount': 1, 'isRecurring': True, 'allowInstallment': False}, 'MISSING_NAME'),
    ({'name': 'SPP', 'isRecurring': True, 'allowInstallment': False}, 'MISSING_AMOUNT'),
    ({'name': 'SPP', 'amount': 1, 'allowInstallment': False}, 'MISSING_IS_RECURRING'),
    ({'name': 'SPP', 'amount': 1, 'isRecurring': True}, 'MISSING_ALLOW_INSTALLMENT'),
    ({'name': 'SPP', 'amount': 0, 'isRecurring': True, 'allowInstallment': False}, 'INVALID_AMOUNT'),
    ({'name': 'SPP', 'amount': '150000', 'isRecurring': True, 'allowInstallment': False}, 'INVALID_AMOUNT'),
    ({'name': 'SPP', 'amount': 1, 'isRecurring': 'ya', 'allowInstallment': False}, 'INVALID_IS_RECURRING'),
    ({'name': 'SPP', 'amount': 1, 'isRecurring': True, 'allowInstallment': 1}, 'INVALID_ALLOW_INSTALLMENT'),
])
def test_create_validation(client, body, code):
    response = client.post('/api/payment-types', json=body)
    assert response.status_code == 400
    assert response.get_json()['code'] == code


def test_create_and_update(client, make_payment_type):
    spp = make_payment_type(description='  Iuran bulanan  ')
    assert spp['isRecurring'] is True
    assert spp['description'] == 'Iuran bulanan'

    response = client.put(f"/api/payment-types?id={spp['id']}", json={'amount': 175000})
    assert response.status_code == 200
    assert response.get_json()['amount'] == 175000
    assert response.get_json()['name'] == 'SPP'


def test_billing_period(client, make_payment_type):
    ekskul = make_payment_type(name='Ekskul', amount=50000, fromMonth=9, fromYear=2024,
                               toMonth=12, toYear=2024)
    assert ekskul['fromMonth'] == 9
    assert ekskul['toYear'] == 2024

    response = client.put(f"/api/payment-types?id={ekskul['id']}", json={'toMonth': 8})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'INVALID_PERIOD'

    response = client.post('/api/payment-types', json={
        'name': 'Les', 'amount': 1, 'isRecurring': True, 'allowInstallment': False,
        'fromMonth': 1, 'fromYear': 'next', 'toMonth': 2, 'toYear': 2025,
    })
    assert response.get_json()['code'] == 'INVALID_PERIOD'


def test_delete_keeps_payment_snapshot(client, academic_year, make_student, make_payment_type, pay):
    student = make_student()
    books = make_payment_type(name='Buku', amount=300000, is_recurring=False)
    payment = pay(student, books, academic_year).get_json()

    response = client.delete(f"/api/payment-types?id={books['id']}")
    assert response.status_code == 200
    assert response.get_json()['deletedPaymentType']['name'] == 'Buku'

    kept = client.get(f"/api/payments?id={payment['id']}").get_json()
    assert kept['paymentTypeName'] == 'Buku'
    assert kept['amount'] == 300000
