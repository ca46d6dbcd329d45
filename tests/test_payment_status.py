from datetime import date
from types import SimpleNamespace

import pytest

from utils.errors import MonthAlreadySettled
from utils.payment_status import (academic_months, amount_due, arrears_list,
                                  check_not_settled, dashboard_stats,
                                  find_tuition_type, ledger_entries,
                                  months_to_check, paid_months,
                                  student_status, tracking_summary,
                                  unpaid_months)

YEAR = SimpleNamespace(id=1, name='2024/2025')
SPP = SimpleNamespace(id=10, name='SPP', amount=150000, is_recurring=True, period=None)
BOOKS = SimpleNamespace(id=11, name='Buku', amount=300000, is_recurring=False, period=None)


def student(student_id, status='active'):
    return SimpleNamespace(
        id=student_id, name=f'Siswa {student_id}', nis=f'N{student_id}',
        class_name='7A', parent_phone='0812', status=status,
    )


def payment(student_id, type_id, month=None, amount=150000, installment=False, paid_off=False,
            year_id=1, pay_date=date(2024, 8, 1), payment_id=None):
    return SimpleNamespace(
        id=payment_id, student_id=student_id, payment_type_id=type_id, academic_year_id=year_id,
        month=month, amount=amount, is_installment=installment, is_paid_off=paid_off,
        payment_date=pay_date, payment_method='cash', payment_type_name='SPP',
        to_dict=lambda: {'amount': amount},
    )


def test_academic_months_follow_july_to_june():
    months = academic_months('2024/2025')
    assert months[0] == (7, 2024)
    assert months[5] == (12, 2024)
    assert months[6] == (1, 2025)
    assert months[-1] == (6, 2025)
    assert len(months) == 12


def test_academic_months_use_explicit_period():
    months = academic_months('2024/2025', (11, 2024, 2, 2025))
    assert months == [(11, 2024), (12, 2024), (1, 2025), (2, 2025)]


def test_paid_and_unpaid_months_partition_the_year():
    payments = [
        payment(1, SPP.id, month=7),
        payment(1, SPP.id, month=8),
        payment(1, SPP.id, month=9, installment=True),  # unsettled installment
        payment(1, SPP.id, month=1, year_id=2),  # other academic year
        payment(2, SPP.id, month=10),  # other student
    ]
    months = [m for m, _ in academic_months(YEAR.name)]
    paid = paid_months(payments, 1, SPP.id, YEAR.id)
    unpaid = unpaid_months(months, paid)

    assert paid == {7, 8}
    assert set(unpaid) | paid == set(months)
    assert set(unpaid) & paid == set()
    assert amount_due(unpaid, SPP.amount) == 10 * 150000


def test_settled_installment_closes_the_month():
    payments = [payment(1, SPP.id, month=9, installment=True, paid_off=True)]
    assert paid_months(payments, 1, SPP.id, YEAR.id) == {9}


def test_one_time_fee_status():
    unpaid = student_status(student(1), BOOKS, YEAR, [])
    assert unpaid.is_paid is False
    assert unpaid.total_due == 300000

    paid = student_status(student(1), BOOKS, YEAR, [payment(1, BOOKS.id, amount=300000)])
    assert paid.is_paid is True
    assert paid.total_due == 0

    partial = student_status(
        student(1), BOOKS, YEAR, [payment(1, BOOKS.id, amount=100000, installment=True)]
    )
    assert partial.is_paid is False
    assert partial.total_paid == 100000
    assert partial.total_due == 300000


def test_find_tuition_type_prefers_spp_by_name():
    monthly = SimpleNamespace(name='Ekskul', is_recurring=True)
    spp = SimpleNamespace(name='spp', is_recurring=True)
    assert find_tuition_type([monthly, spp]) is spp
    assert find_tuition_type([BOOKS, monthly]) is monthly
    assert find_tuition_type([BOOKS]) is None


def test_months_to_check_stop_at_current_month():
    assert months_to_check(date(2024, 10, 15)) == [7, 8, 9, 10]
    assert months_to_check(date(2025, 2, 1)) == [7, 8, 9, 10, 11, 12, 1, 2]
    assert months_to_check(date(2024, 10, 15), YEAR) == [7, 8, 9, 10]
    # a finished academic year is checked in full
    assert len(months_to_check(date(2025, 9, 1), YEAR)) == 12


def test_arrears_october_scenario():
    students = [student(1), student(2), student(3, status='inactive')]
    payments = [
        payment(1, SPP.id, month=7),
        payment(2, SPP.id, month=7),
        payment(2, SPP.id, month=8),
        payment(2, SPP.id, month=9),
        payment(2, SPP.id, month=10),
    ]

    arrears = arrears_list(students, payments, SPP, YEAR, today=date(2024, 10, 20))

    assert len(arrears) == 1
    assert arrears[0].student_id == 1
    assert arrears[0].unpaid_months == [8, 9, 10]
    assert arrears[0].total_due == 450000


def test_arrears_sorted_by_amount_due():
    students = [student(1), student(2)]
    payments = [payment(1, SPP.id, month=7), payment(1, SPP.id, month=8)]
    arrears = arrears_list(students, payments, SPP, YEAR, today=date(2024, 9, 1))
    assert [a.student_id for a in arrears] == [2, 1]
    assert [a.total_due for a in arrears] == [450000, 150000]


def test_guard_rejects_settled_month():
    payments = [payment(1, SPP.id, month=8)]
    with pytest.raises(MonthAlreadySettled) as excinfo:
        check_not_settled(payments, 1, SPP, YEAR.id, month=8)
    assert excinfo.value.code == 'MONTH_ALREADY_SETTLED'

    check_not_settled(payments, 1, SPP, YEAR.id, month=9)


def test_guard_on_one_time_fee():
    payments = [payment(1, BOOKS.id, amount=300000)]
    with pytest.raises(MonthAlreadySettled) as excinfo:
        check_not_settled(payments, 1, BOOKS, YEAR.id)
    assert excinfo.value.code == 'ALREADY_SETTLED'

    check_not_settled(payments, 1, BOOKS, YEAR.id, is_installment=True)
    check_not_settled([], 1, BOOKS, YEAR.id)


def test_ledger_running_balance():
    payments = [payment(1, SPP.id, month=m, amount=a) for m, a in ((7, 100), (8, 250), (9, 50))]
    assert [e['balance'] for e in ledger_entries(payments)] == [100, 350, 400]
    assert ledger_entries([]) == []


def test_tracking_summary_progress():
    students = [student(1), student(2)]
    payments = [
        payment(1, SPP.id, month=7),
        payment(2, SPP.id, month=7),
        payment(1, BOOKS.id, amount=300000),
    ]
    summary = {s['paymentTypeName']: s for s in tracking_summary(students, payments, [SPP, BOOKS], YEAR)}

    assert summary['SPP']['progress'] == round(2 / 24 * 100, 1)
    assert summary['SPP']['totalPaid'] == 300000
    assert summary['Buku']['paidStudents'] == 1
    assert summary['Buku']['progress'] == 50.0
    assert summary['Buku']['totalDue'] == 300000


def test_dashboard_stats():
    students = [student(1), student(2), student(3, status='graduated')]
    payments = [
        payment(1, SPP.id, month=10, pay_date=date(2024, 10, 2)),
        payment(1, BOOKS.id, amount=300000, pay_date=date(2024, 10, 3)),
        payment(2, SPP.id, month=9, pay_date=date(2024, 9, 30)),
    ]
    for p in payments:
        p.year = p.payment_date.year

    stats = dashboard_stats(students, payments, SPP, today=date(2024, 10, 15))

    assert stats['totalStudents'] == 2
    assert stats['paymentsThisMonth'] == 2
    assert stats['totalAmountThisMonth'] == 450000
    assert stats['totalOutstanding'] == 150000
    assert stats['paymentRate'] == 50.0


def test_arrears_respect_billing_period():
    clubs = SimpleNamespace(id=12, name='Ekskul', amount=50000, is_recurring=True,
                            period=(9, 2024, 12, 2024))

    assert months_to_check(date(2024, 8, 20), YEAR, clubs.period) == []
    assert months_to_check(date(2024, 10, 20), YEAR, clubs.period) == [9, 10]
    assert months_to_check(date(2025, 3, 1), YEAR, clubs.period) == [9, 10, 11, 12]

    arrears = arrears_list([student(1), student(2)], [payment(2, clubs.id, month=9, amount=50000)],
                           clubs, YEAR, today=date(2024, 10, 20))
    assert [(a.student_id, a.unpaid_months, a.total_due) for a in arrears] == [
        (1, [9, 10], 100000),
        (2, [10], 50000),
    ]
