from datetime import date, datetime

MONTH_NAMES = [
    'Januari', 'Februari', 'Maret', 'April', 'Mei', 'Juni',
    'Juli', 'Agustus', 'September', 'Oktober', 'November', 'Desember',
]

MONTH_NAMES_SHORT = [
    'Jan', 'Feb', 'Mar', 'Apr', 'Mei', 'Jun',
    'Jul', 'Agu', 'Sep', 'Okt', 'Nov', 'Des',
]

PAYMENT_METHOD_LABELS = {
    'cash': 'Tunai',
    'transfer': 'Transfer',
    'other': 'Lainnya',
}

_ONES = ['', 'satu', 'dua', 'tiga', 'empat', 'lima', 'enam', 'tujuh', 'delapan', 'sembilan']
_TEENS = [
    'sepuluh', 'sebelas', 'dua belas', 'tiga belas', 'empat belas',
    'lima belas', 'enam belas', 'tujuh belas', 'delapan belas', 'sembilan belas',
]
_TENS = [
    '', 'sepuluh', 'dua puluh', 'tiga puluh', 'empat puluh', 'lima puluh',
    'enam puluh', 'tujuh puluh', 'delapan puluh', 'sembilan puluh',
]


def camel_case(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def parse_date(value) -> date:
    """Accepts a date, a datetime or an ISO string (time part is dropped)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    parsed = datetime.fromisoformat(text)
    return parsed.replace(tzinfo=None)


def month_name(month, short=False) -> str:
    if not month or month < 1 or month > 12:
        return ''
    return MONTH_NAMES_SHORT[month - 1] if short else MONTH_NAMES[month - 1]


def payment_method_label(method) -> str:
    return PAYMENT_METHOD_LABELS.get(method, 'Lainnya')


def format_currency(amount) -> str:
    """Rupiah with dot thousands separators, e.g. ``Rp 150.000``."""
    amount = int(amount or 0)
    sign = '-' if amount < 0 else ''
    return f"{sign}Rp {abs(amount):,}".replace(',', '.')


def format_date(value, long=False) -> str:
    if not value:
        return ''
    value = parse_date(value)
    if long:
        return f"{value.day} {MONTH_NAMES[value.month - 1]} {value.year}"
    return f"{value.day}/{value.month}/{value.year}"


def _spell(num: int) -> str:
    words = []

    if num >= 1_000_000_000:
        billions = num // 1_000_000_000
        words.append(f"{'satu' if billions == 1 else _spell(billions)} milyar")
        num %= 1_000_000_000

    if num >= 1_000_000:
        millions = num // 1_000_000
        words.append(f"{'satu' if millions == 1 else _spell(millions)} juta")
        num %= 1_000_000

    if num >= 1000:
        thousands = num // 1000
        words.append('seribu' if thousands == 1 else f"{_spell(thousands)} ribu")
        num %= 1000

    if num >= 100:
        hundreds = num // 100
        words.append('seratus' if hundreds == 1 else f"{_ONES[hundreds]} ratus")
        num %= 100

    if num > 0:
        if num < 10:
            words.append(_ONES[num])
        elif num < 20:
            words.append(_TEENS[num - 10])
        else:
            words.append(_TENS[num // 10])
            if num % 10:
                words.append(_ONES[num % 10])

    return ' '.join(words)


def number_to_words(num) -> str:
    """Indonesian amount-in-words ("terbilang") for receipts."""
    num = int(num)
    if num == 0:
        return 'nol'
    if num < 0:
        return 'minus ' + number_to_words(-num)
    return _spell(num) + ' rupiah'
