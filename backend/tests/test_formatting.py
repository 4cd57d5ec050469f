from datetime import date, datetime, timezone
import pytest
from repairdesk.utils.formatting import format_currency, format_date, parse_date, to_cents
from repairdesk.utils.validation import humanize, normalize_status
from repairdesk.constants.statuses import normalize_job_status, job_status_label


def test_format_currency():
    assert format_currency(123450) == '$1,234.50'
    assert format_currency(5) == '$0.05'
    assert format_currency(0) == '$0.00'
    assert format_currency(None) == '$0.00'
    assert format_currency(-2500) == '-$25.00'


def test_format_date_accepts_dates_datetimes_and_strings():
    assert format_date(date(2024, 3, 9)) == '2024-03-09'
    assert format_date(datetime(2024, 3, 9, 17, 5, tzinfo=timezone.utc)) == '2024-03-09'
    assert format_date('2024-03-09T10:00:00Z') == '2024-03-09'
    assert format_date(None) == ''
    assert format_date('soon') == 'soon'


def test_parse_date_and_cents_errors_name_the_field():
    assert parse_date('2024-01-31') == date(2024, 1, 31)
    assert parse_date('') is None
    with pytest.raises(ValueError, match='due_date'):
        parse_date('31/01/2024', 'due_date')
    assert to_cents('1250') == 1250
    with pytest.raises(ValueError, match='rate_cents'):
        to_cents('abc', 'rate_cents')


def test_status_vocabulary():
    assert normalize_job_status('Pending') == 'received'
    assert normalize_job_status('in_progress') == 'repair-in-progress'
    assert normalize_job_status('parts-ordered') == 'repair-in-progress'
    assert normalize_job_status('completed') == 'repair-completed'
    assert normalize_job_status('delivered') == 'picked-up'
    assert normalize_job_status('diagnosis') == 'diagnosis'
    assert job_status_label('ready-for-delivery') == 'Ready for Delivery'
    assert job_status_label('foo-bar') == 'Foo Bar'
    assert humanize('awaiting_parts') == 'Awaiting Parts'
    assert normalize_status('  Custom State ', {}) == 'custom-state'
