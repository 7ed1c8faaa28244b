from datetime import datetime, timedelta, timezone

from shlokayug.storage import is_presigned_url_expired
from shlokayug.utils import (
    add_months, extract_hashtags, extract_mentions, format_duration, get_pagination_args,
    is_past, paginate, parse_iso, safe_name, to_iso, utcnow
)


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert add_months(datetime(2023, 1, 31), 1) == datetime(2023, 2, 28)
    assert add_months(datetime(2024, 11, 15), 3) == datetime(2025, 2, 15)
    assert add_months(datetime(2024, 2, 29), 12) == datetime(2025, 2, 28)


def test_parse_iso_assumes_utc():
    parsed = parse_iso('2024-05-01T10:00:00')
    assert parsed.tzinfo == timezone.utc
    assert parse_iso(None) is None


def test_is_past():
    assert is_past(to_iso(utcnow() - timedelta(seconds=5)))
    assert not is_past(to_iso(utcnow() + timedelta(hours=1)))
    assert not is_past(None)


def test_hashtags_are_lowercased_and_unique():
    text = 'Morning #Gita practice #gita #संस्कृतम् with @guru_ji and @guru_ji'
    assert extract_hashtags(text) == ['gita', 'संस्कृतम्']
    assert extract_mentions(text) == ['guru_ji']


def test_format_duration():
    assert format_duration(125) == '2:05'
    assert format_duration(0) == '0:00'


def test_safe_name_replaces_punctuation():
    assert safe_name('Gita: Chapter 2!') == 'Gita__Chapter_2_'


def test_pagination_args_are_clamped():
    assert get_pagination_args({}) == (1, 10)
    assert get_pagination_args({'page': '0', 'limit': '500'}) == (1, 50)
    assert get_pagination_args({'page': 'x', 'limit': 'y'}) == (1, 10)


def test_paginate():
    result = paginate(list(range(25)), page=3, limit=10)
    assert result['items'] == [20, 21, 22, 23, 24]
    assert result['pagination'] == {'page': 3, 'limit': 10, 'total': 25, 'pages': 3}
    assert paginate([], 1, 10)['pagination']['pages'] == 0


def test_presigned_url_expiry():
    issued = datetime.utcnow().strftime('%Y%m%dT%H%M%SZ')
    fresh = f'https://s3.test/key?X-Amz-Date={issued}&X-Amz-Expires=604800'
    short = f'https://s3.test/key?X-Amz-Date={issued}&X-Amz-Expires=600'
    assert not is_presigned_url_expired(fresh)
    assert is_presigned_url_expired(short)
    assert is_presigned_url_expired('https://s3.test/key')
