"""
Tests for source descriptors, fetching and parsing.
"""

import logging
from unittest.mock import Mock, patch

import pytest
import requests

from feed_sources import FILE_SOURCE, URL_SOURCE, FeedFetcher, FeedSource
from merge_errors import FeedParseError, FetchError

FEED = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    '<rss version="2.0" xmlns:g="http://base.google.com/ns/1.0"><channel><title>Shop</title>'
    '<item><g:id>1</g:id><title>Shoe</title></item>'
    '</channel></rss>'
)


@pytest.fixture
def fetcher():
    return FeedFetcher(timeout=5)


def mock_response(content=b'', error=None):
    response = Mock()
    response.content = content
    response.raise_for_status.side_effect = error
    return response


def test_source_from_arg():
    url = FeedSource.from_arg(' https://example.com/feed.xml ')
    assert url.kind == URL_SOURCE
    assert url.display_name == 'https://example.com/feed.xml'

    local = FeedSource.from_arg('data/feeds/a.xml')
    assert local.kind == FILE_SOURCE
    assert local.display_name == 'a.xml'
    assert local.path == 'data/feeds/a.xml'


def test_source_is_configured():
    assert FeedSource.from_url('https://example.com').is_configured
    assert not FeedSource.from_url('   ').is_configured
    assert not FeedSource.from_file(None).is_configured
    assert FeedSource.from_file('a.xml').is_configured


def test_fetch_url(fetcher):
    with patch('requests.get') as mock_get:
        mock_get.return_value = mock_response(FEED.encode('utf-8'))

        text = fetcher.fetch_text(FeedSource.from_url('https://example.com/a.xml'))

        assert text == FEED
        mock_get.assert_called_once()
        assert mock_get.call_args[0][0] == 'https://example.com/a.xml'
        assert mock_get.call_args[1]['timeout'] == 5


def test_fetch_url_http_error_names_the_url(fetcher):
    with patch('requests.get') as mock_get:
        mock_get.return_value = mock_response(error=requests.exceptions.HTTPError('404 Not Found'))

        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch_text(FeedSource.from_url('https://example.com/missing.xml'))

    assert 'https://example.com/missing.xml' in str(exc_info.value)
    assert exc_info.value.source == 'https://example.com/missing.xml'


def test_fetch_url_network_error(fetcher):
    with patch('requests.get', side_effect=requests.exceptions.ConnectionError('refused')):
        with pytest.raises(FetchError):
            fetcher.fetch_text(FeedSource.from_url('https://example.com/a.xml'))


def test_read_file(fetcher, tmp_path):
    path = tmp_path / 'shop.xml'
    path.write_text(FEED, encoding='utf-8')

    assert fetcher.fetch_text(FeedSource.from_file(str(path))) == FEED


def test_read_missing_file(fetcher, tmp_path):
    with pytest.raises(FetchError) as exc_info:
        fetcher.fetch_text(FeedSource.from_file(str(tmp_path / 'nope.xml')))

    assert 'nope.xml' in str(exc_info.value)


def test_unconfigured_source_is_rejected(fetcher):
    with pytest.raises(FetchError):
        fetcher.fetch_text(FeedSource.from_url(''))


def test_parse_returns_root(fetcher):
    root = fetcher.parse(FEED, 'shop.xml')

    assert root.tag == 'rss'
    assert len(list(root.iter('item'))) == 1


def test_parse_error(fetcher):
    with pytest.raises(FeedParseError) as exc_info:
        fetcher.parse('<rss><channel></rss>', 'broken.xml')

    assert exc_info.value.source == 'broken.xml'


def test_fetch_all_keeps_source_order(fetcher, tmp_path):
    first = tmp_path / 'first.xml'
    second = tmp_path / 'second.xml'
    first.write_text(FEED.replace('Shop', 'First'), encoding='utf-8')
    second.write_text(FEED.replace('Shop', 'Second'), encoding='utf-8')

    roots = fetcher.fetch_all([FeedSource.from_file(str(first)), FeedSource.from_file(str(second))])

    assert [root.find('channel/title').text for root in roots] == ['First', 'Second']


def test_fetch_all_raises_first_failure(fetcher, tmp_path):
    good = tmp_path / 'good.xml'
    good.write_text(FEED, encoding='utf-8')
    bad = tmp_path / 'bad.xml'
    bad.write_text('<rss>', encoding='utf-8')

    sources = [
        FeedSource.from_file(str(good)),
        FeedSource.from_file(str(tmp_path / 'missing.xml')),
        FeedSource.from_file(str(bad)),
    ]

    with pytest.raises(FetchError) as exc_info:
        fetcher.fetch_all(sources)

    assert exc_info.value.source == 'missing.xml'


def test_fetch_all_empty(fetcher):
    assert fetcher.fetch_all([]) == []


def test_parse_logs_feed_title(fetcher, caplog):
    with caplog.at_level(logging.INFO, logger='feed_sources'):
        fetcher.parse(FEED, 'shop.xml')

    titles = [r for r in caplog.records if r.levelno == logging.INFO and 'Shop' in r.getMessage()]
    assert titles
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_encoding_mismatch_logs_bozo_warning(fetcher, caplog):
    legacy = (
        '<?xml version="1.0" encoding="us-ascii"?>'
        '<rss version="2.0" xmlns:g="http://base.google.com/ns/1.0"><channel><title>Café</title>'
        '<item><g:id>1</g:id><title>Crème</title></item>'
        '</channel></rss>'
    )

    with caplog.at_level(logging.INFO, logger='feed_sources'):
        fetcher._describe_feed(legacy, 'legacy.xml')

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert 'legacy.xml' in warnings[0].getMessage()
