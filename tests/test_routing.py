from __future__ import annotations

import re
from urllib.parse import parse_qs, urlsplit

from django.test import RequestFactory, SimpleTestCase, override_settings

from embed_redirects.routing import (
    SignedRedirectRequest,
    build_path_url,
    build_query_url,
    extract_signed_request,
    fits_path_scheme,
    match_request,
    route_regex,
)
from embed_redirects.sanitize import is_canonical_url, sanitize_url


class RouteRegexTests(SimpleTestCase):
    def test_matches_checksum_and_raw_remainder(self) -> None:
        match = re.match(route_regex(), 'verified-redirect/abc123/https://example.com/a/b?c=d')
        self.assertIsNotNone(match)
        self.assertEqual(match.group('checksum'), 'abc123')
        self.assertEqual(match.group('destination'), 'https://example.com/a/b?c=d')

    def test_checksum_must_be_alphanumeric(self) -> None:
        self.assertIsNone(re.match(route_regex(), 'verified-redirect/abc-123/https://example.com/'))
        self.assertIsNone(re.match(route_regex(), 'verified-redirect//https://example.com/'))

    def test_prefix_is_configurable(self) -> None:
        self.assertIsNotNone(re.match(route_regex('go'), 'go/abc/https://example.com/'))
        self.assertIsNone(re.match(route_regex('go'), 'verified-redirect/abc/https://example.com/'))


class ExtractSignedRequestTests(SimpleTestCase):
    def test_route_parameters(self) -> None:
        signed = extract_signed_request({'checksum': 'abc', 'destination': 'https://example.com/'}, {})
        self.assertEqual(signed, SignedRedirectRequest(destination='https://example.com/', checksum='abc'))

    def test_query_parameters(self) -> None:
        signed = extract_signed_request({}, {'er-checksum': 'abc', 'verified-redirect': 'https://example.com/'})
        self.assertEqual(signed, SignedRedirectRequest(destination='https://example.com/', checksum='abc'))

    def test_route_parameters_win_over_query(self) -> None:
        signed = extract_signed_request(
            {'checksum': 'abc', 'destination': 'https://example.com/'},
            {'er-checksum': 'zzz', 'verified-redirect': 'https://example.org/'},
        )
        self.assertEqual(signed.checksum, 'abc')
        self.assertEqual(signed.destination, 'https://example.com/')

    def test_missing_fields_return_none(self) -> None:
        self.assertIsNone(extract_signed_request({}, {}))
        self.assertIsNone(extract_signed_request({'checksum': 'abc'}, {}))
        self.assertIsNone(extract_signed_request({}, {'verified-redirect': 'https://example.com/'}))

    def test_present_but_empty_destination_is_still_a_request(self) -> None:
        signed = extract_signed_request({}, {'er-checksum': 'abc', 'verified-redirect': ''})
        self.assertEqual(signed, SignedRedirectRequest(destination='', checksum='abc'))

    @override_settings(EMBED_REDIRECTS_CHECKSUM_PARAM='sig', EMBED_REDIRECTS_DESTINATION_PARAM='to')
    def test_parameter_names_are_configurable(self) -> None:
        signed = extract_signed_request({}, {'sig': 'abc', 'to': 'https://example.com/'})
        self.assertEqual(signed.as_query_vars(), {'to': 'https://example.com/', 'sig': 'abc'})


class MatchRequestTests(SimpleTestCase):
    def setUp(self) -> None:
        self.factory = RequestFactory()

    def test_path_scheme(self) -> None:
        request = self.factory.get('/verified-redirect/abc123/https://example.com/page')
        self.assertEqual(
            match_request(request),
            SignedRedirectRequest(destination='https://example.com/page', checksum='abc123'),
        )

    def test_path_scheme_keeps_the_destination_query_string(self) -> None:
        request = self.factory.get('/verified-redirect/abc123/https://example.com/search?q=embeds&page=2')
        self.assertEqual(match_request(request).destination, 'https://example.com/search?q=embeds&page=2')

    def test_path_scheme_prefers_the_raw_request_uri(self) -> None:
        raw = '/verified-redirect/abc123/https://example.com/a%20b?c=%2F'
        request = self.factory.get(raw, RAW_URI=raw)
        self.assertEqual(match_request(request).destination, 'https://example.com/a%20b?c=%2F')

    def test_path_scheme_reads_request_uri_too(self) -> None:
        raw = '/verified-redirect/abc123/https://example.com/%7Euser'
        request = self.factory.get(raw, REQUEST_URI=raw)
        self.assertEqual(match_request(request).destination, 'https://example.com/%7Euser')

    def test_query_scheme_on_any_path(self) -> None:
        request = self.factory.get(
            '/some/page/',
            {'er-checksum': 'abc123', 'verified-redirect': 'https://example.com/?a=1&b=2'},
        )
        self.assertEqual(
            match_request(request),
            SignedRedirectRequest(destination='https://example.com/?a=1&b=2', checksum='abc123'),
        )

    def test_checksum_in_path_destination_in_query(self) -> None:
        request = self.factory.get('/verified-redirect/abc123/', {'verified-redirect': 'https://example.com/'})
        self.assertEqual(
            match_request(request),
            SignedRedirectRequest(destination='https://example.com/', checksum='abc123'),
        )

    def test_ordinary_requests_do_not_match(self) -> None:
        self.assertIsNone(match_request(self.factory.get('/')))
        self.assertIsNone(match_request(self.factory.get('/verified-redirect/abc123/')))
        self.assertIsNone(match_request(self.factory.get('/', {'verified-redirect': 'https://example.com/'})))


class UrlConstructionTests(SimpleTestCase):
    def test_path_url_appends_the_raw_href(self) -> None:
        self.assertEqual(
            build_path_url('https://site.test/', 'abc123', 'https://example.com/a?b=c'),
            'https://site.test/verified-redirect/abc123/https://example.com/a?b=c',
        )

    def test_query_url_round_trips_the_href(self) -> None:
        href = 'https://example.com/a b/?q=1&r=%2F#frag'
        url = build_query_url('https://site.test/', 'abc123', href)

        parts = urlsplit(url)
        self.assertEqual(parts.netloc, 'site.test')
        self.assertNotIn('#', url)
        query = parse_qs(parts.query)
        self.assertEqual(query['er-checksum'], ['abc123'])
        self.assertEqual(query['verified-redirect'], [href])

    def test_query_url_is_raw_url_encoded(self) -> None:
        url = build_query_url('https://site.test/', 'abc123', 'https://example.com/')
        self.assertEqual(url, 'https://site.test/?er-checksum=abc123&verified-redirect=https%3A%2F%2Fexample.com%2F')

    def test_fits_path_scheme(self) -> None:
        self.assertTrue(fits_path_scheme('https://example.com/'))
        self.assertTrue(fits_path_scheme('https://example.com/search?q=1'))
        self.assertTrue(fits_path_scheme("https://example.com/it's/here"))
        for href in (
            'https://example.com/#top',
            'https://example.com/a%20b',
            'https://example.com/?',
            'https://example.com/a/../b',
            'https://example.com/a/.',
            'https://example.com/a b',
            'mailto:someone@example.com',
            "https://example.com/search?q='x'",
            'https://de.wikipedia.org/wiki/Müller',
        ):
            with self.subTest(href=href):
                self.assertFalse(fits_path_scheme(href))


class SanitizeUrlTests(SimpleTestCase):
    def test_canonical_urls_survive(self) -> None:
        for url in (
            'https://example.com/',
            'http://example.org/a/b?c=d&e=f#g',
            "https://example.com/~user/(x)*,;$!'",
            'https://[::1]:8443/path',
            'https://example.com/café',
            'https://de.wikipedia.org/wiki/Müller?q=ü',
        ):
            with self.subTest(url=url):
                self.assertEqual(sanitize_url(url), url)
                self.assertTrue(is_canonical_url(url))

    def test_non_canonical_urls_change(self) -> None:
        for url in (
            'https://example.com/a b',
            ' https://example.com/',
            'https://example.com/<script>',
            'https://example.com/"quoted"',
            'https://example.com/\x00',
            'https://example.com/\n',
            'https://example.com/%zz',
        ):
            with self.subTest(url=url):
                self.assertNotEqual(sanitize_url(url), url)
                self.assertFalse(is_canonical_url(url))

    def test_other_schemes_are_blanked(self) -> None:
        for url in ('javascript:alert(1)', 'data:text/html,hi', 'ftp://example.com/', '/relative', ''):
            with self.subTest(url=url):
                self.assertEqual(sanitize_url(url), '')

    def test_non_strings_are_blanked(self) -> None:
        self.assertEqual(sanitize_url(None), '')
        self.assertFalse(is_canonical_url(None))
