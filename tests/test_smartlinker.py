from __future__ import annotations

import json
from unittest.mock import patch

from django.test import Client, SimpleTestCase
from django.urls import reverse

from smartlinker.engine.errors import ConfigurationError
from smartlinker.engine.index import LinkEngine
from smartlinker.forms import RemoveLinkForm, SmartLinkForm
from smartlinker.services import build_engine, missing_fields, request_from_cleaned

PAYLOAD = {
    'sourceId': 42,
    'content': '<p>Plan the BRRRR refinance timeline.</p>',
    'title': 'BRRRR Basics',
    'topicCluster': 'brrrr-strategy',
    'funnelStage': 'awareness',
    'excludeIds': ['7', 8],
}


class StubEngine:
    def __init__(self) -> None:
        self.requests = []

    async def suggest(self, request):
        self.requests.append(request)
        return {
            'success': True,
            'links': [{'targetId': '101', 'anchorText': 'refinance timeline'}],
            'linkedContent': None,
            'stats': {'candidatesFound': 1},
            'cached': False,
        }

    def stats(self):
        return {'responses': 0, 'embeddings': 0, 'inFlight': 0, 'anchorsTracked': 0, 'backgroundTasks': 0}


def unconfigured():
    raise ConfigurationError('VECTOR_INDEX_URL is not configured')


class SmartLinkFormTests(SimpleTestCase):
    def test_camel_case_payload_maps_to_request(self) -> None:
        form = SmartLinkForm.from_payload(PAYLOAD)
        self.assertTrue(form.is_valid(), form.errors)

        request = request_from_cleaned(form.cleaned_data)

        self.assertEqual(request.source_id, '42')
        self.assertEqual(request.topic_cluster, 'brrrr-strategy')
        self.assertEqual(request.exclude_ids, ('7', '8'))
        self.assertEqual(request.max_links, 5)
        self.assertIsNone(request.target_persona)
        self.assertFalse(request.auto_insert)
        self.assertFalse(request.strict_silo)

    def test_strict_silo_flag_maps_to_request(self) -> None:
        form = SmartLinkForm.from_payload({**PAYLOAD, 'strictSilo': True})
        self.assertTrue(form.is_valid(), form.errors)

        self.assertTrue(request_from_cleaned(form.cleaned_data).strict_silo)

    def test_max_links_range_is_enforced(self) -> None:
        form = SmartLinkForm.from_payload({**PAYLOAD, 'maxLinks': 9})
        self.assertFalse(form.is_valid())
        self.assertIn('maxLinks', form.json_errors())

    def test_missing_fields_treats_blank_strings_as_missing(self) -> None:
        self.assertEqual(missing_fields({'sourceId': 1, 'content': '  '}), ['content', 'title'])

    def test_remove_form_requires_link_id_or_all(self) -> None:
        self.assertFalse(RemoveLinkForm.from_payload({'content': '<p>x</p>'}).is_valid())
        self.assertTrue(RemoveLinkForm.from_payload({'content': '<p>x</p>', 'all': True}).is_valid())


class BuildEngineTests(SimpleTestCase):
    def test_missing_credentials_raise(self) -> None:
        with self.assertRaises(ConfigurationError):
            build_engine({'VECTOR_INDEX_URL': 'https://index.test'})

    def test_engine_is_built_without_analysis(self) -> None:
        engine = build_engine({
            'VECTOR_INDEX_URL': 'https://index.test',
            'VECTOR_INDEX_API_KEY': 'key',
            'EMBEDDING_API_KEY': 'key',
        })
        self.assertIsInstance(engine, LinkEngine)
        self.assertIsNone(engine.analysis)


class SmartLinkViewTests(SimpleTestCase):
    def setUp(self) -> None:
        self.client = Client()
        self.url = reverse('smartlinker:smart_link')

    def post(self, body):
        data = body if isinstance(body, str) else json.dumps(body)
        return self.client.post(self.url, data=data, content_type='application/json')

    def test_returns_engine_response(self) -> None:
        engine = StubEngine()
        with patch('smartlinker.views.get_engine', return_value=engine):
            response = self.post(PAYLOAD)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['links'][0]['targetId'], '101')
        self.assertEqual(engine.requests[0].source_id, '42')

    def test_missing_fields_return_400(self) -> None:
        with patch('smartlinker.views.get_engine', return_value=StubEngine()):
            response = self.post({'sourceId': 1})

        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body['success'])
        self.assertEqual(body['missing'], ['content', 'title'])

    def test_invalid_json_returns_400(self) -> None:
        response = self.post('{not json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('valid JSON', response.json()['error'])

    def test_invalid_field_returns_400(self) -> None:
        response = self.post({**PAYLOAD, 'funnelStage': 'purchase'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('funnelStage', response.json()['errors'])

    def test_get_is_not_allowed(self) -> None:
        self.assertEqual(self.client.get(self.url).status_code, 405)

    def test_unconfigured_engine_returns_503(self) -> None:
        with patch('smartlinker.views.get_engine', side_effect=unconfigured):
            response = self.post(PAYLOAD)

        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.json()['success'])


class RemoveLinkViewTests(SimpleTestCase):
    CONTENT = (
        '<p>Plan the <a href="/t" data-smartlink="1" data-link-id="sl-101-1" data-target-id="101" '
        'data-target-type="post">refinance timeline</a> and read <a href="/keep">this</a>.</p>'
    )

    def post(self, body):
        return Client().post(reverse('smartlinker:remove_link'), data=json.dumps(body), content_type='application/json')

    def test_removes_one_link(self) -> None:
        response = self.post({'content': self.CONTENT, 'linkId': 'sl-101-1'})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['removed'], 1)
        self.assertNotIn('data-smartlink', body['content'])
        self.assertIn('href="/keep"', body['content'])

    def test_removes_all_links(self) -> None:
        response = self.post({'content': self.CONTENT, 'all': True})

        self.assertEqual(response.json()['removed'], 1)

    def test_requires_a_target(self) -> None:
        response = self.post({'content': self.CONTENT})

        self.assertEqual(response.status_code, 400)


class HealthViewTests(SimpleTestCase):
    def test_reports_cache_stats(self) -> None:
        with patch('smartlinker.views.get_engine', return_value=StubEngine()):
            response = Client().get(reverse('smartlinker:health'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')
        self.assertIn('responses', response.json()['cache'])

    def test_unconfigured(self) -> None:
        with patch('smartlinker.views.get_engine', side_effect=unconfigured):
            response = Client().get(reverse('smartlinker:health'))

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['status'], 'unconfigured')
