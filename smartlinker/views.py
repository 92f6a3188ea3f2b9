"""Django views for the smartlinker JSON API.

Every response is JSON with a ``success`` flag. Validation problems are
reported with status 400, a missing engine configuration with 503.
Upstream outages never reach this layer: the engine degrades to an empty
suggestion list instead.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .engine.errors import ConfigurationError, ValidationError
from .engine.placement import remove_all_links, remove_link as remove_link_from_html
from .forms import RemoveLinkForm, SmartLinkForm
from .services import get_engine, request_from_cleaned, validate_payload

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int, **extra: Any) -> JsonResponse:
    body: Dict[str, Any] = {'success': False, 'error': message}
    body.update(extra)
    return JsonResponse(body, status=status_code)


def _json_body(request: HttpRequest) -> Dict[str, Any]:
    try:
        payload = json.loads(request.body or b'{}')
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError('Request body must be valid JSON.') from exc
    if not isinstance(payload, dict):
        raise ValueError('Request body must be a JSON object.')
    return payload


@csrf_exempt
@require_POST
async def smart_link(request: HttpRequest) -> JsonResponse:
    """Return ranked link suggestions for the posted document."""

    try:
        payload = _json_body(request)
        validate_payload(payload)
    except ValueError as exc:
        return _error(str(exc), 400)
    except ValidationError as exc:
        return _error(str(exc), 400, missing=exc.missing)

    form = SmartLinkForm.from_payload(payload)
    if not form.is_valid():
        return _error('Invalid request fields.', 400, errors=form.json_errors())

    try:
        engine = get_engine()
    except ConfigurationError as exc:
        logger.error('Smart-link engine is not configured: %s', exc)
        return _error(str(exc), 503)

    link_request = request_from_cleaned(form.cleaned_data)
    response = await engine.suggest(link_request)
    logger.info(
        'Smart-link %s: %d link(s)%s',
        link_request.source_id,
        len(response.get('links', [])),
        ' (cached)' if response.get('cached') else '',
    )
    return JsonResponse(response)


@csrf_exempt
@require_POST
def remove_link(request: HttpRequest) -> JsonResponse:
    """Unwrap one engine link, or all of them, from the posted content."""

    try:
        payload = _json_body(request)
    except ValueError as exc:
        return _error(str(exc), 400)

    form = RemoveLinkForm.from_payload(payload)
    if not form.is_valid():
        return _error('Invalid request fields.', 400, errors={k: list(v) for k, v in form.errors.items()})

    content = form.cleaned_data['content']
    if form.cleaned_data.get('remove_all'):
        html, removed = remove_all_links(content)
    else:
        html, found = remove_link_from_html(content, form.cleaned_data['link_id'])
        removed = 1 if found else 0
    return JsonResponse({'success': True, 'content': html, 'removed': removed})


@require_GET
def health(request: HttpRequest) -> JsonResponse:
    """Report liveness and the size of the in-memory caches."""

    try:
        engine = get_engine()
    except ConfigurationError as exc:
        return _error(str(exc), 503, status='unconfigured')
    return JsonResponse({'success': True, 'status': 'ok', 'cache': engine.stats()})
