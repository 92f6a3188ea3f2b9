"""Forms for the smartlinker app.

The API accepts JSON bodies with camelCase keys. ``SmartLinkForm`` maps
them onto snake_case fields so Django's form validation can coerce types
and apply defaults before the request reaches the engine.
"""

from __future__ import annotations

from typing import Any, Mapping

from django import forms

# JSON key -> form field name
JSON_FIELDS = {
    'sourceId': 'source_id',
    'content': 'content',
    'title': 'title',
    'topicCluster': 'topic_cluster',
    'relatedClusters': 'related_clusters',
    'funnelStage': 'funnel_stage',
    'targetPersona': 'target_persona',
    'difficultyLevel': 'difficulty_level',
    'contentLifespan': 'content_lifespan',
    'contentType': 'content_type',
    'maxLinks': 'max_links',
    'minScore': 'min_score',
    'excludeIds': 'exclude_ids',
    'autoInsert': 'auto_insert',
    'strictSilo': 'strict_silo',
    'skipCache': 'skip_cache',
}


class ListField(forms.Field):
    """Accept a JSON list or a comma separated string."""

    def to_python(self, value: Any) -> list[str]:
        if value in self.empty_values:
            return []
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, (list, tuple)):
            raise forms.ValidationError('Expected a list.', code='invalid')
        return [str(item).strip() for item in value if str(item).strip()]


class SmartLinkForm(forms.Form):
    """Validate a smart-link request."""

    source_id = forms.CharField(max_length=200)
    content = forms.CharField(strip=False)
    title = forms.CharField(max_length=500)
    topic_cluster = forms.CharField(required=False, max_length=200)
    related_clusters = ListField(required=False)
    funnel_stage = forms.ChoiceField(
        required=False,
        choices=[('', ''), ('awareness', 'awareness'), ('consideration', 'consideration'), ('decision', 'decision')],
    )
    target_persona = forms.CharField(required=False, max_length=100)
    difficulty_level = forms.CharField(required=False, max_length=50)
    content_lifespan = forms.CharField(required=False, max_length=50)
    content_type = forms.CharField(required=False, max_length=50)
    max_links = forms.IntegerField(required=False, min_value=1, max_value=8)
    min_score = forms.FloatField(required=False, min_value=0)
    exclude_ids = ListField(required=False)
    auto_insert = forms.BooleanField(required=False)
    strict_silo = forms.BooleanField(required=False)
    skip_cache = forms.BooleanField(required=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> 'SmartLinkForm':
        data = {field: payload[key] for key, field in JSON_FIELDS.items() if key in payload}
        return cls(data)

    def json_errors(self) -> dict[str, list[str]]:
        """Return field errors keyed by their JSON names."""

        reverse = {field: key for key, field in JSON_FIELDS.items()}
        return {reverse.get(field, field): list(errors) for field, errors in self.errors.items()}


class RemoveLinkForm(forms.Form):
    """Validate a link removal request."""

    content = forms.CharField(strip=False)
    link_id = forms.CharField(required=False, max_length=200)
    remove_all = forms.BooleanField(required=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> 'RemoveLinkForm':
        data = {
            'content': payload.get('content'),
            'link_id': payload.get('linkId'),
            'remove_all': payload.get('all', False),
        }
        return cls({key: value for key, value in data.items() if value is not None})

    def clean(self) -> dict[str, Any]:  # type: ignore[override]
        cleaned_data = super().clean()
        if not cleaned_data.get('link_id') and not cleaned_data.get('remove_all'):
            raise forms.ValidationError('Provide either linkId or all=true.')
        return cleaned_data
