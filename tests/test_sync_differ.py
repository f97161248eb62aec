"""Tests for the name-only sync differ."""

import pytest

from ontology_sync.errors import ValidationError
from ontology_sync.sync.differ import ContentDiffer, TemplateContentDiffer

from conftest import PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2


@pytest.fixture
def differ():
    return TemplateContentDiffer()


class TestTemplateContentDiffer:
    """Tests for TemplateContentDiffer.diff()."""

    def test_satisfies_protocol(self, differ):
        assert isinstance(differ, ContentDiffer)

    def test_no_local_content_everything_added(self, differ):
        preview = differ.diff(None, PEOPLE_TEMPLATE)
        assert preview.classes_to_add == ["Person"]
        assert preview.properties_to_add == ["email", "birthday"]
        assert preview.classes_to_remove == []

    def test_identical_content_is_empty(self, differ):
        assert differ.diff(PEOPLE_TEMPLATE, PEOPLE_TEMPLATE).is_empty

    def test_updates_by_name(self, differ):
        preview = differ.diff(PEOPLE_TEMPLATE, PEOPLE_TEMPLATE_V2)
        assert preview.classes_to_update == ["Person"]
        assert preview.properties_to_update == ["birthday"]
        assert preview.properties_to_add == []

    def test_removals(self, differ):
        preview = differ.diff(
            PEOPLE_TEMPLATE, "properties:\n  - name: email\n"
        )
        assert preview.properties_to_remove == ["birthday"]
        assert preview.classes_to_remove == ["Person"]

    def test_names_matched_normalized(self, differ):
        preview = differ.diff(
            "properties:\n  - name: job-title\n",
            "properties:\n  - name: Job Title\n",
        )
        assert preview.is_empty

    def test_unparseable_remote_raises(self, differ):
        with pytest.raises(ValidationError):
            differ.diff(None, "[broken")
