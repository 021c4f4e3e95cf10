"""
Fireside Backend — Settings Tests
===================================

What we test:
    ✅ Highlight defaults parse from the environment into enums
    ✅ Unknown colors and visibilities are refused at load time
    ✅ Create requests without color/visibility pick up the defaults
"""

import pydantic
import pytest

from conftest import ALICE_AUTH
from fireside.config import Settings, settings
from fireside.schemas.highlight import HighlightColor, Visibility


class TestHighlightDefaults:

    def test_defaults(self):
        cfg = Settings()
        assert cfg.default_highlight_color is HighlightColor.YELLOW
        assert cfg.default_highlight_visibility is Visibility.PRIVATE

    def test_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_HIGHLIGHT_COLOR", "green")
        monkeypatch.setenv("DEFAULT_HIGHLIGHT_VISIBILITY", "leaders")

        cfg = Settings()

        assert cfg.default_highlight_color is HighlightColor.GREEN
        assert cfg.default_highlight_visibility is Visibility.LEADERS

    @pytest.mark.parametrize("field, value", [
        ("default_highlight_color", "purple"),
        ("default_highlight_visibility", "public"),
    ])
    def test_unknown_value_rejected(self, field, value):
        with pytest.raises(pydantic.ValidationError):
            Settings(**{field: value})

    @pytest.mark.asyncio
    async def test_create_uses_configured_defaults(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "default_highlight_color", HighlightColor.ORANGE)
        monkeypatch.setattr(settings, "default_highlight_visibility", Visibility.GROUP)

        response = await test_client.post(
            "/api/devotions/entries/dev-1/highlights",
            headers=ALICE_AUTH,
            json={"sentence_index": 0},
        )

        assert response.status_code == 201
        assert (response.json()["color"], response.json()["visibility"]) == ("orange", "group")
