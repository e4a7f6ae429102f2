"""Pages domain — deterministic script pagination and scene ordering."""

from reelledger.pages.models import Page, Scene
from reelledger.pages.scenes import parse_scene_number, scene_sort_key, sort_scenes
from reelledger.pages.splitter import (
    SCRIPT_LINES_PER_PAGE,
    join_pages,
    page_count,
    replace_page,
    split_pages,
)

__all__ = [
    "Page",
    "SCRIPT_LINES_PER_PAGE",
    "Scene",
    "join_pages",
    "page_count",
    "parse_scene_number",
    "replace_page",
    "scene_sort_key",
    "sort_scenes",
    "split_pages",
]
