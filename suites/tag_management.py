"""Tag-management UI scenarios written against the Python registry API.

Run with ``python -m acceptance run -m suites.tag_management``; the top page
is the configured base URL, so ``--base-url`` and ``ACCEPTANCE_BASE_URL`` apply.
"""

from __future__ import annotations

from acceptance.assertions import assert_click_navigates_to, assert_page_contains
from acceptance.dsl.models import ClickTarget
from acceptance.registry import Case, ScenarioRegistry
from driver.session import BrowserSession

TAG = "鹿目まどか"


async def open_top_page(session: BrowserSession) -> None:
    await session.navigate(session.config.base_url)


async def contains_tag_list(session: BrowserSession) -> None:
    await assert_page_contains(session, "タグ一覧")


async def contains_category_list(session: BrowserSession) -> None:
    await assert_page_contains(session, "カテゴリ一覧")


async def moves_to_tag_edit(session: BrowserSession) -> None:
    await assert_click_navigates_to(session, ClickTarget(tag="a", text=TAG), f"タグ編集画面({TAG})")


async def returns_to_top(session: BrowserSession) -> None:
    await session.click(ClickTarget(tag="a", text=TAG))
    await assert_click_navigates_to(session, ClickTarget(tag="button", text="back to top"), "タグ一覧")


def register(registry: ScenarioRegistry) -> None:
    registry.register_group(
        "トップページ (python)",
        [
            Case('should contain "タグ一覧"', contains_tag_list),
            Case('should contain "カテゴリ一覧"', contains_category_list),
        ],
        before_all=open_top_page,
    )
    registry.register_group(
        "トップページでのクリック (python)",
        [
            Case('should move "タグ編集画面"', moves_to_tag_edit),
            Case('should return "タグ編集画面" -> "トップページ"', returns_to_top),
        ],
        before_each=open_top_page,
    )
