from admin_console_sdk.lifecycle import LifecycleState
from admin_console_sdk.local_view import matches_filters, matches_search, paginate, sort_entities
from admin_console_sdk.models import CachePage, Entity, PageMode, QueryKey


def _promo(entity_id, code, discount=None, state=LifecycleState.ACTIVE, **extra) -> Entity:
    payload = {"code": code, **extra}
    if discount is not None:
        payload["discount"] = discount
    return Entity(id=entity_id, resource_type="promo_codes", state=state, payload=payload)


SUPERSET = CachePage(
    entities=(
        _promo(1, "SPRING", 10, status="Active"),
        _promo(2, "summer", 25, status="active"),
        _promo(3, "AUTUMN", None, status="expired"),
        _promo(4, "WINTER", 5, state=LifecycleState.TRASHED, status="active"),
        _promo(5, "spring-b", 15, status="ACTIVE"),
    ),
    total=5,
    mode=PageMode.LOCAL,
)


def test_filters_are_case_insensitive_and_support_any_of() -> None:
    assert matches_filters(SUPERSET.entities[0], (("status", "active"),))
    assert not matches_filters(SUPERSET.entities[2], (("status", "active"),))
    assert matches_filters(SUPERSET.entities[2], (("status", ("active", "expired")),))


def test_search_matches_substrings_of_values() -> None:
    assert matches_search(SUPERSET.entities[0], "spr")
    assert matches_search(SUPERSET.entities[1], "25")
    assert not matches_search(SUPERSET.entities[2], "spr")
    assert matches_search(SUPERSET.entities[2], "")


def test_sort_puts_empty_values_last_in_both_directions() -> None:
    key = QueryKey.build("promo_codes", sort="-discount")

    ordered = sort_entities(list(SUPERSET.entities), key.sort)

    assert [entity.id for entity in ordered] == [2, 5, 1, 4, 3]
    ascending = sort_entities(list(SUPERSET.entities), QueryKey.build("promo_codes", sort="discount").sort)
    assert [entity.id for entity in ascending] == [4, 1, 5, 2, 3]


def test_paginate_applies_scope_filters_and_window() -> None:
    key = QueryKey.build("promo_codes", page=1, page_size=2, filters={"status": "active"}, sort="code")

    page = paginate(SUPERSET, key)

    assert page.ids() == [1, 5]
    assert page.total == 3
    assert page.total_exact
    assert page.has_more is True
    assert page.mode == PageMode.LOCAL

    second = paginate(SUPERSET, key.with_page(2))
    assert second.ids() == [2]
    assert second.has_more is False


def test_paginate_trash_scope() -> None:
    page = paginate(SUPERSET, QueryKey.build("promo_codes", scope="trash"))

    assert page.ids() == [4]


def test_truncated_superset_gives_inexact_total() -> None:
    truncated = CachePage(entities=SUPERSET.entities, total=5, total_exact=False, has_more=True)

    page = paginate(truncated, QueryKey.build("promo_codes"))

    assert not page.total_exact
    assert page.total == 4
