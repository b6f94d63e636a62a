from plugdeck.dashboard.catalog import (
    CatalogEntry,
    CatalogModel,
    DisplayLine,
    EntryKind,
    LocalInventory,
    Repository,
    SelectionSet,
)


def _repos() -> list[Repository]:
    return [
        Repository("R", "o/r", [CatalogEntry("a"), CatalogEntry("b")]),
        Repository("S", "o/s", [CatalogEntry("c"), CatalogEntry("docs", EntryKind.DIRECTORY)]),
    ]


def test_projection_lists_headers_then_entries_in_order():
    catalog = CatalogModel(_repos())

    assert catalog.lines == [
        DisplayLine(0),
        DisplayLine(0, 0),
        DisplayLine(0, 1),
        DisplayLine(1),
        DisplayLine(1, 0),
        DisplayLine(1, 1),
    ]
    assert catalog.lines[0].is_header
    assert catalog.lines[1].key == (0, 0)


def test_toggle_collapse_twice_restores_projection():
    catalog = CatalogModel(_repos())
    original = list(catalog.lines)

    catalog.toggle_collapse(0)
    assert catalog.lines == [DisplayLine(0), DisplayLine(1), DisplayLine(1, 0), DisplayLine(1, 1)]

    catalog.toggle_collapse(0)
    assert catalog.lines == original


def test_clamp_keeps_cursor_in_range():
    catalog = CatalogModel(_repos())
    catalog.toggle_collapse(1)

    assert catalog.clamp(5) == 3
    assert catalog.clamp(-2) == 0
    assert CatalogModel().clamp(7) == 0


def test_entry_lookup_rejects_out_of_range_keys():
    catalog = CatalogModel(_repos())

    assert catalog.entry((1, 0)).name == "c"
    assert catalog.entry((2, 0)) is None
    assert catalog.entry((0, 5)) is None
    assert catalog.entry_names() == ["a", "b", "c", "docs"]
    assert catalog.entry_count == 4


def test_inventory_refresh_and_mark():
    inventory = LocalInventory()
    inventory.refresh(["a", "b"], {"b"})

    assert "a" not in inventory
    assert "b" in inventory
    assert "unknown" not in inventory

    inventory.mark("a", True)
    inventory.mark("b", False)
    assert inventory.as_dict() == {"a": True, "b": False}
    assert inventory.present() == {"a"}


def test_selection_toggle_and_iteration_order():
    selection = SelectionSet()

    assert selection.toggle((1, 0)) is True
    assert selection.toggle((0, 1)) is True
    assert list(selection) == [(0, 1), (1, 0)]
    assert selection.toggle((1, 0)) is False
    assert len(selection) == 1


def test_selection_purge_drops_keys_invalid_after_reload():
    catalog = CatalogModel(_repos())
    selection = SelectionSet([(0, 1), (1, 1)])

    catalog.load([Repository("R", "o/r", [CatalogEntry("a"), CatalogEntry("b")])])

    assert selection.purge(catalog) == 1
    assert list(selection) == [(0, 1)]
