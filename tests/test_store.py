import pytest

from pdf_stamper.errors import ValidationFailure
from pdf_stamper.models import DocumentMeta, SignatureAsset


def _second_asset(png_bytes):
    return SignatureAsset(
        id="asset-2", name="initials.png", data=png_bytes, mime_type="image/png",
        natural_width=300, natural_height=100,
    )


def test_add_item_selects_and_fits(store, asset):
    sig = store.add_item(asset.id, x=600, y=-10, width=150, height=50, rotation=-90)
    assert store.selected_id == sig.id
    assert (sig.x, sig.y) == (612 - 150, 0)
    assert sig.rotation == 270
    assert sig.opacity == 1.0


def test_add_item_unknown_asset(store):
    with pytest.raises(ValidationFailure):
        store.add_item("missing", 0, 0, 100, 40)


def test_duplicate_asset_id_rejected(store, asset):
    with pytest.raises(ValidationFailure):
        store.add_asset(asset)


def test_z_index_strictly_increases(store, asset):
    zs = [store.add_item(asset.id, 0, 0, 60, 20).z_index for _ in range(4)]
    assert zs == sorted(set(zs))
    # deleting the top item never lets its z come back
    store.remove_item(store.items_by_z()[-1].id)
    assert store.add_item(asset.id, 0, 0, 60, 20).z_index > zs[-1]


def test_remove_asset_cascades(store, asset, png_bytes):
    other = store.add_asset(_second_asset(png_bytes))
    keep = store.add_item(other.id, 0, 0, 60, 20)
    store.add_item(asset.id, 0, 0, 60, 20)
    doomed = store.add_item(asset.id, 10, 10, 60, 20)
    assert store.selected_id == doomed.id

    store.remove_asset(asset.id)
    assert [i.id for i in store.items] == [keep.id]
    assert store.get_asset(asset.id) is None
    assert store.selected_id is None


def test_remove_unused_asset_leaves_items(store, item, png_bytes):
    other = store.add_asset(_second_asset(png_bytes))
    store.remove_asset(other.id)
    assert store.items == (item,)
    assert store.selected_id == item.id


def test_duplicate_offsets_and_selects(store, item):
    dup = store.duplicate_item(item.id)
    assert (dup.x, dup.y) == (120, 120)
    assert (dup.width, dup.height, dup.rotation) == (item.width, item.height, item.rotation)
    assert dup.id != item.id
    assert dup.z_index > item.z_index
    assert store.selected_id == dup.id


def test_duplicate_clamps_at_page_edge(store, asset):
    corner = store.add_item(asset.id, x=612 - 150, y=792 - 50, width=150, height=50)
    dup = store.duplicate_item(corner.id)
    assert (dup.x, dup.y) == (612 - 150, 792 - 50)


def test_set_document_keeps_assets(store, item, pdf_bytes):
    store.set_document(DocumentMeta("other", 1, 595, 842), pdf_bytes)
    assert store.items == ()
    assert store.selected_id is None
    assert [a.id for a in store.assets] == ["asset-1"]


def test_move_clamps(store, item):
    moved = store.move_item(item.id, -50, 10_000)
    assert (moved.x, moved.y) == (0, 792 - 50)


def test_move_unknown_item(store):
    assert store.move_item("nope", 0, 0) is None


@pytest.mark.parametrize('angle,expected', [
    (-90, 270), (360, 0), (359.6, 0), (45.4, 45), (725, 5),
])
def test_rotation_is_whole_degrees(store, item, angle, expected):
    assert store.rotate_item(item.id, angle).rotation == expected


@pytest.mark.parametrize('value,expected', [(-1, 0.0), (0.35, 0.35), (7, 1.0)])
def test_opacity_clamped(store, item, value, expected):
    assert store.set_opacity(item.id, value).opacity == expected


def test_zoom_saturates(store):
    for _ in range(30):
        store.zoom_in()
    assert store.zoom == 2.0
    for _ in range(30):
        store.zoom_out()
    assert store.zoom == 0.5


def test_zoom_steps_are_rounded(store):
    store.zoom_in()
    assert store.zoom == 1.1
    store.set_zoom(9)
    assert store.zoom == 2.0


def test_select_unknown_is_ignored(store, item):
    store.select("nope")
    assert store.selected_id == item.id


def test_listeners_and_unsubscribe(store, item):
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append(store.selected_id))
    store.deselect_all()
    store.deselect_all()  # no change, no notification
    store.select(item.id)
    assert calls == [None, item.id]
    unsubscribe()
    store.deselect_all()
    assert len(calls) == 2


def test_reset_document(store, item):
    store.reset_document()
    assert store.document is None
    assert store.items == ()
