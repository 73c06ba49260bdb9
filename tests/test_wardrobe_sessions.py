"""Tests for the session wardrobe and session manager."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from services.image_codec import data_url_to_bytes
from services.session_manager import SessionManager
from services.wardrobe import DEFAULT_WARDROBE, Wardrobe, garment_name_from_filename
from tests.fakes import FakeGenerator, png_upload


def test_default_wardrobe_is_empty() -> None:
    assert DEFAULT_WARDROBE == []
    assert len(Wardrobe()) == 0


def test_garment_names_come_from_filenames() -> None:
    assert garment_name_from_filename("red_summer-dress.png") == "Red summer dress"
    assert garment_name_from_filename("uploads/JACKET.webp") == "Jacket"
    assert garment_name_from_filename("") == "Custom garment"


def test_add_get_remove_items() -> None:
    wardrobe = Wardrobe()
    upload = png_upload("blue_shirt.png", image_type="garment")

    item = wardrobe.add(upload)
    named = wardrobe.add(png_upload("x.png", image_type="garment"), name="  Party hat ")

    assert item.id.startswith("custom-")
    assert item.id != named.id
    assert item.name == "Blue shirt"
    assert named.name == "Party hat"
    assert item.file is upload
    assert data_url_to_bytes(item.url) == (upload.data, "image/png")
    assert wardrobe.get(item.id) is item
    assert item.id in wardrobe
    assert [i.id for i in wardrobe] == [item.id, named.id]
    assert wardrobe.to_list()[0] == {"id": item.id, "name": "Blue shirt", "url": item.url}

    assert wardrobe.remove(item.id) is True
    assert wardrobe.remove(item.id) is False
    assert wardrobe.get(item.id) is None

    wardrobe.clear()
    assert len(wardrobe) == 0


def test_sessions_share_generator_but_not_state() -> None:
    generator = FakeGenerator()
    manager = SessionManager(generator)

    first = manager.create_session()
    second = manager.create_session()
    first.start.select_photo(png_upload())

    assert manager.get_session(first.session_id) is first
    assert manager.get_session_count() == 2
    assert second.start.generated_model_url is None
    assert first.start.generated_model_url is not None


def test_expired_sessions_are_dropped() -> None:
    manager = SessionManager(FakeGenerator(), session_timeout_minutes=5)
    stale = manager.create_session()
    fresh = manager.create_session()
    stale.last_updated = datetime.now() - timedelta(minutes=10)

    assert manager.cleanup_expired_sessions() == 1
    assert manager.get_session(stale.session_id) is None
    assert manager.get_session(fresh.session_id) is fresh


def test_creating_a_session_drops_abandoned_ones() -> None:
    manager = SessionManager(FakeGenerator(), session_timeout_minutes=1)
    for _ in range(50):
        abandoned = manager.create_session()
        abandoned.last_updated = datetime.now() - timedelta(hours=2)

    session = manager.create_session()

    assert manager.get_session_count() == 1
    assert manager.get_session(session.session_id) is session


def test_session_count_waits_for_the_manager_lock() -> None:
    manager = SessionManager(FakeGenerator())
    manager.create_session()
    counts = []

    with manager._lock:
        reader = threading.Thread(target=lambda: counts.append(manager.get_session_count()))
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive()
        assert counts == []

    reader.join(timeout=5)
    assert counts == [1]


def test_get_session_expires_lazily() -> None:
    manager = SessionManager(FakeGenerator(), session_timeout_minutes=1)
    session = manager.create_session()
    session.last_updated = datetime.now() - timedelta(minutes=2)

    assert manager.get_session(session.session_id) is None
    assert manager.get_session_count() == 0


def test_get_or_create_session() -> None:
    manager = SessionManager(FakeGenerator())
    session, is_new = manager.get_or_create_session("does-not-exist")
    again, again_new = manager.get_or_create_session(session.session_id)

    assert is_new is True
    assert again is session
    assert again_new is False


def test_proceed_to_styling_and_start_over() -> None:
    manager = SessionManager(FakeGenerator())
    session = manager.create_session()

    assert session.proceed_to_styling() is None
    assert session.screen == "start"

    session.start.select_photo(png_upload())
    session.wardrobe.add(png_upload("tee.png", image_type="garment"))
    model_url = session.proceed_to_styling()

    assert model_url == session.start.generated_model_url
    assert session.canvas.display_image_url == model_url
    assert session.screen == "canvas"

    session.start_over()

    assert session.screen == "start"
    assert session.canvas.display_image_url is None
    assert session.start.user_image_url is None
    assert len(session.wardrobe) == 0
