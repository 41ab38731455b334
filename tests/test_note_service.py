from prodotask.schemas import NoteCreate, NotePatch
from prodotask.services import note_service


async def _note(gateway, user, title, content=None):
    return await note_service.create_note(gateway, user.id, NoteCreate(title=title, content=content))


async def test_notes_listed_most_recently_updated_first(gateway, user):
    first = await _note(gateway, user, "first")
    await _note(gateway, user, "second")
    await note_service.update_note(gateway, first.id, NotePatch(content="edited"))
    titles = [note.title for note in await note_service.list_notes_by_user(gateway, user.id)]
    assert titles == ["first", "second"]


async def test_update_refreshes_updated_at_only_when_changed(gateway, user):
    note = await _note(gateway, user, "plain", "body")
    unchanged = await note_service.update_note(gateway, note.id, NotePatch())
    assert unchanged == note
    changed = await note_service.update_note(gateway, note.id, NotePatch(title="renamed"))
    assert changed.title == "renamed"
    assert changed.content == "body"
    assert changed.updated_at > note.updated_at


async def test_search_matches_title_or_content(gateway, user, other_user):
    await _note(gateway, user, "Groceries", "milk, eggs")
    await _note(gateway, user, "Ideas", "buy more milk")
    await _note(gateway, user, "Travel", "pack bags")
    await note_service.create_note(gateway, other_user.id, NoteCreate(title="milk"))
    titles = {note.title for note in await note_service.search_notes(gateway, user.id, "milk")}
    assert titles == {"Groceries", "Ideas"}


async def test_search_treats_wildcards_literally(gateway, user):
    await _note(gateway, user, "100% done")
    await _note(gateway, user, "1000 things")
    titles = [note.title for note in await note_service.search_notes(gateway, user.id, "100%")]
    assert titles == ["100% done"]


async def test_recent_notes_limit(gateway, user):
    for idx in range(7):
        await _note(gateway, user, f"note {idx}")
    recent = await note_service.list_recent_notes(gateway, user.id)
    assert [note.title for note in recent] == [f"note {idx}" for idx in range(6, 1, -1)]


async def test_delete_note(gateway, user):
    note = await _note(gateway, user, "temp")
    assert await note_service.delete_note(gateway, note.id) is True
    assert await note_service.get_note_by_id(gateway, note.id) is None
    assert await note_service.delete_note(gateway, note.id) is False
