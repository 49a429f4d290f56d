import pytest

from chat_core.domain import reducer
from chat_core.domain.conversation import ChatState
from chat_core.domain.exceptions import MissingCredential, NotFound, ValidationError


def _state_with_chat(chat_id="c1"):
    state = reducer.set_api_key(ChatState(), "sk-test-key-123")
    return reducer.create_chat(state, chat_id=chat_id, created_at=1)


def _exchange(state, chat_id, content, placeholder_id):
    return reducer.append_user_and_placeholder(state, chat_id, content, "text", placeholder_id)


def test_create_chat_requires_credential():
    state = ChatState()
    with pytest.raises(MissingCredential):
        reducer.create_chat(state)
    assert state.chats == ()


def test_create_chat_prepends_and_selects():
    state = _state_with_chat("c1")
    state = reducer.create_chat(state, chat_id="c2")
    assert [c.id for c in state.chats] == ["c2", "c1"]
    assert state.current_chat_id == "c2"
    chat = state.chats[0]
    assert chat.title == "New Chat"
    assert len(chat.messages) == 1
    assert chat.messages[0].role == "system"
    assert chat.messages[0].content == "You are a helpful assistant. Be brief. Be concise. Be right."
    assert chat.model == "primary"
    assert chat.image_model == "v3"


def test_create_chat_without_selecting():
    state = _state_with_chat("c1")
    state = reducer.create_chat(state, chat_id="c2", set_as_current=False)
    assert state.current_chat_id == "c1"


def test_create_chat_rejects_duplicate_id():
    state = _state_with_chat("c1")
    with pytest.raises(ValidationError):
        reducer.create_chat(state, chat_id="c1")


def test_select_unknown_chat_is_noop():
    state = _state_with_chat("c1")
    assert reducer.select_chat(state, "missing") is state


def test_remove_then_select_leaves_selection_unset():
    state = _state_with_chat("c1")
    state = reducer.remove_chat(state, "c1")
    state = reducer.select_chat(state, "c1")
    assert state.current_chat_id is None
    assert state.chats == ()


def test_remove_other_chat_keeps_selection():
    state = _state_with_chat("c1")
    state = reducer.create_chat(state, chat_id="c2", set_as_current=False)
    state = reducer.remove_chat(state, "c2")
    assert state.current_chat_id == "c1"


def test_current_chat_follows_selection():
    state = _state_with_chat("c1")
    state = reducer.create_chat(state, chat_id="c2", set_as_current=False)
    assert reducer.current_chat(state).id == "c1"
    state = reducer.select_chat(state, "c2")
    assert reducer.current_chat(state).id == "c2"
    state = reducer.remove_chat(state, "c2")
    assert reducer.current_chat(state) is None


def test_append_sets_title_from_first_user_message():
    state = _state_with_chat()
    long_text = "x" * 50
    state = _exchange(state, "c1", long_text, "m-a")
    chat = reducer.get_chat(state, "c1")
    assert chat.title == "x" * 30
    assert [m.role for m in chat.messages] == ["system", "user", "assistant"]
    placeholder = chat.messages[2]
    assert placeholder.content == ""
    assert placeholder.id == "m-a"
    assert placeholder.type == "text"

    state = _exchange(state, "c1", "second", "m-b")
    assert reducer.get_chat(state, "c1").title == "x" * 30


def test_append_at_position():
    state = _state_with_chat()
    state = _exchange(state, "c1", "one", "m-1")
    state = reducer.append_user_and_placeholder(state, "c1", "zero", "image", "m-0", insert_at=1)
    contents = [m.content for m in reducer.get_chat(state, "c1").messages]
    assert contents == [contents[0], "zero", "", "one", ""]
    with pytest.raises(ValidationError):
        reducer.append_user_and_placeholder(state, "c1", "bad", "text", "m-x", insert_at=0)


def test_append_unknown_chat_raises():
    state = _state_with_chat()
    with pytest.raises(NotFound):
        _exchange(state, "nope", "hi", "m-1")


def test_cumulative_updates_last_write_wins():
    state = _state_with_chat()
    state = _exchange(state, "c1", "hello", "m-a")
    for partial in ("H", "He", "Hel"):
        state = reducer.update_assistant_message(state, "c1", "m-a", {"content": partial})
    msg = reducer.get_chat(state, "c1").messages[2]
    assert msg.content == "Hel"
    assert msg.type == "text"


def test_update_ignores_missing_chat_or_placeholder():
    state = _state_with_chat()
    assert reducer.update_assistant_message(state, "gone", "m-a", {"content": "x"}) is state
    assert reducer.update_assistant_message(state, "c1", "m-missing", {"content": "x"}) is state


def test_update_rejects_unknown_fields():
    state = _state_with_chat()
    state = _exchange(state, "c1", "hello", "m-a")
    with pytest.raises(ValueError):
        reducer.update_assistant_message(state, "c1", "m-a", {"role": "user"})


def test_truncate_after_keeps_exactly_index_messages():
    state = _state_with_chat()
    for i in range(3):
        state = _exchange(state, "c1", f"q{i}", f"m-{i}")
    state = reducer.truncate_after(state, "c1", 3)
    assert len(reducer.get_chat(state, "c1").messages) == 3
    with pytest.raises(ValidationError):
        reducer.truncate_after(state, "c1", 0)


def test_delete_pair_removes_two_and_keeps_order():
    state = _state_with_chat()
    for i in range(3):
        state = _exchange(state, "c1", f"q{i}", f"m-{i}")
    before = reducer.get_chat(state, "c1").messages
    state = reducer.delete_pair(state, "c1", 3)
    after = reducer.get_chat(state, "c1").messages
    assert len(after) == len(before) - 2
    assert list(after) == list(before[:3]) + list(before[5:])
    with pytest.raises(ValidationError):
        reducer.delete_pair(state, "c1", len(after) - 1)


def test_system_message_survives_any_sequence():
    state = _state_with_chat()
    state = _exchange(state, "c1", "a", "m-1")
    state = _exchange(state, "c1", "b", "m-2")
    state = reducer.delete_pair(state, "c1", 1)
    state = reducer.truncate_after(state, "c1", 1)
    state = _exchange(state, "c1", "c", "m-3")
    state = reducer.set_model(state, "c1", "economy")
    for chat in state.chats:
        assert chat.messages[0].role == "system"
        assert [m.role for m in chat.messages].count("system") == 1


def test_set_model_and_image_model():
    state = _state_with_chat()
    state = reducer.set_model(state, "c1", "economy")
    state = reducer.set_image_model(state, "c1", "v2")
    chat = reducer.get_chat(state, "c1")
    assert (chat.model, chat.image_model) == ("economy", "v2")
    with pytest.raises(ValidationError):
        reducer.set_model(state, "c1", "gpt-5")
    with pytest.raises(NotFound):
        reducer.set_image_model(state, "missing", "v3")


def test_operations_do_not_mutate_input():
    state = _state_with_chat()
    snapshot = state
    _exchange(state, "c1", "hello", "m-a")
    reducer.remove_chat(state, "c1")
    assert state is snapshot
    assert len(state.chats[0].messages) == 1
