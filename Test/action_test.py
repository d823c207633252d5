import asyncio
from collections import UserDict
import pytest
from undodirector.action import (
    Action,
    ActionHooks,
    setValue,
    setValues,
    snapshotAction,
)


class _BackendError(Exception):
    pass


class _AttributeObject:

    def __init__(self, **kwargs):
        self.__dict__.update(kwargs)


def _noop(action):
    pass


async def _store(state):
    pass


async def _fail(state):
    raise _BackendError("backend unavailable")


class TestActionHooks:

    @pytest.mark.parametrize("hookName", ["initialize", "undo", "redo", "persist", "destroy"])
    def test_non_callable_hook(self, hookName):
        hooks = dict(initialize=_noop, undo=_noop, redo=_noop, persist=_store, destroy=_store)
        hooks[hookName] = "not a function"
        with pytest.raises(TypeError, match=hookName):
            ActionHooks(**hooks)
        with pytest.raises(TypeError, match=hookName):
            Action(**hooks)

    def test_frozen(self):
        hooks = ActionHooks(_noop, _noop, _noop, _store, _store)
        with pytest.raises(AttributeError):
            hooks.undo = _noop


class TestAction:

    def test_hooks_receive_action(self):
        calls = []
        action = Action(
            lambda a: calls.append(("initialize", a)),
            lambda a: calls.append(("undo", a)),
            lambda a: calls.append(("redo", a)),
            _store,
            _store,
        )
        action.initialize()
        action.undo()
        action.redo()
        assert calls == [("initialize", action), ("undo", action), ("redo", action)]

    def test_default_state_and_info(self):
        action = Action(_noop, _noop, _noop, _store, _store)
        assert action.state == {"old": {}, "new": {}}
        assert action.info == {}
        assert action.saved is False
        action = Action(_noop, _noop, _noop, _store, _store, state=[1, 2], title="t", extra=3)
        assert action.state == [1, 2]
        assert action.info == {"title": "t", "extra": 3}

    def test_repr(self):
        action = Action(_noop, _noop, _noop, _store, _store, title="move point")
        assert repr(action) == "<Action 'move point' saved=False>"
        action = Action(_noop, _noop, _noop, _store, _store)
        assert repr(action) == "<Action saved=False>"

    @pytest.mark.asyncio
    async def test_commit_persists_then_destroys(self):
        calls = []

        async def persist(state):
            calls.append(("persist", state))

        async def destroy(state):
            calls.append(("destroy", state))

        state = {"old": 1, "new": 2}
        action = Action(_noop, _noop, _noop, persist, destroy, state=state)
        await action.commit()
        assert action.saved
        await action.commit()
        assert not action.saved
        assert calls == [("persist", state), ("destroy", state)]

    @pytest.mark.asyncio
    async def test_commit_waits_for_backend(self):
        release = asyncio.Event()

        async def persist(state):
            await release.wait()

        action = Action(_noop, _noop, _noop, persist, _store)
        task = asyncio.ensure_future(action.commit())
        await asyncio.sleep(0)
        assert not task.done()
        assert not action.saved
        release.set()
        await task
        assert action.saved

    @pytest.mark.asyncio
    async def test_commit_failure_keeps_flag(self):
        action = Action(_noop, _noop, _noop, _fail, _fail)
        with pytest.raises(_BackendError):
            await action.commit()
        assert not action.saved
        action.saved = True
        with pytest.raises(_BackendError):
            await action.commit()
        assert action.saved

    @pytest.mark.asyncio
    async def test_commit_non_awaitable_persist(self):
        action = Action(_noop, _noop, _noop, lambda state: None, _store)
        with pytest.raises(TypeError):
            await action.commit()
        assert not action.saved


class TestSnapshotAction:

    def test_mapping_model(self):
        model = {"fancy": True, "fanciness": 10}
        action = snapshotAction(model, {"fancy": True, "fanciness": 10},
                                {"fancy": False, "fanciness": 5}, _store, _store, title="plain")
        assert model == {"fancy": True, "fanciness": 10}
        action.initialize()
        assert model == {"fancy": False, "fanciness": 5}
        action.undo()
        assert model == {"fancy": True, "fanciness": 10}
        action.redo()
        assert model == {"fancy": False, "fanciness": 5}
        assert action.state["model"] is model
        assert action.info == {"title": "plain"}

    def test_attribute_model(self):
        model = _AttributeObject(cool=False, coolness=2)
        action = snapshotAction(model, {"cool": False, "coolness": 2},
                                {"cool": True, "coolness": 7}, _store, _store)
        action.initialize()
        assert (model.cool, model.coolness) == (True, 7)
        action.undo()
        assert (model.cool, model.coolness) == (False, 2)

    def test_snapshots_are_copied(self):
        model = {}
        new = {"a": 1}
        action = snapshotAction(model, {"a": 0}, new, _store, _store)
        new["a"] = 2
        action.initialize()
        assert model == {"a": 1}

    def test_mutable_mapping_subclass(self):
        model = UserDict(a=1)
        setValues(model, {"a": 2, "b": 3})
        assert dict(model) == {"a": 2, "b": 3}

    def test_register_setter(self):

        class _Record:
            def __init__(self):
                self.fields = {}

        def _setField(record, key, value):
            record.fields[key] = value

        setValue.register(_Record, _setField)
        record = _Record()
        action = snapshotAction(record, {"x": 0}, {"x": 100}, _store, _store)
        action.initialize()
        assert record.fields == {"x": 100}
        assert not hasattr(record, "x")
