from collections.abc import Callable, MutableMapping
from dataclasses import dataclass
from functools import singledispatch
from operator import setitem


@dataclass(frozen=True)
class ActionHooks:

    """The five user-supplied behaviors of an Action:

    - initialize(action), undo(action), redo(action): synchronous, called with
      the Action so they can read and modify `action.state` and the model
    - persist(state), destroy(state): return an awaitable that completes when
      the backend has stored or removed the action's effect, and raises if the
      backend failed
    """

    initialize: Callable
    undo: Callable
    redo: Callable
    persist: Callable
    destroy: Callable

    def __post_init__(self):
        for name in ("initialize", "undo", "redo", "persist", "destroy"):
            hook = getattr(self, name)
            if not callable(hook):
                raise TypeError(f"{name} hook must be callable, got {hook!r}")


class Action:

    """An Action is a reversible unit of work that can also be stored to and
    removed from a backend.

        >>> model = {"fancy": True}
        >>> def apply(action):
        ...     action.state["model"]["fancy"] = action.state["new"]
        ...
        >>> def revert(action):
        ...     action.state["model"]["fancy"] = action.state["old"]
        ...
        >>> async def store(state):
        ...     pass
        ...
        >>> action = Action(apply, revert, apply, store, store,
        ...                 state={"old": True, "new": False, "model": model},
        ...                 title="make it plain")
        >>> action.initialize()
        >>> model
        {'fancy': False}
        >>> action.undo()
        >>> model
        {'fancy': True}

    The keyword arguments beyond the hooks and `state` form the info dict of
    the action, which the Director returns from undoInfo() and redoInfo().

        >>> action.info
        {'title': 'make it plain'}

    The `saved` flag tells whether the action's effect is currently stored in
    the backend. It is only changed by commit(), and only after the backend
    operation has completed.

        >>> action.saved
        False
    """

    def __init__(self, initialize, undo, redo, persist, destroy, *, state=None, **info):
        self.hooks = ActionHooks(initialize, undo, redo, persist, destroy)
        if state is None:
            state = {"old": {}, "new": {}}
        self.state = state
        self.info = info
        self.saved = False

    def __repr__(self):
        title = self.info.get("title")
        label = f" {title!r}" if title is not None else ""
        return f"<{self.__class__.__name__}{label} saved={self.saved}>"

    def initialize(self):
        self.hooks.initialize(self)

    def undo(self):
        self.hooks.undo(self)

    def redo(self):
        self.hooks.redo(self)

    async def commit(self):
        """Destroy the action in the backend if it is saved, persist it
        otherwise. The `saved` flag flips once the backend has confirmed; if
        the backend raises, the exception propagates and `saved` keeps its
        previous value.
        """
        if self.saved:
            await self.hooks.destroy(self.state)
            self.saved = False
        else:
            await self.hooks.persist(self.state)
            self.saved = True


def snapshotAction(model, old, new, persist, destroy, **info):
    """Return an Action that sets values on `model`: initialize() and redo()
    write the items of the `new` dict, undo() writes the items of the `old`
    dict. `model` can be a mapping or any object with attributes.

        >>> class Settings:
        ...     fanciness = 10
        ...
        >>> async def store(state):
        ...     pass
        ...
        >>> settings = Settings()
        >>> action = snapshotAction(settings, {"fanciness": 10}, {"fanciness": 5},
        ...                         store, store)
        >>> action.initialize()
        >>> settings.fanciness
        5
        >>> action.undo()
        >>> settings.fanciness
        10
    """
    state = {"old": dict(old), "new": dict(new), "model": model}
    return Action(_applyNew, _applyOld, _applyNew, persist, destroy, state=state, **info)


def _applyNew(action):
    setValues(action.state["model"], action.state["new"])


def _applyOld(action):
    setValues(action.state["model"], action.state["old"])


def setValues(model, values):
    for key, value in values.items():
        setValue(model, key, value)


#
# Model value setter, specialized per model type. Objects that are neither
# mappings nor plain attribute objects can be supported with
# setValue.register(SomeType, someSetterFunction).
#

@singledispatch
def setValue(model, key, value):
    setattr(model, key, value)


setValue.register(MutableMapping, setitem)
