"""# undodirector

Undo and redo for applications that store their edits in a backend.

An application applies edits as Actions. Each Action carries its own undo and
redo behavior, as well as coroutines to persist its effect to a backend and
to destroy it there again. A Director keeps the history of applied and undone
actions, and when asked to save, it works out which actions must be destroyed
and which must be persisted to bring the backend in line with the current
history. It then commits them one by one, in a well-defined order:

    >>> import asyncio
    >>> stored = []
    >>> async def persist(state):
    ...     stored.append(state["new"])
    ...
    >>> async def destroy(state):
    ...     stored.remove(state["new"])
    ...
    >>> model = {"fancy": True, "fanciness": 10}
    >>> director = Director()
    >>> director.pushAction(snapshotAction(
    ...     model, {"fancy": True, "fanciness": 10}, {"fancy": False, "fanciness": 5},
    ...     persist, destroy, title="tone down"))
    >>> model
    {'fancy': False, 'fanciness': 5}
    >>> asyncio.run(director.save())
    True
    >>> stored
    [{'fancy': False, 'fanciness': 5}]
    >>> director.undo()
    True
    >>> model
    {'fancy': True, 'fanciness': 10}
    >>> director.isSaved()
    False
    >>> asyncio.run(director.save())
    True
    >>> stored
    []

When a new action is pushed while there are undone actions, the undone
actions can no longer be redone. The ones that were already stored in the
backend are destroyed by the next save, before the new actions are persisted.

Each persist or destroy must complete before the next one starts. When one
fails, saving stops, the save point stays before the failed action, and the
failure is raised as a CommitError.
"""

from .action import Action, ActionHooks, snapshotAction
from .director import CommitError, Director, DirectorError, DirectorState

__all__ = [
    "Action",
    "ActionHooks",
    "CommitError",
    "Director",
    "DirectorError",
    "DirectorState",
    "snapshotAction",
]

try:
    from ._version import version as __version__
except ImportError:
    __version__ = "<unknown>"
