import asyncio
from dataclasses import dataclass, field
import logging
import typing


logger = logging.getLogger(__name__)


class DirectorError(Exception):
    pass


class CommitError(DirectorError):

    """Raised by Director.save() when the backend failed to persist or
    destroy an action. `action` is the action whose commit failed, `index` its
    position in the commit chain. The backend's exception is available as
    `__cause__`.
    """

    def __init__(self, action, index):
        super().__init__(f"commit of {action!r} failed at chain position {index}")
        self.action = action
        self.index = index


@dataclass(frozen=True)
class DirectorState:

    saved: bool
    canUndo: bool
    canRedo: bool


@dataclass
class _CommitFlight:

    # What happened to the history while a commit chain was running.

    actions: list
    divergePoint: typing.Optional[int] = None
    diverged: list = field(default_factory=list)
    wasReset: bool = False

    def noteDivergence(self, undoneActions, survivingLength):
        if self.divergePoint is None or survivingLength < self.divergePoint:
            self.divergePoint = survivingLength
        self.diverged.extend(action for action in undoneActions if action in self.actions)


class Director:

    """A Director manages a stack of applied actions and a stack of undone
    actions, and keeps track of which actions still need to be stored to or
    removed from a backend.

        >>> director = Director()

    Actions enter the history via pushAction(), which calls the action's
    initialize() hook:

        >>> from undodirector import snapshotAction
        >>> async def store(state):
        ...     pass
        ...
        >>> model = {"fancy": True}
        >>> director.pushAction(snapshotAction(model, {"fancy": True}, {"fancy": False},
        ...                                    store, store, title="plain"))
        >>> model
        {'fancy': False}
        >>> director.undoInfo()
        {'title': 'plain'}

    undo() and redo() return False if there was nothing to undo or redo:

        >>> director.undo()
        True
        >>> model
        {'fancy': True}
        >>> director.undo()
        False
        >>> director.redo()
        True

    The history is not saved until save() has committed every applied action
    to the backend. save() is a coroutine:

        >>> director.isSaved()
        False
        >>> import asyncio
        >>> asyncio.run(director.save())
        True
        >>> director.isSaved()
        True

    Pushing an action while undone actions exist discards the undone actions
    (the history diverges). Undone actions that were already saved are
    destroyed in the backend by the next save(), before new actions are
    persisted.

    Director() has an optional argument called `observer`, which should be a
    callable taking one positional argument. It is called with a DirectorState
    after every operation that changes the history or its saved status. This
    can be used to enable or disable undo/redo/save menu items in a GUI.

    save() calls are serialized: a save() issued while another one is waiting
    for the backend starts after the earlier one has finished. Changing the
    history while a save() is waiting for the backend is allowed. When the
    history diverges during a save, the save point falls back to the
    surviving branch, and dropped actions that the running save stores are
    destroyed by the next save().
    """

    def __init__(self, observer=None):
        self._appliedStack = []
        self._undoneStack = []
        self._pendingDestroy = []
        self._needle = 0
        self._observer = observer
        self._saveLock = asyncio.Lock()
        self._flight = None

    @property
    def appliedStack(self):
        return tuple(self._appliedStack)

    @property
    def undoneStack(self):
        return tuple(self._undoneStack)

    @property
    def pendingDestroy(self):
        return tuple(self._pendingDestroy)

    @property
    def needle(self):
        return self._needle

    def setObserver(self, observer):
        """Set the callable that receives a DirectorState after each change.
        Pass None to stop observing.
        """
        self._observer = observer

    def isSaved(self):
        return self._needle == len(self._appliedStack)

    def canUndo(self):
        return bool(self._appliedStack)

    def canRedo(self):
        return bool(self._undoneStack)

    def stateInfo(self):
        return DirectorState(saved=self.isSaved(), canUndo=self.canUndo(), canRedo=self.canRedo())

    def undoInfo(self):
        """Return the info dict of the action that undo() would undo, or None
        if there is nothing to undo.
        """
        if self._appliedStack:
            return self._appliedStack[-1].info
        else:
            return None  # empty applied stack

    def redoInfo(self):
        """Return the info dict of the action that redo() would redo, or None
        if there is nothing to redo.
        """
        if self._undoneStack:
            return self._undoneStack[-1].info
        else:
            return None  # empty undone stack

    def pushAction(self, action):
        """Initialize `action` and push it onto the applied stack. If there are
        undone actions, they can no longer be redone: the ones that were saved
        are scheduled for destruction by the next save().
        """
        if action in self._appliedStack or action in self._undoneStack:
            raise DirectorError(f"{action!r} is already in the history")
        action.initialize()
        if self._undoneStack:
            self._diverge()
        self._appliedStack.append(action)
        logger.debug("pushed %r", action)
        self._updateState()

    def _diverge(self):
        diverged = [action for action in self._undoneStack if action.saved]
        for action in diverged:
            if action not in self._pendingDestroy:
                self._pendingDestroy.append(action)
        if diverged:
            # the save point falls back to the last action of the surviving branch
            self._needle = len(self._appliedStack)
        if self._flight is not None:
            self._flight.noteDivergence(self._undoneStack, len(self._appliedStack))
        logger.debug("history diverged, dropping %d undone action(s), %d to be destroyed",
                     len(self._undoneStack), len(diverged))
        self._undoneStack = []

    def undo(self):
        """Undo the top action of the applied stack and move it to the undone
        stack. Return False if there is nothing to undo.
        """
        return self._performUndo(self._appliedStack, self._undoneStack, "undo")

    def redo(self):
        """Redo the top action of the undone stack and move it back to the
        applied stack. Return False if there is nothing to redo.
        """
        return self._performUndo(self._undoneStack, self._appliedStack, "redo")

    def _performUndo(self, popStack, pushStack, hookName):
        if not popStack:
            return False
        action = popStack[-1]
        getattr(action, hookName)()
        popStack.pop()
        pushStack.append(action)
        logger.debug("%s %r", hookName, action)
        self._updateState()
        return True

    def reset(self):
        """Forget the entire history. No action hooks are called."""
        self._appliedStack = []
        self._undoneStack = []
        self._pendingDestroy = []
        self._needle = 0
        if self._flight is not None:
            self._flight.wasReset = True
        logger.debug("reset")
        self._updateState()

    async def save(self, postAction=None):
        """Bring the backend in line with the current history. In this order,
        the commit chain destroys the actions that were dropped by a
        divergence, destroys the undone actions that are saved, persists the
        applied actions that are not saved yet, oldest first, and finally
        persists `postAction` if given (its initialize() hook is called
        first; it is not added to the history).

        Each commit waits for the backend to complete before the next one
        starts. Return False if there was nothing to commit, True if all
        commits succeeded. If a commit fails, the chain stops, CommitError is
        raised, and the save point does not move past the failed action.
        """
        async with self._saveLock:
            destroyActions = list(self._pendingDestroy)
            numPending = len(destroyActions)
            destroyActions.extend(action for action in self._undoneStack if action.saved)

            startNeedle = self._needle
            persistActions = self._appliedStack[startNeedle:]
            numApplied = len(persistActions)
            if postAction is not None:
                postAction.initialize()
                persistActions.append(postAction)

            chain = destroyActions + persistActions
            if not chain:
                return False

            self._pendingDestroy = []
            targetNeedle = len(self._appliedStack)
            logger.info("saving: %d destroy(s), %d persist(s)",
                        len(destroyActions), len(persistActions))
            flight = self._flight = _CommitFlight(chain)
            try:
                await runCommitChain(chain)
            except BaseException as e:
                # also reached when the awaiting task is cancelled
                self._flight = None
                if not flight.wasReset:
                    self._recoverSavePoint(destroyActions, numPending,
                                           persistActions[:numApplied], startNeedle, targetNeedle)
                    self._settleFlight(flight)
                logger.warning("save stopped: %r", e)
                self._updateState()
                raise
            self._flight = None
            if not flight.wasReset:
                self._needle = targetNeedle
                self._settleFlight(flight)
            self._updateState()
            return True

    def _settleFlight(self, flight):
        # Reconcile the save point and the pending destroys with divergences
        # that happened while the chain was running.
        if flight.divergePoint is None:
            return
        self._needle = min(self._needle, flight.divergePoint)
        pending = [action for action in self._pendingDestroy if action.saved]
        for action in flight.diverged:
            if action.saved and action not in pending:
                pending.append(action)
        self._pendingDestroy = pending

    def _recoverSavePoint(self, destroyActions, numPending, appliedActions, startNeedle, targetNeedle):
        # Every commit that completed has flipped its action's saved flag.
        notDestroyed = [action for action in destroyActions[:numPending] if action.saved]
        self._pendingDestroy = notDestroyed + self._pendingDestroy
        if any(action.saved for action in destroyActions):
            return  # the chain stopped before any persist
        numPersisted = 0
        for action in appliedActions:
            if not action.saved:
                break
            numPersisted += 1
        if numPersisted == len(appliedActions):
            self._needle = targetNeedle
        else:
            self._needle = startNeedle + numPersisted

    def _updateState(self):
        if self._observer is not None:
            self._observer(self.stateInfo())


async def runCommitChain(actions):
    """Commit `actions` one after the other, each waiting for the previous one
    to complete. The first failure stops the chain and is raised as a
    CommitError.
    """
    for index, action in enumerate(actions):
        try:
            await action.commit()
        except Exception as e:
            raise CommitError(action, index) from e
