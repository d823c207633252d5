import asyncio
from dataclasses import dataclass, field
from undodirector import CommitError, Director, snapshotAction


@dataclass
class Shape:

    x: float = 0
    y: float = 0
    color: str = "black"


@dataclass
class Store:

    """A fake remote store, keyed by edit id."""

    records: dict = field(default_factory=dict)
    offline: bool = False
    nextId: int = 0

    async def put(self, state):
        await asyncio.sleep(0)
        if self.offline:
            raise ConnectionError("store is offline")
        self.nextId += 1
        state["recordId"] = self.nextId
        self.records[self.nextId] = dict(state["new"])

    async def delete(self, state):
        await asyncio.sleep(0)
        if self.offline:
            raise ConnectionError("store is offline")
        del self.records[state.pop("recordId")]


def edit(store, shape, title, **newValues):
    oldValues = {key: getattr(shape, key) for key in newValues}
    return snapshotAction(shape, oldValues, newValues, store.put, store.delete, title=title)


async def main():
    store = Store()
    shape = Shape()
    states = []
    director = Director(observer=states.append)

    director.pushAction(edit(store, shape, "move", x=10, y=20))
    director.pushAction(edit(store, shape, "paint", color="red"))
    assert shape == Shape(10, 20, "red")
    assert await director.save()
    assert len(store.records) == 2
    assert states[-1].saved

    # undo the paint, then make a different edit: the paint record must go
    director.undo()
    assert shape == Shape(10, 20, "black")
    director.pushAction(edit(store, shape, "move again", x=30))
    assert not director.canRedo()
    assert await director.save()
    assert sorted(store.records.values(), key=str) == [{"x": 10, "y": 20}, {"x": 30}]

    # a failing store leaves the history unsaved, and the next save retries
    director.pushAction(edit(store, shape, "paint", color="blue"))
    store.offline = True
    try:
        await director.save()
    except CommitError as e:
        assert e.action.info["title"] == "paint"
    else:
        assert 0, "expected CommitError"
    assert not director.isSaved()
    store.offline = False
    assert await director.save()
    assert director.isSaved()
    assert len(store.records) == 3


if __name__ == "__main__":
    asyncio.run(main())
