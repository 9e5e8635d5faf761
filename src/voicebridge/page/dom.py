"""
Minimal document model of the host page.

Only what the content script needs: a tree of elements with attributes,
classes and text, depth-first search, ancestor walks and click dispatch.
"""

from typing import Callable, Dict, Iterable, Iterator, List, Optional

from loguru import logger

Predicate = Callable[["Element"], bool]


class Element:
    """One node of the page tree."""

    def __init__(
        self,
        tag: str = "div",
        attrs: Optional[Dict[str, str]] = None,
        classes: Iterable[str] = (),
        text: str = "",
        children: Iterable["Element"] = (),
    ):
        self.tag = tag
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.classes: List[str] = list(classes)
        self.text = text
        self.parent: Optional[Element] = None
        self.children: List[Element] = []
        self._listeners: Dict[str, List[Callable[["Element"], None]]] = {}
        for child in children:
            self.append(child)

    def __repr__(self) -> str:
        return f"<{self.tag} {self.attrs}>"

    def append(self, child: "Element") -> "Element":
        if child.parent is not None:
            child.parent.children.remove(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove(self) -> None:
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attrs.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        self.attrs[name] = value

    def has_class(self, fragment: str) -> bool:
        """True when any class name contains ``fragment``."""
        return any(fragment in name for name in self.classes)

    @property
    def text_content(self) -> str:
        return self.text + "".join(child.text_content for child in self.children)

    def add_event_listener(self, event: str, handler: Callable[["Element"], None]) -> None:
        self._listeners.setdefault(event, []).append(handler)

    def dispatch(self, event: str) -> None:
        """Run handlers on this element, then bubble to its ancestors."""
        node: Optional[Element] = self
        while node is not None:
            for handler in list(node._listeners.get(event, ())):
                try:
                    handler(self)
                except Exception as e:
                    logger.warning(f"{event} handler on {node!r} failed: {e}")
            node = node.parent

    def click(self) -> None:
        self.dispatch("click")

    def iter_descendants(self) -> Iterator["Element"]:
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def find(self, predicate: Predicate) -> Optional["Element"]:
        for node in self.iter_descendants():
            if predicate(node):
                return node
        return None

    def find_all(self, predicate: Predicate) -> List["Element"]:
        return [node for node in self.iter_descendants() if predicate(node)]

    def ancestors(self) -> Iterator["Element"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def closest(self, predicate: Predicate) -> Optional["Element"]:
        if predicate(self):
            return self
        for node in self.ancestors():
            if predicate(node):
                return node
        return None


class Document(Element):
    """Root of the page tree."""

    def __init__(self):
        super().__init__(tag="body")


def attr_in(name: str, values: Iterable[str], tag: Optional[str] = None) -> Predicate:
    """Predicate matching ``tag[name=value]`` for any of ``values``."""
    accepted = set(values)

    def _match(el: Element) -> bool:
        if tag is not None and el.tag != tag:
            return False
        return el.get_attribute(name) in accepted

    return _match


def any_of(*predicates: Predicate) -> Predicate:
    return lambda el: any(p(el) for p in predicates)


__all__ = ["Element", "Document", "attr_in", "any_of"]
