"""
NBT paths: a small query language for pulling subtrees out of a tag.

A path is a dot-separated chain of nodes::

    {id:"minecraft:chest"}            root compound pattern
    Items                             named child
    Items[0]  Items[-1]  Items[]      list/array index, or every element
    Items[{Slot:0b}]                  list elements containing a pattern
    display{Lore:[]}                  named child containing a pattern
    Grid[0][1]  Grid[][{x:1}]         nested list steps

Matching never raises for missing data; a path that matches nothing simply
yields an empty list.
"""

import re

from syntaxnbt.types.errors import SchemaMismatchError
from syntaxnbt.types.nbt import Kind, TagCompound, TagList, _ArrayTag, quote_string
from syntaxnbt.types.snbt import SNBTParser
from syntaxnbt.types.string_reader import StringReader

regexBareName = re.compile(r'''[A-Za-z0-9_+-]+''')


def nbt_path_join(*args):
    """Join two NBT paths into a longer path, similar to os.path.join()."""
    if len(args) == 0:
        return ''
    if len(args) == 1:
        return args[0]
    if args[-1] == '':
        return nbt_path_join(*args[:-1])
    if args[0] == '':
        return nbt_path_join(*args[1:])
    if args[1].startswith('['):
        return nbt_path_join(f'{args[0]}{args[1]}', *args[2:])
    return nbt_path_join(f'{args[0]}.{args[1]}', *args[2:])


def quote_name(name):
    if regexBareName.fullmatch(name):
        return name
    return quote_string(name)


def _get_named(name, tag):
    if not isinstance(tag, TagCompound):
        return None
    return tag.value.get(name)


# Nodes -----------------------------------------------------------------------

class PathNode(object):
    """
    One step of a path. Each node owns at most one successor, fixed at
    construction; ``traverse`` applies this node and feeds every match to the
    successor.
    """
    __slots__ = ('_successor',)

    def __init__(self, successor=None):
        if isinstance(successor, RootNode):
            raise SchemaMismatchError("Cannot install a root path node as a successor")
        if successor is not None and not isinstance(successor, PathNode):
            raise SchemaMismatchError(f"Successor must be a PathNode, not {type(successor).__name__}")
        self._successor = successor

    @property
    def successor(self):
        return self._successor

    def traverse_self(self, tag):
        """Returns the tags this node alone matches in *tag*."""
        raise NotImplementedError

    def traverse(self, tag):
        tags = self.traverse_self(tag)
        if self._successor is None:
            return tags
        return self._successor.traverse_all(tags)

    def traverse_all(self, tags):
        result = []
        for tag in tags:
            result.extend(self.traverse(tag))
        return result

    def count(self, tag):
        return len(self.traverse(tag))

    def exists(self, tag):
        return len(self.traverse(tag)) > 0

    def stringify(self):
        raise NotImplementedError

    def __str__(self):
        if self._successor is None:
            return self.stringify()
        return f'{self.stringify()}.{self._successor!s}'

    def __repr__(self):
        return "%s(%r)" % (type(self).__name__, str(self))


class RootNode(PathNode):
    """Matches the tag itself if it is a compound containing *pattern*."""
    __slots__ = ('pattern',)

    def __init__(self, pattern, successor=None):
        super().__init__(successor)
        self.pattern = pattern

    def traverse_self(self, tag):
        if isinstance(tag, TagCompound) and tag.contains(self.pattern):
            return [tag]
        return []

    def stringify(self):
        return self.pattern.to_snbt()


class NamedNode(PathNode):
    __slots__ = ('name',)

    def __init__(self, name, successor=None):
        super().__init__(successor)
        self.name = name

    def traverse_self(self, tag):
        target = _get_named(self.name, tag)
        return [] if target is None else [target]

    def stringify(self):
        return quote_name(self.name)


class CompoundNode(PathNode):
    """A named child that must be a compound containing *pattern*."""
    __slots__ = ('name', 'pattern')

    def __init__(self, name, pattern, successor=None):
        super().__init__(successor)
        self.name = name
        self.pattern = pattern

    def traverse_self(self, tag):
        target = _get_named(self.name, tag)
        if isinstance(target, TagCompound) and target.contains(self.pattern):
            return [target]
        return []

    def stringify(self):
        return quote_name(self.name) + self.pattern.to_snbt()


class IndexNode(PathNode):
    """
    One element of a list or array. Negative indices count from the end;
    an index out of range matches nothing.
    """
    __slots__ = ('name', 'index')

    def __init__(self, name, index, successor=None):
        super().__init__(successor)
        self.name = name
        self.index = index

    def traverse_self(self, tag):
        if self.name is not None:
            tag = _get_named(self.name, tag)

        if isinstance(tag, (TagList, _ArrayTag)):
            index = self.index
            if index < 0:
                index += len(tag)
            if 0 <= index < len(tag):
                if isinstance(tag, TagList):
                    return [tag.get(index)]
                return [tag.get_tag(index)]
        return []

    def stringify(self):
        prefix = '' if self.name is None else quote_name(self.name)
        return f'{prefix}[{self.index}]'


class ListNode(PathNode):
    """Every element of a list or array."""
    __slots__ = ('name',)

    def __init__(self, name=None, successor=None):
        super().__init__(successor)
        self.name = name

    def traverse_self(self, tag):
        if self.name is not None:
            tag = _get_named(self.name, tag)

        if isinstance(tag, TagList):
            return list(tag.value)
        if isinstance(tag, _ArrayTag):
            return [tag.get_tag(index) for index in range(len(tag))]
        return []

    def stringify(self):
        prefix = '' if self.name is None else quote_name(self.name)
        return f'{prefix}[]'


class ListTagNode(PathNode):
    """Every compound in a list of compounds that contains *pattern*."""
    __slots__ = ('name', 'pattern')

    def __init__(self, name, pattern, successor=None):
        super().__init__(successor)
        self.name = name
        self.pattern = pattern

    def traverse_self(self, tag):
        if self.name is not None:
            tag = _get_named(self.name, tag)

        if isinstance(tag, TagList) and tag.component_kind == Kind.COMPOUND:
            return [element for element in tag if element.contains(self.pattern)]
        return []

    def stringify(self):
        prefix = '' if self.name is None else quote_name(self.name)
        return f'{prefix}[{self.pattern.to_snbt()}]'


class SubListNode(PathNode):
    """
    A named child followed by several list steps, e.g. ``Grid[0][]``. Each
    step is applied to every match of the step before it.
    """
    __slots__ = ('name', 'steps')

    def __init__(self, name, steps, successor=None):
        super().__init__(successor)
        self.name = name
        self.steps = tuple(steps)

    def traverse_self(self, tag):
        target = _get_named(self.name, tag)
        if target is None:
            return []

        tags = [target]
        for step in self.steps:
            tags = step.traverse_all(tags)
        return tags

    def stringify(self):
        return quote_name(self.name) + ''.join(step.stringify() for step in self.steps)


# Parsing ---------------------------------------------------------------------

class PathParser(object):
    """Parses path text with the same reader the SNBT parser uses."""

    def __init__(self, text):
        self.reader = StringReader(text)
        self.snbt = SNBTParser(self.reader)

    @staticmethod
    def is_allowed_in_name(c):
        return bool(c) and c not in '.[{' and not c.isspace()

    def parse_name(self):
        self.reader.skip_whitespace()
        if StringReader.is_quoted_string_start(self.reader.peek()):
            return self.reader.read_quoted_string()

        name = self.reader.read_unquoted_string(self.is_allowed_in_name)
        if not name:
            raise self.reader.error("Expected tag name")
        return name

    def parse_steps(self):
        """
        Reads consecutive ``[...]`` steps. A compound pattern step ends the
        run.
        """
        steps = []
        while self.reader.peek() == '[':
            self.reader.skip()
            if self.reader.peek() == ']':
                self.reader.skip()
                steps.append(('list', None))
            elif self.reader.peek() == '{':
                steps.append(('pattern', self.snbt.parse_compound()))
                self.reader.expect(']')
                break
            else:
                steps.append(('index', self.reader.read_int()))
                self.reader.expect(']')
        return steps

    def parse_successor(self):
        if not self.reader.can_read():
            return None
        self.reader.expect('.')
        if self.reader.peek() == '{':
            raise self.reader.error("A root compound may only start a path")
        return self.parse_path()

    def parse_path(self):
        reader = self.reader
        if reader.peek() == '{':
            pattern = self.snbt.parse_compound()
            return RootNode(pattern, self.parse_successor())

        name = self.parse_name()
        if reader.peek() == '{':
            pattern = self.snbt.parse_compound()
            return CompoundNode(name, pattern, self.parse_successor())

        if reader.peek() != '[':
            return NamedNode(name, self.parse_successor())

        steps = self.parse_steps()
        if len(steps) > 1:
            return SubListNode(name, [_step_node(step) for step in steps], self.parse_successor())

        step, argument = steps[0]
        if step == 'list':
            return ListNode(name, self.parse_successor())
        if step == 'pattern':
            return ListTagNode(name, argument, self.parse_successor())
        return IndexNode(name, argument, self.parse_successor())


def _step_node(step):
    step, argument = step
    if step == 'list':
        return ListNode()
    if step == 'pattern':
        return ListTagNode(None, argument)
    return IndexNode(None, argument)


def parse_path(text):
    """Parses path text into a chain of PathNodes."""
    parser = PathParser(text.strip())
    if not parser.reader.can_read():
        raise parser.reader.error("Empty path")
    return parser.parse_path()


def traverse(tag, path):
    """Returns every subtree of *tag* matched by *path* (text or PathNode)."""
    if not isinstance(path, PathNode):
        path = parse_path(path)
    return path.traverse(tag)
