#!/usr/bin/env python3

"""Backtracking parser combinators over a character cursor.

A grammar is written directly as an expression of parser objects:

    expr = Deferred()
    unit = integer() | (string('(') & expr & string(')')) >> (lambda t: t[1])
    expr.define((unit & string('+') & expr) >> (lambda t: ('+', t[0], t[2]))
                | unit)

* ``a & b``   - sequence, results are concatenated into one flat tuple
* ``a | b``   - ordered choice, the first success wins
* ``p >> f``  - semantic action, ``f`` receives the result tuple of ``p``
* ``many(p)``, ``maybe(p)``, ``many1(p)`` - repetition and optionality

Mind Python's operator precedence: ``>>`` binds tighter than ``&``,
which binds tighter than ``|``.  Parenthesize a sequence before
attaching an action to it.

Every parser object supports ``parse(cursor)``, ``unparse(cursor)`` and
``result()``.  A failed ``parse`` leaves the cursor where it was; a
successful one can be reverted exactly by ``unparse``.  The same parser
object may be entered again before it has been unparsed (repetition,
recursion through a ``Deferred``), hence all undo bookkeeping is kept on
stacks, and results are pulled out of a sub-parser right after it
succeeds.

"""

import logging
import warnings

from collections import namedtuple


log = logging.getLogger('combiparse')

# Trace every parser when set, not only those marked by `Parser.trace`.
debug = False

WHITESPACE = ' \t\n\r\v\f'
DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'


class GrammarError(Exception):
    """Misuse of the parser machinery, never an input mismatch."""


class UnterminatedLiteral(UserWarning):
    pass


Just = namedtuple('Just', 'result')


# =========================
#     Cursor & skipping
# =========================

class Cursor(object):

    class Error(Exception):
        pass

    def __init__(self, text):
        self.text = text
        self.pos = 0

    def __repr__(self):
        return 'Cursor({}, {!r})'.format(self.pos, self.remain())

    def peek(self, n):
        """Deliver the next `n` units and advance past them, or None
        without moving when fewer than `n` units remain."""
        if n < 0:
            raise Cursor.Error('Cannot peek {} units.'.format(n))
        end = self.pos + n
        if end > len(self.text):
            return None
        got = self.text[self.pos:end]
        self.pos = end
        return got

    def retreat(self, n):
        if n < 0:
            raise Cursor.Error('Cannot retreat {} units.'.format(n))
        if n > self.pos:
            raise Cursor.Error(
                'Cannot retreat {} units from offset {}.'.format(n, self.pos))
        self.pos -= n

    def remain(self):
        return self.text[self.pos:]

    def at_end(self):
        return self.pos >= len(self.text)


class SkipNone(object):

    def skip(self, cursor):
        pass

    def unskip(self, cursor):
        pass


class Skip(object):

    def __init__(self, pred):
        """:pred:

            Predicate on a single unit, telling whether it is to be
            skipped ahead of a terminal match.

        Each `skip` records how many units it passed, `unskip` gives
        back exactly the latest record.
        """
        self.pred = pred
        self._counts = []

    def skip(self, cursor):
        count = 0
        while 1:
            got = cursor.peek(1)
            if got is None:
                break
            if not self.pred(got):
                cursor.retreat(1)
                break
            count += 1
        self._counts.append(count)

    def unskip(self, cursor):
        if not self._counts:
            raise GrammarError('unskip() without a pending skip().')
        count = self._counts.pop()
        if count:
            cursor.retreat(count)


class SkipSpace(Skip):

    def __init__(self, chars=WHITESPACE):
        super(SkipSpace, self).__init__(lambda c: c in chars)


# Factory for the skipper of terminals built without `skip=`.
DEFAULT_SKIP = SkipSpace


# =========================
#          Results
# =========================

def render(obj):
    if isinstance(obj, Result):
        return obj.render()
    return repr(obj)


class Result(object):

    __slots__ = ()

    def render(self):
        raise NotImplementedError

    def __repr__(self):
        return self.render()


class Value(Result, namedtuple('Value', 'value')):

    __slots__ = ()

    def render(self):
        return repr(self.value)


class TupleResult(Result, tuple):

    __slots__ = ()

    def render(self):
        return '({})'.format(', '.join(render(x) for x in self))


class ListResult(Result, list):

    __slots__ = ()

    def render(self):
        return '[{}]'.format(', '.join(render(x) for x in self))


class Slot(object):

    """Holder for the latest result of one parser.

    The result is moved out by `take`, thus can be read only once per
    successful parse.  An empty slot may be copied, a populated one may
    not, since two owners of the same pending result would be able to
    both consume it.

    """

    __slots__ = ('_value', '_full')

    def __init__(self):
        self._value = None
        self._full = False

    def __bool__(self):
        return self._full

    def put(self, value):
        self._value = value
        self._full = True

    def take(self):
        if not self:
            raise GrammarError(
                'No result to take: parse() must succeed before result().')
        value = self._value
        self.clear()
        return value

    def clear(self):
        self._value = None
        self._full = False

    def __copy__(self):
        if self:
            raise GrammarError('Cannot copy a slot holding a result.')
        return Slot()

    def __deepcopy__(self, memo):
        return self.__copy__()


# =========================
#       Parser protocol
# =========================

class Parser(object):

    def __init__(self):
        self.name = None
        self.tracing = False
        self._slot = Slot()

    def __and__(self, other):
        return Chain(self, other)

    def __or__(self, other):
        return Alternative(self, other)

    def __rshift__(self, func):
        return Action(self, func)

    def __repr__(self):
        return self.name if self.name else self.describe()

    def describe(self):
        return self.__class__.__name__

    def named(self, name):
        'Name shown in traces and representations.'
        self.name = name
        return self

    def trace(self, flag=True):
        """Log `parse` and `unparse` calls on this parser at DEBUG level
        to the 'combiparse' logger."""
        self.tracing = flag
        return self

    def parse(self, cursor):
        if debug or self.tracing:
            log.debug('%r: parsing at %d, remain %r',
                      self, cursor.pos, cursor.remain())
            ok = self._parse(cursor)
            log.debug('%r: %s at %d',
                      self, 'matched' if ok else 'failed', cursor.pos)
            return ok
        return self._parse(cursor)

    def unparse(self, cursor):
        if debug or self.tracing:
            log.debug('%r: unparsing at %d, remain %r',
                      self, cursor.pos, cursor.remain())
        self._unparse(cursor)

    def result(self):
        return self._slot.take()

    def results(self):
        'The tuple this parser contributes to an enclosing sequence.'
        return (self.result(),)

    def interpret(self, text):
        """Parse :text: from its beginning.

        Returns `Just(result)` on success and None on mismatch.  The
        successful parse is reverted afterwards, leaving no undo state
        behind in the grammar.
        """
        cursor = Cursor(text)
        if not self.parse(cursor):
            return None
        just = Just(self.result())
        self.unparse(cursor)
        return just

    def _parse(self, cursor):
        raise NotImplementedError

    def _unparse(self, cursor):
        raise NotImplementedError


# =========================
#         Terminals
# =========================

class Terminal(Parser):

    """Terminal attempts share one shape:

        skip -> match -> (unskip on mismatch)

    `match` returns how many units it consumed, or None after having
    retreated everything it inspected.
    """

    def __init__(self, skip=None):
        super(Terminal, self).__init__()
        self.skipper = (skip if skip is not None else DEFAULT_SKIP)()
        self._counts = []

    def _parse(self, cursor):
        self.skipper.skip(cursor)
        n = self.match(cursor)
        if n is None:
            self.skipper.unskip(cursor)
            return False
        self._counts.append(n)
        return True

    def _unparse(self, cursor):
        if not self._counts:
            raise GrammarError(
                'unparse() on {!r} without a pending parse().'.format(self))
        cursor.retreat(self._counts.pop())
        self.skipper.unskip(cursor)
        self._slot.clear()

    def match(self, cursor):
        raise NotImplementedError


class Char(Terminal):

    def __init__(self, ch, skip=None):
        if len(ch) != 1:
            raise ValueError('Char expects a single unit, got {!r}.'.format(ch))
        super(Char, self).__init__(skip)
        self.ch = ch

    def describe(self):
        return repr(self.ch)

    def match(self, cursor):
        got = cursor.peek(1)
        if got is None:
            return None
        if got != self.ch:
            cursor.retreat(1)
            return None
        self._slot.put(Value(got))
        return 1


class String(Terminal):

    def __init__(self, s, skip=None):
        if not s:
            raise ValueError('Empty string is not allowed!')
        super(String, self).__init__(skip)
        self.s = s

    def describe(self):
        return repr(self.s)

    def match(self, cursor):
        n = len(self.s)
        got = cursor.peek(n)
        if got is None:
            return None
        if got != self.s:
            cursor.retreat(n)
            return None
        self._slot.put(Value(got))
        return n


class Literal(Terminal):

    """Quoted literal like "abc", delivering the text between the quotes.

    There are no escapes: the first quote after the opening one closes
    the literal.  Input ending before the closing quote is a mismatch
    too, but is also reported as an `UnterminatedLiteral` warning.
    """

    def __init__(self, quote='"', skip=None):
        if len(quote) != 1:
            raise ValueError('Quote must be a single unit.')
        super(Literal, self).__init__(skip)
        self.quote = quote

    def describe(self):
        return 'literal({})'.format(self.quote)

    def match(self, cursor):
        got = cursor.peek(1)
        if got is None:
            return None
        if got != self.quote:
            cursor.retreat(1)
            return None
        count = 1
        chars = []
        while 1:
            got = cursor.peek(1)
            if got is None:
                cursor.retreat(count)
                # Attributed to whoever called this literal's parse().
                warnings.warn(UnterminatedLiteral(
                    'Unterminated literal starting at offset {}.'
                    .format(cursor.pos)), stacklevel=4)
                return None
            count += 1
            if got == self.quote:
                break
            chars.append(got)
        self._slot.put(Value(''.join(chars)))
        return count


class Int(Terminal):

    def __init__(self, base=10, skip=None):
        if not 2 <= base <= len(DIGITS):
            raise ValueError('Unsupported base {}.'.format(base))
        super(Int, self).__init__(skip)
        self.base = base
        self.digits = DIGITS[:base]

    def describe(self):
        return 'integer({})'.format(self.base)

    def match(self, cursor):
        got = cursor.peek(1)
        if got is None:
            return None
        if got.lower() not in self.digits:
            cursor.retreat(1)
            return None
        chars = [got]
        while 1:
            got = cursor.peek(1)
            if got is None:
                break
            if got.lower() not in self.digits:
                cursor.retreat(1)
                break
            chars.append(got)
        self._slot.put(Value(int(''.join(chars), self.base)))
        return len(chars)


class End(Terminal):

    def describe(self):
        return 'end'

    def match(self, cursor):
        if cursor.peek(1) is not None:
            cursor.retreat(1)
            return None
        return 0

    def result(self):
        return None

    def results(self):
        return ()


# =========================
#        Combinators
# =========================

class Epsilon(Parser):

    def __init__(self):
        super(Epsilon, self).__init__()
        self._hits = 0

    def describe(self):
        return 'epsilon'

    def _parse(self, cursor):
        self._hits += 1
        return True

    def _unparse(self, cursor):
        if not self._hits:
            raise GrammarError('unparse() on epsilon without a pending parse().')
        self._hits -= 1

    def result(self):
        return None

    def results(self):
        return ()


class Chain(Parser):

    def __init__(self, a, b):
        super(Chain, self).__init__()
        self.a, self.b = a, b

    def describe(self):
        return '({!r} & {!r})'.format(self.a, self.b)

    def _parse(self, cursor):
        a, b = self.a, self.b
        if not a.parse(cursor):
            return False
        # Taken before `b` runs: `b` may recurse back into `a` and
        # overwrite its slot.
        head = a.results()
        if not b.parse(cursor):
            a.unparse(cursor)
            return False
        self._slot.put(head + b.results())
        return True

    def _unparse(self, cursor):
        self.b.unparse(cursor)
        self.a.unparse(cursor)
        self._slot.clear()

    def result(self):
        return TupleResult(self._slot.take())

    def results(self):
        return self._slot.take()


class Alternative(Parser):

    def __init__(self, a, b):
        super(Alternative, self).__init__()
        self.a, self.b = a, b
        self._which = []

    def describe(self):
        return '({!r} | {!r})'.format(self.a, self.b)

    def _parse(self, cursor):
        for which, par in enumerate((self.a, self.b)):
            if par.parse(cursor):
                self._which.append(which)
                self._slot.put(par.result())
                return True
        return False

    def _unparse(self, cursor):
        if not self._which:
            raise GrammarError(
                'unparse() on {!r} without a pending parse().'.format(self))
        (self.a, self.b)[self._which.pop()].unparse(cursor)
        self._slot.clear()


class Many(Parser):

    """Zero or more repetitions, delivering a `ListResult`.

    A repetition which succeeds without advancing the cursor is undone
    and ends the loop, otherwise it would repeat forever.
    """

    def __init__(self, parser):
        super(Many, self).__init__()
        self.parser = parser
        self._counts = []

    def describe(self):
        return 'many({!r})'.format(self.parser)

    def _parse(self, cursor):
        par = self.parser
        items = ListResult()
        while 1:
            pos = cursor.pos
            if not par.parse(cursor):
                break
            if cursor.pos == pos:
                par.unparse(cursor)
                break
            items.append(par.result())
        self._counts.append(len(items))
        self._slot.put(items)
        return True

    def _unparse(self, cursor):
        if not self._counts:
            raise GrammarError(
                'unparse() on {!r} without a pending parse().'.format(self))
        for _ in range(self._counts.pop()):
            self.parser.unparse(cursor)
        self._slot.clear()


class Many1(Many):

    """Like `Many` but fails unless at least one repetition advanced the
    cursor.  Every element is the sub-parser's own `result()`."""

    def describe(self):
        return 'many1({!r})'.format(self.parser)

    def _parse(self, cursor):
        super(Many1, self)._parse(cursor)
        if self._counts[-1]:
            return True
        self._counts.pop()
        self._slot.clear()
        return False


class Maybe(Parser):

    def __init__(self, parser):
        super(Maybe, self).__init__()
        self.parser = parser
        self._matched = []

    def describe(self):
        return 'maybe({!r})'.format(self.parser)

    def _parse(self, cursor):
        if self.parser.parse(cursor):
            self._matched.append(True)
            self._slot.put(self.parser.result())
        else:
            self._matched.append(False)
            self._slot.put(None)
        return True

    def _unparse(self, cursor):
        if not self._matched:
            raise GrammarError(
                'unparse() on {!r} without a pending parse().'.format(self))
        if self._matched.pop():
            self.parser.unparse(cursor)
        self._slot.clear()


# =========================
#    Recursion & semantics
# =========================

class Deferred(Parser):

    """Placeholder for a parser defined later, possibly in terms of the
    placeholder itself:

        expr = Deferred()
        expr.define((unit & string('+') & expr) | unit)

    It can be defined only once and must be defined before parsing.
    """

    def __init__(self):
        super(Deferred, self).__init__()
        self._parser = None

    def describe(self):
        return '<deferred>'

    def define(self, parser):
        if self._parser is not None:
            raise GrammarError('{!r} is already defined.'.format(self))
        if not isinstance(parser, Parser):
            raise TypeError('Cannot define {!r} as {!r}.'.format(self, parser))
        self._parser = parser
        return self

    @property
    def parser(self):
        if self._parser is None:
            raise GrammarError('{!r} is used before define().'.format(self))
        return self._parser

    def _parse(self, cursor):
        return self.parser.parse(cursor)

    def _unparse(self, cursor):
        self.parser.unparse(cursor)

    def result(self):
        return self.parser.result()

    def __copy__(self):
        raise GrammarError('{!r} cannot be copied.'.format(self))

    def __deepcopy__(self, memo):
        return self.__copy__()


class Action(Parser):

    def __init__(self, parser, func):
        """:parser:

            Parser whose result tuple is handed over to `func`.

        :func:

            Transform called with the tuple right after every successful
            parse, before any sibling parser could enter `parser` again.
            Its return value is the result of this parser.
        """
        super(Action, self).__init__()
        self.parser = parser
        self.func = func

    def describe(self):
        return '({!r} >> {})'.format(
            self.parser, getattr(self.func, '__name__', self.func))

    def _parse(self, cursor):
        if not self.parser.parse(cursor):
            return False
        try:
            node = self.func(self.parser.results())
        except Exception:
            self.parser.unparse(cursor)
            raise
        self._slot.put(node)
        return True

    def _unparse(self, cursor):
        self.parser.unparse(cursor)
        self._slot.clear()


# =========================
#          Frontend
# =========================

def char(ch, skip=None):
    return Char(ch, skip)


def string(s, skip=None):
    return String(s, skip)


def literal(quote='"', skip=None):
    return Literal(quote, skip)


def integer(base=10, skip=None):
    return Int(base, skip)


def end(skip=None):
    return End(skip)


def many(parser):
    return Many(parser)


def maybe(parser):
    return Maybe(parser)


def many1(parser):
    'One or more repetitions, delivering one `ListResult`.'
    return Many1(parser)


def with_action(parser, func):
    return Action(parser, func)


def parse(parser, cursor):
    return parser.parse(cursor)


def result_of(parser):
    return parser.result()


def interpret(parser, text):
    return parser.interpret(text)
