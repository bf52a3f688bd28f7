import copy
import unittest

import preamble

from combiparse import *


class TestDeferred(unittest.TestCase):

    def test_forwarding(self):
        d = Deferred()
        d.define(char('a') | char('b'))
        c = Cursor(' b')
        self.assertTrue(d.parse(c))
        self.assertEqual(d.result(), Value('b'))
        d.unparse(c)
        self.assertEqual(c.pos, 0)

    def test_use_before_define(self):
        d = Deferred()
        with self.assertRaises(GrammarError):
            d.parse(Cursor('a'))
        with self.assertRaises(GrammarError):
            d.unparse(Cursor('a'))
        with self.assertRaises(GrammarError):
            d.result()

    def test_define_twice(self):
        d = Deferred()
        d.define(char('a'))
        with self.assertRaises(GrammarError):
            d.define(char('b'))

    def test_define_non_parser(self):
        with self.assertRaises(TypeError):
            Deferred().define('a')

    def test_not_copyable(self):
        d = Deferred()
        with self.assertRaises(GrammarError):
            copy.copy(d)
        with self.assertRaises(GrammarError):
            copy.deepcopy(char('a') & d)

    def test_unassigned_inside_grammar(self):
        d = Deferred().named('missing')
        p = char('a') & d
        self.assertFalse(p.parse(Cursor('b')))
        with self.assertRaises(GrammarError):
            p.parse(Cursor('a'))

    def test_nested_braces(self):
        s1 = Cursor('  { int=   abc {    double=   xyz{   int=abc{  }   }   }   }')
        dp = Deferred()
        dp.define((string('{') & string('}'))
                  | (string('{') & string('int=') & string('abc') & dp & string('}'))
                  | (string('{') & string('double=') & string('xyz') & dp & string('}')))
        self.assertTrue(dp.parse(s1))
        self.assertTrue(s1.at_end())
        dp.unparse(s1)
        self.assertEqual(s1.pos, 0)

    def test_depth(self):
        parens = Deferred()
        parens.define(((char('(') & parens & char(')')) >> (lambda t: t[1] + 1))
                      | (Epsilon() >> (lambda t: 0)))
        self.assertEqual(parens.interpret('((( (  ) )  ))').result, 4)
        self.assertEqual(parens.interpret('   ').result, 0)

    def test_sexp(self):

        def letter(skip=None):
            p = Char('a', skip)
            for x in 'bcde':
                p = p | Char(x, skip)
            return p

        # Only the first letter of a symbol may be preceded by spaces.
        symbol = (letter() & many(letter(SkipNone))) \
            >> (lambda t: t[0].value + ''.join(x.value for x in t[1]))
        sexp = Deferred()
        sexp.define(symbol
                    | ((char('(') & many(sexp) & char(')')) >> (lambda t: list(t[1]))))
        self.assertEqual(sexp.interpret('(a (b (c dd)) ((e)))').result,
                         ['a', ['b', ['c', 'dd']], [['e']]])
        self.assertEqual(sexp.interpret('()').result, [])


if __name__ == '__main__':
    unittest.main()
