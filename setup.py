#!/usr/bin/env python

from setuptools import setup

setup(name='combiparse',
      version='0.1',
      description='Backtracking parser combinators with semantic actions and recursive grammars.',
      python_requires='>=3.6',
      py_modules=['combiparse'],
)
