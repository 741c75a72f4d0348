"""Puts the project root on sys.path so tests can import ``app`` and ``tests.helpers``."""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))
