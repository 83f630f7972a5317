"""
Test configuration for BVExpr parser tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import BVExprGrammar, create_parser


@pytest.fixture
def grammar():
  """Provide a fresh grammar instance for each test"""
  return BVExprGrammar()


@pytest.fixture
def parser():
  """Provide a parser with the default limits"""
  return create_parser()
