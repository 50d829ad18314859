"""
Tests for the SmartPark parking core

- unit/: domain, application and in-memory infrastructure in isolation
- integration/: the SQLAlchemy store, concurrent units of work and the entry point
"""

import sys
from pathlib import Path

# Make the src layout importable without an editable install
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
