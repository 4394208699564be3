"""
entmapper Test Suite.

This package contains:
- unit/: Unit tests of every compiler stage and the runtime bases
- integration/: Full rounds that write, import and use generated code
- models/: Sample entity declarations shared by both
"""
