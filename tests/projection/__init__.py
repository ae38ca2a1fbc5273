"""
Projection Engine Test Package

TEST AXIOMS:
============
1. Visibility is decided by instances and defaults, never by content
2. Lookup failures degrade one container, never the whole build
3. Overlay state is per project and survives a reload
"""
