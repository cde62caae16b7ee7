"""Test package initialiser.

What:
  Marks ``tests`` as a package so pytest can resolve the shared conftest and
  the sample schema module consistently from unit and end-to-end suites.

Invariants & Safety:
  - The file must remain side-effect free so that importing ``tests`` never
    mutates environment state or test fixtures.
"""
