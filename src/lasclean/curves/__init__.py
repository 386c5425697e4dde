from __future__ import annotations

"""
Curve identity: canonical mnemonics and display categories.

Keep this __init__ import-light; lasclean.model imports curves.categories and
curves.standardize imports lasclean.model.
"""
