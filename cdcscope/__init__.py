"""
cdcscope: lawful-intercept CDC dump parsing and call correlation.
"""

from cdcscope.analyzer import CDCAnalyzer, TowerMatch

__version__ = "1.0.0"

__all__ = [
    "CDCAnalyzer",
    "TowerMatch",
]
