"""Build report display.

Modules
-------
renderer
    ``ReportRenderer`` turns ``BuildReport`` and boot-check results into
    Rich renderables for terminal display.
"""

from bootforge.monitor.renderer import ReportRenderer

__all__ = ["ReportRenderer"]
