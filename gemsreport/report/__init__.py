# Report Module

from gemsreport.report.renderer import (
    ReportConfig,
    render_charts,
    render_report
)

__all__ = [
    'ReportConfig',
    'render_charts',
    'render_report',
]
