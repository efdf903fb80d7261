"""Scan-to-analysis pipeline: state machine and controller.

Public API::

    from coascan.pipeline import PipelineController
    record = await controller.on_scan("https://lab.example/coa.pdf")
"""

from coascan.cancellation import CancellationToken
from coascan.pipeline.controller import PipelineController
from coascan.pipeline.state import Phase, PipelineState, Stage

__all__ = ["CancellationToken", "PipelineController", "PipelineState", "Phase", "Stage"]
