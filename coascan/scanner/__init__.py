"""Scanner package: scan gating, document fetch & text extraction."""

from coascan.scanner.extractor import TextExtractor
from coascan.scanner.fetcher import DocumentFetcher
from coascan.scanner.gate import ScanGate

__all__ = ["ScanGate", "DocumentFetcher", "TextExtractor"]
