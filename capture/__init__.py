from capture.fetcher import NetworkRecorder, PageCapture, capture_page, open_page, snapshot

__all__ = ["NetworkRecorder", "PageCapture", "capture_page", "open_page", "snapshot"]
