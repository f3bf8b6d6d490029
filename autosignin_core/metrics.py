"""
Detection Metrics Recorder - Track Detection Tier Performance

Keeps the most recent detection attempts in memory and uses them to
recommend which tier to try first on a host that has been seen before.

Usage:
    from autosignin_core.metrics import DetectionMetricsRecorder

    recorder = DetectionMetricsRecorder()
    recorder.record_attempt("https://sso.example.com/login", DetectionMethod.URL_SPECIFIC,
                            success=True, confidence=90, duration_ms=120)

    recorder.get_recommended_method("https://sso.example.com/other")  # URL_SPECIFIC
    stats = recorder.analyze()
    print(stats["success_rate"])
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional
from urllib.parse import urlparse

from .models import DetectionAttempt, DetectionMethod

MAX_ATTEMPTS = 1000


def host_of(url: str) -> str:
    parsed = urlparse(url or "")
    return (parsed.netloc or parsed.path or "").lower()


class DetectionMetricsRecorder:
    """
    Thread-safe, bounded record of detection attempts.

    Score per method = success rate x 70 + average successful confidence x 0.3,
    computed over attempts against the same host.
    """

    def __init__(self, max_attempts: int = MAX_ATTEMPTS):
        self._attempts: Deque[DetectionAttempt] = deque(maxlen=max_attempts)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def record(self, attempt: DetectionAttempt) -> None:
        """Record a single detection attempt."""
        with self._lock:
            self._attempts.append(attempt)

    def record_attempt(self, url: str, method, success: bool, confidence: int = 0,
                       duration_ms: int = 0) -> DetectionAttempt:
        parsed = DetectionMethod.parse(method)
        if parsed is None:
            raise ValueError(f"Unknown detection method: {method!r}")
        attempt = DetectionAttempt(
            url=url,
            method=parsed,
            success=bool(success),
            confidence=int(max(0, min(100, confidence))),
            duration_ms=int(duration_ms),
        )
        self.record(attempt)
        return attempt

    def snapshot(self, url: Optional[str] = None, method: Optional[DetectionMethod] = None) -> List[DetectionAttempt]:
        with self._lock:
            attempts = list(self._attempts)
        if url is not None:
            host = host_of(url)
            attempts = [a for a in attempts if host_of(a.url) == host]
        if method is not None:
            attempts = [a for a in attempts if a.method is method]
        return attempts

    @staticmethod
    def _success_rate(attempts: List[DetectionAttempt]) -> float:
        return sum(1 for a in attempts if a.success) / len(attempts) if attempts else 0.0

    @staticmethod
    def _average_confidence(attempts: List[DetectionAttempt]) -> float:
        scores = [a.confidence for a in attempts if a.success]
        return sum(scores) / len(scores) if scores else 0.0

    def success_rate(self, method, url: Optional[str] = None) -> float:
        return self._success_rate(self.snapshot(url, DetectionMethod.parse(method)))

    def average_confidence(self, method, url: Optional[str] = None) -> float:
        return self._average_confidence(self.snapshot(url, DetectionMethod.parse(method)))

    def get_recommended_method(self, url: str) -> Optional[DetectionMethod]:
        """Best-scoring method on this host, or None without any history."""
        attempts = self.snapshot(url)
        if not attempts:
            return None
        by_method: Dict[DetectionMethod, List[DetectionAttempt]] = {}
        for attempt in attempts:
            by_method.setdefault(attempt.method, []).append(attempt)

        best, best_score = None, -1.0
        for method in DetectionMethod:
            group = by_method.get(method)
            if not group:
                continue
            score = self._success_rate(group) * 70 + self._average_confidence(group) * 0.3
            if score > best_score:
                best, best_score = method, score
        if best_score <= 0:
            return None
        return best

    def analyze(self, url: Optional[str] = None) -> Dict[str, Any]:
        """
        Analyze recorded attempts.

        Returns:
            Statistics dictionary
        """
        attempts = self.snapshot(url)
        if not attempts:
            return {"total": 0, "success_rate": 0.0}

        by_method: Dict[str, Dict[str, Any]] = {}
        for method in DetectionMethod:
            group = [a for a in attempts if a.method is method]
            if not group:
                continue
            times = [a.duration_ms for a in group]
            by_method[method.value] = {
                "total": len(group),
                "success_rate": round(self._success_rate(group), 4),
                "avg_confidence": round(self._average_confidence(group), 2),
                "avg_time_ms": round(sum(times) / len(times), 2),
            }

        hosts: Dict[str, int] = {}
        for a in attempts:
            host = host_of(a.url)
            hosts[host] = hosts.get(host, 0) + 1

        return {
            "total": len(attempts),
            "successes": sum(1 for a in attempts if a.success),
            "success_rate": round(self._success_rate(attempts), 4),
            "by_method": by_method,
            "top_hosts": sorted(hosts.items(), key=lambda x: -x[1])[:5],
        }

    def clear(self) -> None:
        with self._lock:
            self._attempts.clear()
