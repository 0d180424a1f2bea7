from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import numpy as np
from PIL import Image

from passportcam.core.config import US_PASSPORT_CONFIG, PassportPhotoConfig
from passportcam.core.geometry import round_half_up
from passportcam.core.models import BoundingBox, DetectionResult, Landmarks
from passportcam.validation.report import ComplianceResult, RuleResult
from passportcam.validation.rules import ComplianceRule, build_rules

_log = logging.getLogger(__name__)

NO_FACE_REASON = "No face detected in the photo. Please retake with your face clearly visible."


def _to_np(img: Any) -> np.ndarray:
    if isinstance(img, Image.Image):
        img = np.asarray(img)
    arr = np.asarray(img)
    if arr.ndim == 3 and arr.shape[-1] == 1:
        arr = arr[:, :, 0]
    return arr.astype(np.uint8, copy=False)


def check_compliance(
    pixels: Any,
    face_box: BoundingBox,
    landmarks: Landmarks,
    rules: Optional[Sequence[ComplianceRule]] = None,
    config: PassportPhotoConfig = US_PASSPORT_CONFIG,
) -> ComplianceResult:
    """
    Evaluate every rule against a decoded photo.

    All rules run even after a failure; `passed` requires every rule to pass.
    """
    arr = _to_np(pixels)
    h, w = arr.shape[0], arr.shape[1]
    if rules is None:
        rules = build_rules(config)

    results: List[RuleResult] = []
    for rule in rules:
        ok = bool(rule.check(arr, face_box, landmarks, w, h))
        metrics = rule.measure(arr, face_box, landmarks, w, h) if rule.measure is not None else None
        results.append(RuleResult(rule_id=rule.name, passed=ok, message=rule.description, metrics=metrics))

    total = len(results)
    passed_count = sum(1 for r in results if r.passed)
    score = round_half_up(100.0 * passed_count / total) if total else 0

    reasons = [f"{r.rule_id}: {r.message}" for r in results if not r.passed]
    _log.info("Compliance: %d/%d rules passed (score %d)", passed_count, total, score)
    return ComplianceResult(passed=passed_count == total, score=score, reasons=reasons, results=results)


def no_face_result() -> ComplianceResult:
    return ComplianceResult(passed=False, score=0, reasons=[NO_FACE_REASON], results=[])


def evaluate_capture(
    pixels: Any,
    detection: Optional[DetectionResult],
    config: PassportPhotoConfig = US_PASSPORT_CONFIG,
) -> ComplianceResult:
    """Compliance for a capture; without a detection the rules are skipped."""
    if detection is None:
        _log.info("Compliance skipped: no face detected at capture time")
        return no_face_result()
    return check_compliance(pixels, detection.bounding_box, detection.landmarks, config=config)


def compliance_summary(result: ComplianceResult, config: PassportPhotoConfig = US_PASSPORT_CONFIG) -> str:
    if result.passed:
        return f"Photo meets all {config.country} passport requirements"
    return f"Photo does not meet requirements ({result.score}% compliant)"


def format_report_text(result: ComplianceResult, config: PassportPhotoConfig = US_PASSPORT_CONFIG) -> str:
    lines: List[str] = []
    lines.append("PassportCam Compliance Report")
    lines.append("-" * 32)
    lines.append(f"Standard: {config.country}")
    lines.append(f"Overall: {'PASS' if result.passed else 'FAIL'} ({result.score}%)")
    lines.append("")
    if result.results:
        for r in result.results:
            mark = "✅" if r.passed else "❌"
            lines.append(f"{mark} {r.rule_id}: {r.message}")
    else:
        for reason in result.reasons:
            lines.append(f"❌ {reason}")
    return "\n".join(lines)
