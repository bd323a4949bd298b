import pytest

from squat_analysis.cv.feedback import FeedbackKind
from squat_analysis.cv.keypoints import PoseSample
from squat_analysis.cv.pose_buffer import TemporalPoseBuffer
from squat_analysis.cv.rules import (
    AscentRateCheck,
    DepthCheck,
    DetectionQualityGate,
    HeelLiftCheck,
    KneeValgusCheck,
    TorsoAngleCheck,
)

from tests.helpers import hips_only_frame, make_timeline, squat_frame, squat_samples


def buffer_for(samples, settings, fps=30.0):
    return TemporalPoseBuffer(make_timeline(samples, fps=fps), settings)


def test_good_squat_passes_every_check(timeline, settings):
    buffer = TemporalPoseBuffer(timeline, settings)
    for check in (DepthCheck(), KneeValgusCheck(), TorsoAngleCheck(), HeelLiftCheck(), AscentRateCheck()):
        assert check.check(buffer, settings) is None


class TestDepth:
    def test_shallow_bottom(self, settings):
        samples = squat_samples()
        samples[5] = squat_frame(130, thigh_direction=-20)

        item = DepthCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.DEPTH
        assert item.message.startswith("Squat Depth: Go deeper.")
        assert "~100°" in item.message
        assert item.frame_index == 5
        assert item.timestamp == pytest.approx(5 / 30)

    def test_exactly_at_threshold_is_not_shallow(self, samples, settings):
        samples[5] = squat_frame(100, thigh_direction=-20)
        buffer = buffer_for(samples, settings)

        assert buffer.bottom_frame_index == 5
        assert buffer.sample(5).knee_angle("left") == pytest.approx(100.0)
        assert DepthCheck().check(buffer, settings) is None

    def test_just_above_threshold_is_shallow(self, samples, settings):
        samples[5] = squat_frame(100.01, thigh_direction=-20)

        item = DepthCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.DEPTH
        assert item.frame_index == 5

    def test_no_bottom(self, settings):
        buffer = buffer_for([PoseSample.empty()] * 8, settings)
        assert DepthCheck().check(buffer, settings) is None


class TestKneeValgus:
    def test_prefers_first_caving_frame_on_ascent(self, settings):
        samples = squat_samples()
        samples[2] = squat_frame(112, knee_inset=0.03)
        samples[7] = squat_frame(98, knee_inset=0.03)
        samples[8] = squat_frame(112, knee_inset=0.03)

        item = KneeValgusCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.KNEE_VALGUS
        assert item.frame_index == 7

    def test_falls_back_to_last_flagged_frame(self, settings):
        samples = squat_samples()
        samples[1] = squat_frame(126, knee_inset=0.03)
        samples[3] = squat_frame(98, knee_inset=0.03)

        item = KneeValgusCheck().check(buffer_for(samples, settings), settings)
        assert item.frame_index == 3

    def test_small_inset_is_tolerated(self, settings):
        samples = squat_samples()
        # 0.2 -> 0.184 is a 0.92 ratio
        samples[7] = squat_frame(98, knee_inset=0.008)
        assert KneeValgusCheck().check(buffer_for(samples, settings), settings) is None

    def test_side_view_heuristic(self, settings):
        samples = squat_samples()
        samples[7] = squat_frame(98, knee_inset=0.03)
        buffer = buffer_for(samples, settings)

        # Shoulders are 0.1 apart in x, closer than the side-view separation
        settings.skip_valgus_on_side_view = True
        assert KneeValgusCheck().check(buffer, settings) is None

        settings.skip_valgus_on_side_view = False
        assert KneeValgusCheck().check(buffer, settings) is not None


class TestTorsoAngle:
    def test_excessive_lean_at_bottom(self, settings):
        samples = squat_samples()
        # atan(0.4 / 0.2) is about 63 degrees
        samples[5] = squat_frame(70, torso_height=0.2, torso_dx=-0.4)

        item = TorsoAngleCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.TORSO_ANGLE
        assert item.message.startswith("Torso Lean: Excessive forward lean (63°)")
        assert item.frame_index == 5

    def test_unstable_torso_anchors_later_frame(self, settings):
        samples = squat_samples()
        # Tilting the torso 30 degrees changes the torso/thigh angle by ~44 degrees
        samples[7] = squat_frame(98, torso_dx=0.3 * 0.57735)

        item = TorsoAngleCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.TORSO_ANGLE
        assert "Inconsistent torso angle" in item.message
        assert item.frame_index == 7

    def test_change_across_gap_is_ignored(self, settings):
        samples = squat_samples()
        samples[7] = squat_frame(98, torso_dx=0.3 * 0.57735)
        samples[6] = hips_only_frame()
        samples[8] = hips_only_frame()

        assert TorsoAngleCheck().check(buffer_for(samples, settings), settings) is None


class TestHeelLift:
    def test_largest_lift_is_anchored(self, settings):
        samples = squat_samples()
        samples[7] = squat_frame(98, ankle_lift=0.03)
        samples[8] = squat_frame(112, ankle_lift=0.05)
        samples[9] = squat_frame(126, ankle_lift=0.03)

        item = HeelLiftCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.HEEL_LIFT
        assert item.frame_index == 8

    def test_lift_below_threshold(self, settings):
        samples = squat_samples()
        samples[8] = squat_frame(112, ankle_lift=0.015)
        assert HeelLiftCheck().check(buffer_for(samples, settings), settings) is None

    def test_baseline_is_first_frame_with_both_ankles(self, settings):
        # Raised from the first tracked frame on: no lift relative to it
        samples = [hips_only_frame(0.7)] + [
            squat_frame(angle, ankle_lift=0.05) for angle in (126, 112, 98, 84, 70, 84, 98, 112, 126)
        ]
        assert HeelLiftCheck().check(buffer_for(samples, settings), settings) is None


class TestAscentRate:
    def test_hips_outpace_shoulders(self, settings):
        samples = squat_samples()
        # Shoulders rise only 0.01 between frames 6 and 8 while hips rise ~0.096
        hip_6 = samples[6].hip_midpoint.y
        hip_8 = samples[8].hip_midpoint.y
        samples[8] = squat_frame(112, torso_height=hip_6 + 0.3 + 0.01 - hip_8)

        item = AscentRateCheck().check(buffer_for(samples, settings), settings)

        assert item.kind == FeedbackKind.ASCENT_RATE
        assert item.frame_index == 6

    def test_needs_frame_rate(self, settings):
        samples = squat_samples()
        hip_6 = samples[6].hip_midpoint.y
        hip_8 = samples[8].hip_midpoint.y
        samples[8] = squat_frame(112, torso_height=hip_6 + 0.3 + 0.01 - hip_8)

        assert AscentRateCheck().check(buffer_for(samples, settings, fps=None), settings) is None

    def test_needs_two_frames_after_bottom(self, settings):
        samples = [squat_frame(angle) for angle in (140, 126, 112, 98, 84, 70, 84)]
        assert AscentRateCheck().check(buffer_for(samples, settings), settings) is None

    def test_sinking_shoulders_never_fire(self, settings):
        samples = squat_samples()
        hip_6 = samples[6].hip_midpoint.y
        hip_8 = samples[8].hip_midpoint.y
        samples[8] = squat_frame(112, torso_height=hip_6 + 0.3 - 0.01 - hip_8)

        assert AscentRateCheck().check(buffer_for(samples, settings), settings) is None


class TestDetectionQualityGate:
    def test_no_tracked_leg_short_circuits(self, settings):
        buffer = buffer_for([hips_only_frame()] * 8, settings)
        short_circuit, item = DetectionQualityGate().evaluate(buffer, settings)

        assert short_circuit
        assert item.kind == FeedbackKind.DETECTION_QUALITY
        assert item.message == DetectionQualityGate.CRITICAL_MESSAGE
        assert item.evidence is None

    def test_low_ratio_warns(self, settings):
        samples = squat_samples()[:5] + [hips_only_frame()] * 5
        short_circuit, item = DetectionQualityGate().evaluate(buffer_for(samples, settings), settings)

        assert not short_circuit
        assert item.message == DetectionQualityGate.WARNING_MESSAGE

    def test_ratio_at_threshold_passes(self, settings):
        samples = squat_samples()[:6] + [hips_only_frame()] * 4
        assert DetectionQualityGate().evaluate(buffer_for(samples, settings), settings) == (False, None)
