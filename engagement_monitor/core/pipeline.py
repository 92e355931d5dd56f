"""
Engagement Pipeline

Single entry point for the per-frame engagement analysis. For every frame
delivered by the landmark engine it:
- applies frame governance (rate limiting and load shedding)
- extracts head pose, eye aspect ratios and blendshape features
- classifies attention and scores expression
- smooths attention over time and combines both into an engagement score
- collects calibration samples and tracks the viewing environment
- pushes status updates and results to a listener when gating allows
"""

from typing import Any, Callable, Optional

from .adaptive_thresholds import AdaptiveThresholdStore, CalibrationPhase, CalibrationStore
from .attention_classifier import classify_attention
from .ear_calculator import EARCalculator
from .engagement import EngagementCombiner
from .expression_analyzer import ExpressionScorer
from .frame_governor import FrameGovernor
from .head_pose import DEFAULT_FACE_SIZE, estimate_face_size, head_pose_from_transform
from .models import (
    AttentionFeatures, AttentionResult, AttentionState, BlendshapeFeatures,
    ComprehensiveAnalysisResult, ExpressionState, MemoryPoolStats, PerformanceStats,
    current_millis,
)
from .status_text import build_status_text
from .temporal_smoothing import TemporalSmoother
from ..utils.config import Config, config
from ..utils.environment import DEFAULT_BRIGHTNESS, estimate_brightness
from ..utils.logger import get_logger, log_function_call, log_performance_metrics
from ..utils.memory_pool import ScratchPool

logger = get_logger(__name__)

# Confidence assigned to every raw verdict before smoothing
RAW_CONFIDENCE = 0.8


class PipelineListener:
    """Callback interface; every method is optional and a no-op by default."""

    def on_status_update(self, text: str) -> None:
        pass

    def on_comprehensive_results(self, report: ComprehensiveAnalysisResult) -> None:
        pass

    def on_empty(self) -> None:
        pass

    def on_error(self, message: str) -> None:
        pass


class EngagementPipeline:
    """Composes the engagement analysis stages for a stream of frames."""

    def __init__(self, listener: Optional[Any] = None, store: Optional[CalibrationStore] = None,
                 app_config: Optional[Config] = None, clock: Optional[Callable[[], float]] = None):
        """
        Initialize the pipeline.

        Args:
            listener: Object with any of the PipelineListener callbacks
            store: Calibration persistence (in-memory when omitted)
            app_config: Configuration (defaults to the global configuration)
            clock: Millisecond clock used for frame governance
        """
        self.listener = listener
        self.config = app_config or config

        self.memory_pool = ScratchPool()
        self.ear_calculator = EARCalculator(self.config.ear, self.memory_pool)
        self.adaptive_thresholds = AdaptiveThresholdStore(store, self.config.thresholds, self.config.calibration)
        self.temporal_smoother = TemporalSmoother(self.config.smoothing)
        self.expression_scorer = ExpressionScorer(self.config.expression)
        self.engagement_combiner = EngagementCombiner(self.config.engagement)
        self.governor = FrameGovernor(self.config.governor, clock)

        self.frame_counter = 0
        self.current_brightness = DEFAULT_BRIGHTNESS
        self.current_face_size = DEFAULT_FACE_SIZE
        self.debug_interval = max(1, self.config.logging.debug_every_n_frames)

        logger.info(f"Engagement pipeline initialized (target FPS: {self.config.governor.target_fps}, "
                    f"calibrated: {self.adaptive_thresholds.is_calibrated()})")

    def extract_features(self, landmarks, transform=None, blendshapes=None,
                         timestamp: Optional[int] = None) -> AttentionFeatures:
        """
        Build the per-frame feature record.

        Args:
            landmarks: Face-mesh landmarks
            transform: Optional 4x4 facial transformation matrix
            blendshapes: Optional activations (BlendshapeFeatures, mapping or categories)
            timestamp: Frame time in milliseconds

        Returns:
            AttentionFeatures judged against the current adjusted thresholds
        """
        thresholds = self.adaptive_thresholds.thresholds

        yaw = pitch = roll = 0.0
        head_pose_attentive = False
        pose = head_pose_from_transform(transform) if transform is not None else None
        if pose is not None:
            yaw, pitch, roll = pose
            head_pose_attentive = abs(yaw) <= thresholds.adjusted_yaw and abs(pitch) <= thresholds.adjusted_pitch
            if self._should_log(2):
                logger.log_head_pose(yaw, pitch, roll, thresholds.adjusted_yaw, thresholds.adjusted_pitch)
        elif self._should_log(2):
            logger.debug("Facial transformation matrix not available for head pose analysis")

        left_ear, right_ear, average_ear = self.ear_calculator.calculate(landmarks, yaw, pitch, roll)
        eyes_open = average_ear >= thresholds.adjusted_ear
        if self._should_log(2):
            logger.log_ear(left_ear, right_ear, average_ear, thresholds.adjusted_ear)

        if not isinstance(blendshapes, BlendshapeFeatures):
            blendshapes = BlendshapeFeatures.from_scores(blendshapes)

        return AttentionFeatures(
            head_pose_yaw=yaw,
            head_pose_pitch=pitch,
            head_pose_roll=roll,
            left_eye_ear=left_ear,
            right_eye_ear=right_ear,
            average_ear=average_ear,
            blendshapes=blendshapes,
            is_head_pose_attentive=head_pose_attentive,
            are_eyes_open=eyes_open,
            confidence=RAW_CONFIDENCE,
            timestamp=timestamp if timestamp is not None else current_millis(),
        )

    def process_frame(self, features: AttentionFeatures) -> ComprehensiveAnalysisResult:
        """
        Run classification, expression scoring, smoothing and scoring on one frame.

        Not governed: every call advances the smoothing and expression histories.
        """
        thresholds = self.adaptive_thresholds.thresholds
        raw_state = classify_attention(features, thresholds)
        expression = self.expression_scorer.analyze(features.blendshapes)

        raw_result = AttentionResult(
            state=raw_state,
            confidence=RAW_CONFIDENCE,
            features=features,
            timestamp=features.timestamp,
        )
        smoothed = self.temporal_smoother.add_and_smooth(raw_result)
        report = self.engagement_combiner.combine(smoothed, expression)

        if (self._collecting_calibration()
                and smoothed.state == AttentionState.ATTENTIVE
                and smoothed.confidence > self.config.calibration.sample_min_confidence):
            self.adaptive_thresholds.add_calibration_sample(smoothed.features)

        if self._should_log(1):
            logger.log_attention(raw_state.name, smoothed.state.name, smoothed.confidence,
                                 self.temporal_smoother.stability())
            logger.log_expression(expression.primary_expression.name, expression.intensity,
                                  report.overall_engagement)

        return report

    def _collecting_calibration(self) -> bool:
        # Explicit (re)calibration, or passive collection until first calibrated
        thresholds = self.adaptive_thresholds
        return thresholds.phase == CalibrationPhase.CALIBRATING or not thresholds.is_calibrated()

    @log_performance_metrics
    def process_landmarks(self, landmarks, transform=None, blendshapes=None,
                          timestamp: Optional[int] = None) -> Optional[ComprehensiveAnalysisResult]:
        """
        Governed entry point for one engine result.

        Args:
            landmarks: Landmarks of the first detected face (empty if no face)
            transform: Optional 4x4 facial transformation matrix
            blendshapes: Optional blendshape activations
            timestamp: Frame time in milliseconds

        Returns:
            The comprehensive result, or None when the frame was dropped or
            contained no face
        """
        if not self.governor.should_process_frame():
            return None

        if landmarks is None or len(landmarks) == 0:
            self._notify('on_empty')
            return None

        start_time = self.governor.clock()
        self.frame_counter += 1

        features = self.extract_features(landmarks, transform, blendshapes, timestamp)
        report = self.process_frame(features)

        self.update_environment(self.current_brightness, estimate_face_size(landmarks))

        self._publish_status(report, features)

        if self._should_log(3):
            logger.debug(self.adaptive_thresholds.threshold_info())
            logger.debug(self.ear_calculator.stats())
            logger.debug(self.expression_scorer.stats())
            stats = self.governor.performance_stats()
            logger.log_performance(stats.average_processing_time, stats.actual_fps, stats.target_fps,
                                   stats.frame_skip_percentage, stats.processed_frames, stats.total_frames)

        self._notify('on_comprehensive_results', report)
        self.governor.record_processing_time(start_time)
        return report

    def _publish_status(self, report: ComprehensiveAnalysisResult, features: AttentionFeatures) -> None:
        attention_state = report.attention_result.state
        expression_state = report.expression_result.primary_expression

        if (self.governor.should_update_ui()
                and self.governor.has_significant_change(attention_state, expression_state,
                                                         report.overall_engagement)):
            status_text = build_status_text(
                self.memory_pool,
                report,
                learning_state=self.expression_scorer.learning_state(expression_state),
                head_pose_attentive=features.is_head_pose_attentive,
                eyes_open=features.are_eyes_open,
                stability=self.temporal_smoother.stability(),
                expression_trend=self.expression_scorer.trend(),
            )
            self.governor.cache_status_text(status_text, attention_state, expression_state,
                                            report.overall_engagement)
            self._notify('on_status_update', status_text)
            self.governor.mark_ui_updated()
            return

        cached_text = self.governor.cached_status_text()
        if cached_text is not None:
            self._notify('on_status_update', cached_text)

    def _should_log(self, multiple: int) -> bool:
        return self.frame_counter % (self.debug_interval * multiple) == 0

    def _notify(self, callback_name: str, *args) -> None:
        callback = getattr(self.listener, callback_name, None)
        if not callable(callback):
            return
        try:
            callback(*args)
        except Exception as e:
            logger.log_error_with_context(e, f"listener.{callback_name}")
            if callback_name != 'on_error':
                self._notify('on_error', str(e) or "An unknown error has occurred")

    # Calibration

    @log_function_call
    def start_calibration(self) -> None:
        """Begin user calibration with fresh temporal state."""
        self.adaptive_thresholds.start_calibration()
        self.temporal_smoother.reset()
        self.ear_calculator.reset()
        self.expression_scorer.reset()

    def add_calibration_sample(self, features: AttentionFeatures) -> bool:
        return self.adaptive_thresholds.add_calibration_sample(features)

    @log_function_call
    def finish_calibration(self) -> bool:
        success = self.adaptive_thresholds.finish_calibration()
        logger.info(f"User calibration {'succeeded' if success else 'failed'}")
        return success

    def calibration_progress(self) -> float:
        return self.adaptive_thresholds.calibration_progress()

    def is_calibrated(self) -> bool:
        return self.adaptive_thresholds.is_calibrated()

    def adapt_online(self, features: AttentionFeatures, actual_state: AttentionState,
                     predicted_state: AttentionState) -> bool:
        """Feed back a ground-truth label for a misclassified frame."""
        return self.adaptive_thresholds.adapt_online(features, actual_state, predicted_state)

    @log_function_call
    def reset_thresholds(self) -> None:
        """Return to default thresholds and fresh processing state."""
        self.adaptive_thresholds.reset_to_defaults()
        self._reset_processing_state()
        logger.info("Reset to default thresholds")

    def update_environment(self, brightness: float, face_size: float) -> None:
        """Update lighting and distance adaptation."""
        self.current_brightness = brightness
        self.current_face_size = face_size
        self.adaptive_thresholds.adjust_for_lighting(brightness)
        self.adaptive_thresholds.adjust_for_distance(face_size)

    def update_lighting_from_frame(self, frame) -> float:
        """Estimate brightness from a BGR camera frame and adapt to it."""
        brightness = estimate_brightness(frame)
        self.update_environment(brightness, self.current_face_size)
        return brightness

    def reset(self) -> None:
        """Clear all per-stream state, keeping calibration."""
        self.adaptive_thresholds.clear_samples()
        self._reset_processing_state()
        self.update_environment(DEFAULT_BRIGHTNESS, DEFAULT_FACE_SIZE)

    def _reset_processing_state(self) -> None:
        self.temporal_smoother.reset()
        self.ear_calculator.reset()
        self.expression_scorer.reset()
        self.governor.reset()
        self.memory_pool.cleanup()
        self.frame_counter = 0

    # Reporting

    def performance_stats(self) -> PerformanceStats:
        return self.governor.performance_stats()

    def memory_stats(self) -> MemoryPoolStats:
        return self.memory_pool.stats()

    def current_expression(self) -> Optional[ExpressionState]:
        return self.expression_scorer.current_expression()

    def expression_stats(self) -> str:
        return self.expression_scorer.stats()

    def expression_trend(self) -> str:
        return self.expression_scorer.trend()

    def is_current_expression_positive(self) -> bool:
        expression = self.current_expression()
        return expression is not None and self.expression_scorer.is_positive(expression)

    def is_current_expression_negative(self) -> bool:
        expression = self.current_expression()
        return expression is not None and self.expression_scorer.is_negative(expression)

    def current_learning_state(self) -> str:
        expression = self.current_expression()
        if expression is None:
            return "Status unknown"
        return self.expression_scorer.learning_state(expression)

    def threshold_info(self) -> str:
        return self.adaptive_thresholds.threshold_info()
