from .threshold import ThresholdModel, threshold, threshold_c, threshold_d

__all__ = ["ThresholdModel", "threshold", "threshold_c", "threshold_d"]
