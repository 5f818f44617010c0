"""
PPG Vitals – streaming heart rate, IBI, pulse morphology and blood pressure
from a per-frame camera chroma proxy.

Feed one proxy value per video frame into a :class:`Session`; each call
returns a :class:`PpgResult` and keeps a rolling blood-pressure estimate.
"""

from .blood_pressure import BloodPressureEstimator, BpEstimate, robust_average
from .conditioner import MODE_CONFIGS, Mode, ModeConfig, SignalConditioner
from .heart_rate import BeatEvent, HeartRateDetector
from .morphology import ExtremaPoint, MorphologyAnalyzer, MorphologyFeatures
from .ring_buffer import RingSampleBuffer
from .session import PpgResult, Session
from .worker import SessionWorker

__version__ = "0.1.0"
__author__ = "ppg_vitals"

__all__ = [
    "BeatEvent",
    "BloodPressureEstimator",
    "BpEstimate",
    "ExtremaPoint",
    "HeartRateDetector",
    "MODE_CONFIGS",
    "Mode",
    "ModeConfig",
    "MorphologyAnalyzer",
    "MorphologyFeatures",
    "PpgResult",
    "RingSampleBuffer",
    "Session",
    "SessionWorker",
    "SignalConditioner",
    "robust_average",
]
