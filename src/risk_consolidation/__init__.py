"""Contract Risk Consolidator -- de-duplicate multi-tier contract risk findings."""

__version__ = "0.1.0"

from .analyzer import ThreeTierAnalyzer
from .config import ConfigurationError, DuplicationConfig, ManualOverride, load_config
from .consolidator import ConsolidationOutcome, RiskConsolidator, consolidate
from .detector import DuplicationDetector, detect
from .models import (
    ComparisonDetails,
    ConsolidatedResult,
    ConsolidationDecision,
    ConsolidationStrategy,
    DebugInformation,
    DuplicationDetection,
    Risk,
    RiskSource,
    RiskSourceRecord,
    Severity,
    ThreeTierAnalysisResult,
    Tier,
    TierResult,
)
from .parsers import (
    AnalysisInput,
    load_analysis_input,
    normalize_risk,
    normalize_tier,
    parse_risk,
    parse_tier,
)
from .report import DetectionReport, build_detection_report
from .similarity import score_risks
from .trace import ProcessingStep, TraceBuilder

__all__ = [
    # Core
    "ThreeTierAnalyzer",
    "RiskConsolidator",
    "ConsolidationOutcome",
    "consolidate",
    "DuplicationDetector",
    "detect",
    "score_risks",
    # Configuration
    "DuplicationConfig",
    "ManualOverride",
    "ConfigurationError",
    "load_config",
    # Models
    "Risk",
    "Severity",
    "RiskSource",
    "Tier",
    "ConsolidationStrategy",
    "ComparisonDetails",
    "DuplicationDetection",
    "RiskSourceRecord",
    "ConsolidationDecision",
    "TierResult",
    "ConsolidatedResult",
    "DebugInformation",
    "ThreeTierAnalysisResult",
    # Parsing
    "AnalysisInput",
    "normalize_risk",
    "normalize_tier",
    "parse_risk",
    "parse_tier",
    "load_analysis_input",
    # Audit and reporting
    "TraceBuilder",
    "ProcessingStep",
    "DetectionReport",
    "build_detection_report",
]
