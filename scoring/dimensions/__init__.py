"""Built-in quality dimensions."""

from scoring.dimensions.agreement import SourceAgreementDimension
from scoring.dimensions.completeness import EntryCompletenessDimension
from scoring.dimensions.historical import HistoricalConsistencyDimension
from scoring.dimensions.patterns import LearnedPatternMatchDimension
from scoring.dimensions.teacher import TeacherVerificationDimension
from scoring.dimensions.validity import DataValidityDimension

BUILTIN_DIMENSIONS = [
    EntryCompletenessDimension(),
    SourceAgreementDimension(),
    DataValidityDimension(),
    HistoricalConsistencyDimension(),
    LearnedPatternMatchDimension(),
    TeacherVerificationDimension(),
]

__all__ = [
    "EntryCompletenessDimension",
    "SourceAgreementDimension",
    "DataValidityDimension",
    "HistoricalConsistencyDimension",
    "LearnedPatternMatchDimension",
    "TeacherVerificationDimension",
    "BUILTIN_DIMENSIONS",
]
