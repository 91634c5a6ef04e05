"""Scan submission, progress aggregation and result materialization."""

from .csv_import import parse_domains_csv
from .local_scorer import LocalScorerTrigger, score_domain
from .materializer import ResultMaterializer
from .progress import ProgressUpdate, ScanSession, SessionState, apply_update
from .runner import ScanRunner
from .submission import ScoringTrigger, SubmissionClient, WebhookTrigger

__all__ = [
    "parse_domains_csv",
    "LocalScorerTrigger",
    "score_domain",
    "ResultMaterializer",
    "ProgressUpdate",
    "ScanSession",
    "SessionState",
    "apply_update",
    "ScanRunner",
    "ScoringTrigger",
    "SubmissionClient",
    "WebhookTrigger",
]
